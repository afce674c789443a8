"""Request-scoped logging context."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_request_id_ctx: ContextVar[Optional[str]] = ContextVar(
    "permit_prep_request_id",
    default=None,
)


def current_request_id() -> Optional[str]:
    return _request_id_ctx.get()


@contextmanager
def request_context(request_id: str) -> Iterator[str]:
    """Bind *request_id* for log records emitted inside the block."""
    token = _request_id_ctx.set(request_id)
    try:
        yield request_id
    finally:
        _request_id_ctx.reset(token)
