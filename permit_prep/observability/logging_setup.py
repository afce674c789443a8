"""Structured logging bootstrap for the CLI and API."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Optional

from .context import current_request_id

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class _RequestContextFilter(logging.Filter):
    """Attach the bound request id to records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = current_request_id()
        return True


class _JsonFormatter(logging.Formatter):
    """One compact JSON object per line; ``extra`` fields are flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED
            and key not in payload
            and not key.startswith("_")
            and value is not None
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _make_handler(stream: Optional[IO[str]]) -> logging.Handler:
    log_file = os.environ.get("PERMIT_PREP_LOG_FILE", "").strip()
    if log_file and stream is None:
        return logging.FileHandler(log_file, encoding="utf-8")
    return logging.StreamHandler(stream or sys.stderr)


def configure_logging(
    default_level: str = "INFO", stream: Optional[IO[str]] = None
) -> None:
    """Configure the root logger once per process.

    ``PERMIT_PREP_LOG_LEVEL`` overrides *default_level*;
    ``PERMIT_PREP_LOG_FORMAT`` picks ``json`` (default) or ``text``;
    ``PERMIT_PREP_LOG_FILE`` redirects output to a file.
    """
    root = logging.getLogger()
    if getattr(root, "_permit_prep_logging_configured", False):
        return

    level_name = os.environ.get("PERMIT_PREP_LOG_LEVEL", default_level).upper()
    fmt = os.environ.get("PERMIT_PREP_LOG_FORMAT", "json").lower().strip()

    handler = _make_handler(stream)
    handler.addFilter(_RequestContextFilter())
    handler.setFormatter(
        _JsonFormatter() if fmt == "json" else logging.Formatter(_TEXT_FORMAT)
    )

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # uvicorn installs its own handlers; route them through ours.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    root._permit_prep_logging_configured = True
