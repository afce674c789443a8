"""Attempt-history persistence for local and Postgres-backed runtimes."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..models.state import AttemptHistory
from ..util.jsonio import load_json, save_json

_logger = logging.getLogger("permit_prep.state")

_DEFAULT_TABLE = "attempt_history"
_SAFE_KEY = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


def _user_key(user_id: str) -> str:
    """File- and row-safe key for *user_id*; distinct ids never share a key.

    Ids that are already safe are used as-is. Anything else is cleaned and
    suffixed with ``~`` plus a digest of the id, and ``~`` never appears in a
    safe id.
    """
    raw = user_id.strip() or "default"
    if _SAFE_KEY.fullmatch(raw):
        return raw
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", raw).strip("._") or "user"
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
    return f"{cleaned}~{digest}"


def _pg_conninfo_from_env() -> Optional[str]:
    """DSN from ``POSTGRES_DSN``/``DATABASE_URL`` or the ``POSTGRES_*`` parts."""
    dsn = os.environ.get("POSTGRES_DSN") or os.environ.get("DATABASE_URL")
    if dsn:
        return dsn

    parts = {
        "host": os.environ.get("POSTGRES_HOST"),
        "dbname": os.environ.get("POSTGRES_DB"),
        "user": os.environ.get("POSTGRES_USER"),
        "password": os.environ.get("POSTGRES_PASSWORD"),
    }
    if not all(parts.values()):
        return None
    parts["port"] = os.environ.get("POSTGRES_PORT", "5432")
    parts["sslmode"] = os.environ.get("POSTGRES_SSLMODE", "require")
    return " ".join(f"{name}={value}" for name, value in parts.items())


def _decode_history(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        return json.loads(raw)
    return None


class _PostgresHistoryTable:
    """One JSONB ``history`` document per user key.

    Every failure is logged and reported as a miss so callers can fall back
    to local disk.
    """

    def __init__(self, conninfo: str, table: str) -> None:
        self.conninfo = conninfo
        self.table = table if re.fullmatch(r"[A-Za-z_]\w*", table) else _DEFAULT_TABLE
        self._table_ready = False

    def _connect(self):
        try:
            import psycopg
        except ImportError:
            _logger.warning("pg_driver_missing", extra={"event": "pg_driver_missing"})
            return None
        try:
            return psycopg.connect(self.conninfo, autocommit=True)
        except Exception:
            _logger.warning("pg_connect_failed", extra={"event": "pg_connect_failed"})
            return None

    def _ensure_table(self, conn) -> None:
        if self._table_ready:
            return
        with conn.cursor() as cur:
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    user_id TEXT PRIMARY KEY,
                    history JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
        self._table_ready = True

    def fetch(self, key: str) -> Optional[Dict[str, Any]]:
        conn = self._connect()
        if conn is None:
            return None
        with closing(conn):
            try:
                self._ensure_table(conn)
                with conn.cursor() as cur:
                    cur.execute(
                        f"SELECT history FROM {self.table} WHERE user_id = %s",
                        (key,),
                    )
                    row = cur.fetchone()
                return _decode_history(row[0]) if row else None
            except Exception:
                _logger.warning(
                    "pg_fetch_failed", extra={"event": "pg_fetch_failed", "user_key": key}
                )
                return None

    def upsert(self, key: str, payload: Dict[str, Any]) -> bool:
        conn = self._connect()
        if conn is None:
            return False
        with closing(conn):
            try:
                self._ensure_table(conn)
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        INSERT INTO {self.table} (user_id, history, updated_at)
                        VALUES (%s, %s::jsonb, NOW())
                        ON CONFLICT (user_id) DO UPDATE
                        SET history = EXCLUDED.history, updated_at = NOW()
                        """,
                        (key, json.dumps(payload, ensure_ascii=False)),
                    )
                return True
            except Exception:
                _logger.warning(
                    "pg_save_failed", extra={"event": "pg_save_failed", "user_key": key}
                )
                return False


class StateStore:
    """Load/save per-user attempt history.

    Postgres is used when connection settings are present; local JSON files
    under ``state_dir`` (or ``STATE_DIR``) are the fallback for both reads
    and writes.
    """

    def __init__(self, state_dir: Optional[Path] = None) -> None:
        self._local_dir = state_dir or Path(os.environ.get("STATE_DIR", ".data/state"))
        conninfo = _pg_conninfo_from_env()
        self._pg = (
            _PostgresHistoryTable(
                conninfo, os.environ.get("STATE_PG_TABLE", _DEFAULT_TABLE).strip()
            )
            if conninfo
            else None
        )

    def _local_path(self, key: str) -> Path:
        return self._local_dir / f"{key}.json"

    def load(self, user_id: str) -> AttemptHistory:
        key = _user_key(user_id)
        payload = self._pg.fetch(key) if self._pg else None
        if payload is None:
            payload = load_json(self._local_path(key))
        if not payload:
            return AttemptHistory()
        try:
            return AttemptHistory.model_validate(payload)
        except ValidationError:
            _logger.warning(
                "history_invalid", extra={"event": "history_invalid", "user_key": key}
            )
            return AttemptHistory()

    def save(self, user_id: str, history: AttemptHistory) -> None:
        """Persist *history*; local ``OSError`` propagates to the caller."""
        key = _user_key(user_id)
        payload = history.model_dump(mode="json")
        if self._pg and self._pg.upsert(key, payload):
            return
        self._local_dir.mkdir(parents=True, exist_ok=True)
        save_json(self._local_path(key), payload)
