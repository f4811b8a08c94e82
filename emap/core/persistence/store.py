"""
Persistent store handle — one SQLite file, one connection, one lock.

A handle owns exactly one connection and serialises every statement on
it with its own lock.  The connection runs in WAL mode with a bounded
busy timeout, so other readers never block and a contended writer fails
with ``LockTimeout`` instead of hanging.

Subclasses declare their tables in ``SCHEMA``; ``open()`` applies it
idempotently every time a file is opened.

    StoreHandle        — lifecycle + key/value helpers
    ProjectStore       — per-project scene data and asset metadata
    RegistryStore      — see registry.py
    ConfigStore        — see system_config.py
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

from emap.core.models.project import AssetRecord, KVEntry
from emap.core.persistence.errors import (
    IOFailure,
    LockTimeout,
    SchemaFailure,
    WriteFailure,
)

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 5.0

_H = TypeVar("_H", bound="StoreHandle")


def _is_busy(exc: sqlite3.Error) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


class StoreHandle:
    """Lifecycle and locking for a single SQLite file.

    Use ``open()`` rather than the constructor.
    """

    SCHEMA: tuple[str, ...] = ()
    KV_TABLE: str | None = None

    def __init__(self, path: Path, conn: sqlite3.Connection, lock_timeout: float) -> None:
        self._path = path
        self._conn: sqlite3.Connection | None = conn
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    # ── Lifecycle ───────────────────────────────────────────────

    @classmethod
    def open(cls: type[_H], path: Path | str, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> _H:
        """Open (creating if needed) the file at ``path`` and ensure its tables.

        Raises:
            IOFailure: The file or its directory cannot be opened or created.
            SchemaFailure: The tables could not be created.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(path),
                timeout=lock_timeout,
                isolation_level=None,  # autocommit; every statement is its own transaction
                check_same_thread=False,
            )
        except (OSError, sqlite3.Error) as e:
            raise IOFailure(f"Cannot open store {path}: {e}") from e

        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(f"PRAGMA busy_timeout={int(lock_timeout * 1000)}")
        except sqlite3.Error as e:
            conn.close()
            raise IOFailure(f"Cannot open store {path}: {e}") from e

        try:
            for statement in cls.SCHEMA:
                conn.execute(statement)
        except sqlite3.Error as e:
            conn.close()
            raise SchemaFailure(f"Cannot create tables in {path}: {e}") from e

        logger.debug("Opened %s at %s", cls.__name__, path)
        return cls(path, conn, lock_timeout)

    def close(self) -> None:
        """Close the connection.  Waits for an in-flight statement; idempotent."""
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            except sqlite3.Error as e:
                logger.warning("Error closing %s: %s", self._path, e)
            self._conn = None
        logger.debug("Closed %s at %s", type(self).__name__, self._path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._conn is None

    def __enter__(self: _H) -> _H:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<{type(self).__name__} {self._path} ({state})>"

    # ── Locking ─────────────────────────────────────────────────

    @contextmanager
    def _locked(self, *, write: bool) -> Iterator[sqlite3.Connection]:
        """Hold this handle's lock and map sqlite errors to the store taxonomy."""
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise LockTimeout(f"Timed out waiting for {self._path}")
        try:
            if self._conn is None:
                raise IOFailure(f"Store {self._path} is closed")
            try:
                yield self._conn
            except sqlite3.Error as e:
                if _is_busy(e):
                    raise LockTimeout(f"{self._path} is locked: {e}") from e
                if write:
                    raise WriteFailure(f"Write to {self._path} failed: {e}") from e
                raise IOFailure(f"Read from {self._path} failed: {e}") from e
        finally:
            self._lock.release()

    # ── Key/value helpers ───────────────────────────────────────

    def _get_value(self, key: str) -> str | None:
        with self._locked(write=False) as conn:
            row = conn.execute(
                f"SELECT value FROM {self.KV_TABLE} WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def _put_value(self, key: str, value: str) -> None:
        with self._locked(write=True) as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {self.KV_TABLE} (key, value) VALUES (?, ?)",
                (key, value),
            )

    def _delete_value(self, key: str) -> None:
        with self._locked(write=True) as conn:
            conn.execute(f"DELETE FROM {self.KV_TABLE} WHERE key = ?", (key,))


class ProjectStore(StoreHandle):
    """One project's scene data and asset metadata."""

    KV_TABLE = "kv_store"
    SCHEMA = (
        "CREATE TABLE IF NOT EXISTS kv_store (key TEXT PRIMARY KEY, value TEXT)",
        "CREATE TABLE IF NOT EXISTS assets ("
        " id TEXT PRIMARY KEY,"
        " name TEXT,"
        " mime_type TEXT"
        ")",
    )

    def get(self, key: str) -> str | None:
        """Return the stored blob for ``key``, or None."""
        return self._get_value(key)

    def put(self, key: str, value: str) -> None:
        """Upsert ``key`` (last write wins)."""
        self._put_value(key, value)

    def entries(self) -> list[KVEntry]:
        with self._locked(write=False) as conn:
            rows = conn.execute("SELECT key, value FROM kv_store ORDER BY key").fetchall()
        return [KVEntry(key=r[0], value=r[1] or "") for r in rows]

    def list_assets(self) -> list[AssetRecord]:
        with self._locked(write=False) as conn:
            rows = conn.execute(
                "SELECT id, name, mime_type FROM assets ORDER BY name, id"
            ).fetchall()
        return [AssetRecord(id=r[0], name=r[1] or r[0], mime_type=r[2] or "") for r in rows]

    def put_asset(self, record: AssetRecord) -> None:
        """Upsert an asset row keyed by id."""
        with self._locked(write=True) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO assets (id, name, mime_type) VALUES (?, ?, ?)",
                (record.id, record.name, record.mime_type),
            )

    def delete_asset(self, asset_id: str) -> None:
        """Remove an asset row.  Absent ids are not an error."""
        with self._locked(write=True) as conn:
            conn.execute("DELETE FROM assets WHERE id = ?", (asset_id,))

    def stats(self) -> dict[str, Any]:
        """Row counts, for status output."""
        with self._locked(write=False) as conn:
            kv = conn.execute("SELECT COUNT(*) FROM kv_store").fetchone()[0]
            assets = conn.execute("SELECT COUNT(*) FROM assets").fetchone()[0]
        return {"kv_entries": kv, "assets": assets}
