"""
Project registry — the durable list of every known project.

Independent of which project is active.  One row per project; the id is
a uuid4 hex string generated here and never reused.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import UTC, datetime

from emap.core.models.project import ProjectRecord
from emap.core.persistence.errors import DuplicateId
from emap.core.persistence.store import StoreHandle

logger = logging.getLogger(__name__)


class RegistryStore(StoreHandle):
    """Project identity records: list, insert, delete."""

    SCHEMA = (
        "CREATE TABLE IF NOT EXISTS projects ("
        " id TEXT PRIMARY KEY,"
        " name TEXT NOT NULL,"
        " created_at TEXT NOT NULL"
        ")",
    )

    def list(self) -> list[ProjectRecord]:
        """All projects, newest first."""
        with self._locked(write=False) as conn:
            rows = conn.execute(
                "SELECT id, name, created_at FROM projects ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [ProjectRecord(id=r[0], name=r[1], created_at=r[2]) for r in rows]

    def get(self, project_id: str) -> ProjectRecord | None:
        with self._locked(write=False) as conn:
            row = conn.execute(
                "SELECT id, name, created_at FROM projects WHERE id = ?", (project_id,)
            ).fetchone()
        if row is None:
            return None
        return ProjectRecord(id=row[0], name=row[1], created_at=row[2])

    def ids(self) -> set[str]:
        with self._locked(write=False) as conn:
            rows = conn.execute("SELECT id FROM projects").fetchall()
        return {r[0] for r in rows}

    def insert(self, name: str, *, project_id: str | None = None) -> ProjectRecord:
        """Create a project row with a fresh id and the current time.

        Raises:
            DuplicateId: The id already exists.  Not retried.
        """
        record = ProjectRecord(
            id=project_id or uuid.uuid4().hex,
            name=name,
            created_at=datetime.now(UTC).isoformat(),
        )
        with self._locked(write=True) as conn:
            try:
                conn.execute(
                    "INSERT INTO projects (id, name, created_at) VALUES (?, ?, ?)",
                    (record.id, record.name, record.created_at),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateId(f"Project id collision: {record.id}") from e
        logger.info("Registered project '%s' (%s)", record.name, record.id)
        return record

    def delete(self, project_id: str) -> bool:
        """Remove a project row.  Returns whether a row existed; never raises for absent ids."""
        with self._locked(write=True) as conn:
            cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            existed = cur.rowcount > 0
        if existed:
            logger.info("Unregistered project %s", project_id)
        return existed
