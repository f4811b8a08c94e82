"""
On-disk layout — where every store lives under the data root.

    <data_dir>/system.db                 system config store
    <data_dir>/projects.db               project registry
    <data_dir>/projects/<id>/project.db  one store per project
    <data_dir>/projects/<id>.db          legacy per-project file

Every name that reaches a path join goes through ``bare_name`` first.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from emap.core.persistence.errors import IOFailure

logger = logging.getLogger(__name__)

SYSTEM_DB = "system.db"
REGISTRY_DB = "projects.db"
PROJECTS_DIR = "projects"
PROJECT_DB = "project.db"

# SQLite side files that travel with a database in WAL mode
SIDECAR_SUFFIXES = ("-wal", "-shm", "-journal")


def bare_name(raw: str) -> str:
    """Canonicalise a user-supplied name to a single path component.

    Raises:
        ValueError: If the name is empty, a dot entry, or carries any
            path separator or NUL.
    """
    name = (raw or "").strip()
    if not name or name in (".", ".."):
        raise ValueError(f"Invalid name: {raw!r}")
    if "/" in name or "\\" in name or "\x00" in name:
        raise ValueError(f"Invalid name (path separators not allowed): {raw!r}")
    return name


@dataclass(frozen=True)
class StorageLayout:
    """Deterministic paths for the three kinds of stores."""

    data_dir: Path

    @property
    def system_db(self) -> Path:
        return self.data_dir / SYSTEM_DB

    @property
    def registry_db(self) -> Path:
        return self.data_dir / REGISTRY_DB

    @property
    def projects_root(self) -> Path:
        return self.data_dir / PROJECTS_DIR

    def project_dir(self, project_id: str) -> Path:
        return self.projects_root / bare_name(project_id)

    def project_db(self, project_id: str) -> Path:
        return self.project_dir(project_id) / PROJECT_DB

    def legacy_project_file(self, project_id: str) -> Path:
        return self.projects_root / f"{bare_name(project_id)}.db"

    def ensure(self) -> None:
        """Create the data root and projects directory."""
        try:
            self.projects_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(f"Cannot create data directory {self.data_dir}: {e}") from e

    def remove_project(self, project_id: str) -> list[Path]:
        """Remove every on-disk trace of a project.  Missing paths are fine.

        The caller must have released any open handle first.

        Returns:
            The paths that were actually removed.

        Raises:
            IOFailure: If an existing path could not be removed.
        """
        removed: list[Path] = []
        directory = self.project_dir(project_id)
        legacy = self.legacy_project_file(project_id)
        targets = [directory, legacy] + [
            legacy.with_name(legacy.name + suffix) for suffix in SIDECAR_SUFFIXES
        ]
        for target in targets:
            try:
                if target.is_dir():
                    shutil.rmtree(target)
                elif target.exists():
                    target.unlink()
                else:
                    continue
            except OSError as e:
                raise IOFailure(f"Cannot remove {target}: {e}") from e
            removed.append(target)
            logger.debug("Removed %s", target)
        return removed
