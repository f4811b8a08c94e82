"""
Project lifecycle — create, load, delete and read through the active project.

``ProjectService`` is built once at startup and handed to every request
handler.  It owns three lock-guarded resources:

    registry  — RegistryStore (its own lock)
    config    — ConfigStore (its own lock)
    slot      — SlotHolder (current id + per-project ProjectStore)

Locks are always taken slot first.  Read-through accessors hold the slot
lock around the per-project handle's lock.  Create, Load, Unload and
Delete write the last-project pointer (and Delete the registry and the
files) while still holding the slot lock, so the four are linearizable
against each other.  The registry and config locks are never held while
waiting for the slot lock.

Create and Delete span several stores and are not transactional.  A
crash between steps leaves a registry row without storage or storage
without a row; the orphan reconciler cleans that up on the next start.
The in-memory slot, by contrast, is always consistent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from emap.core.models.project import AssetRecord, KVEntry, MonitorConfig, ProjectRecord
from emap.core.persistence.errors import (
    NO_ACTIVE_PROJECT,
    IOFailure,
    NoActiveProjectType,
    NotFound,
    SchemaFailure,
    StoreError,
)
from emap.core.persistence.layout import StorageLayout, bare_name
from emap.core.persistence.registry import RegistryStore
from emap.core.persistence.store import DEFAULT_LOCK_TIMEOUT, ProjectStore
from emap.core.persistence.system_config import ConfigStore
from emap.core.services.active_slot import ActiveProjectSlot, SlotHolder
from emap.core.services.reconciler import reconcile_orphans

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class ProjectService:
    """Owner of the registry, the system config and the active project slot.

    Use ``ProjectService.open()`` to build one from a data directory.
    """

    def __init__(
        self,
        layout: StorageLayout,
        registry: RegistryStore,
        config: ConfigStore,
        *,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        auto_load_last_project: bool = False,
    ) -> None:
        self._layout = layout
        self._registry = registry
        self._config = config
        self._slot = SlotHolder(lock_timeout=lock_timeout)
        self._lock_timeout = lock_timeout
        self.auto_load_last_project = auto_load_last_project

    @classmethod
    def open(
        cls,
        data_dir: Path,
        *,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        auto_load_last_project: bool = False,
    ) -> ProjectService:
        """Open the registry and config stores under ``data_dir``.

        Raises:
            IOFailure / SchemaFailure: A store could not be opened.
        """
        layout = StorageLayout(Path(data_dir))
        layout.ensure()
        registry = RegistryStore.open(layout.registry_db, lock_timeout=lock_timeout)
        try:
            config = ConfigStore.open(layout.system_db, lock_timeout=lock_timeout)
        except StoreError:
            registry.close()
            raise
        logger.info("Project service opened (data=%s)", layout.data_dir)
        return cls(
            layout,
            registry,
            config,
            lock_timeout=lock_timeout,
            auto_load_last_project=auto_load_last_project,
        )

    # ── Properties ──────────────────────────────────────────────

    @property
    def layout(self) -> StorageLayout:
        return self._layout

    @property
    def registry(self) -> RegistryStore:
        return self._registry

    @property
    def config(self) -> ConfigStore:
        return self._config

    def slot(self) -> ActiveProjectSlot:
        """Current slot value (for status and tests)."""
        return self._slot.snapshot()

    # ── Startup / shutdown ──────────────────────────────────────

    def start(self) -> list[Path]:
        """Reconcile orphans, then optionally reload the last project.

        Must run before the first request is served.

        Returns:
            Paths removed by the reconciler.
        """
        removed = reconcile_orphans(self._registry, self._layout)

        if self.auto_load_last_project:
            last = self._config.get_last_project()
            if last:
                try:
                    self.load(last)
                    logger.info("Auto-loaded last project %s", last)
                except (StoreError, ValueError) as e:
                    logger.warning("Cannot auto-load last project %s: %s", last, e)
                    self._config.clear_last_project()
        return removed

    def close(self) -> None:
        """Release every handle.  The last-project pointer is kept."""
        self._slot.clear()
        self._registry.close()
        self._config.close()
        logger.info("Project service closed")

    # ── Lifecycle ───────────────────────────────────────────────

    def list_projects(self) -> list[ProjectRecord]:
        return self._registry.list()

    def create(self, name: str) -> ProjectRecord:
        """Register a project, create its store and make it active.

        If the store cannot be created the registry row is left behind
        for the reconciler; the slot is untouched.

        Raises:
            ValueError: Empty name.
            IOFailure / SchemaFailure: The project store could not be created.
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Project name must not be empty")

        record = self._registry.insert(name)
        self._slot.install(
            record.id, self._opener(record.id), then=lambda: self._remember(record.id),
        )
        return record

    def load(self, project_id: str) -> ProjectRecord:
        """Make ``project_id`` the active project.

        A missing registry row is tolerated (logged); only a store that
        cannot be opened at all is an error.  Loading the active project
        again is a no-op.

        Raises:
            ValueError: The id is not a bare name.
            NotFound: The project store could not be opened.
        """
        project_id = bare_name(project_id)
        record = self._registry.get(project_id)
        if record is None:
            logger.warning("Loading %s with no registry entry", project_id)
            record = ProjectRecord(id=project_id, name=project_id)

        try:
            self._slot.install(
                project_id, self._opener(project_id), then=lambda: self._remember(project_id),
            )
        except (IOFailure, SchemaFailure) as e:
            raise NotFound(f"Cannot open project {project_id}: {e}") from e
        return record

    def unload(self) -> None:
        """Empty the slot and forget the last project."""
        self._slot.clear(then=self._config.clear_last_project)

    def delete(self, project_id: str) -> bool:
        """Delete a project: unload if active, unregister, remove storage.

        The whole delete runs under the slot lock: the handle is released
        before any file is removed, and a concurrent load of the same id
        waits until the storage is gone.  Unknown ids are not an error.

        Returns:
            Whether the deleted project was the active one.

        Raises:
            ValueError: The id is not a bare name.
            IOFailure: Storage exists but could not be removed.
        """
        project_id = bare_name(project_id)

        def remove(was_active: bool) -> list[Path]:
            if was_active or self._config.get_last_project() == project_id:
                self._config.clear_last_project()
            self._registry.delete(project_id)
            return self._layout.remove_project(project_id)

        was_active, removed = self._slot.retire(project_id, remove)
        logger.info(
            "Deleted project %s (active=%s, %d path(s) removed)",
            project_id, was_active, len(removed),
        )
        return was_active

    def active(self) -> ProjectRecord | None:
        """Identity of the active project, or None."""
        current = self._slot.snapshot()
        if current.project_id is None:
            return None
        record = self._registry.get(current.project_id)
        return record or ProjectRecord(id=current.project_id, name=current.project_id)

    # ── Read-through accessors ──────────────────────────────────

    def get_kv(self, key: str) -> str | None | NoActiveProjectType:
        return self._with_active(lambda store: store.get(key))

    def put_kv(self, key: str, value: str) -> None | NoActiveProjectType:
        return self._with_active(lambda store: store.put(key, value))

    def list_kv(self) -> list[KVEntry] | NoActiveProjectType:
        return self._with_active(lambda store: store.entries())

    def list_assets(self) -> list[AssetRecord] | NoActiveProjectType:
        return self._with_active(lambda store: store.list_assets())

    def put_asset(self, record: AssetRecord) -> None | NoActiveProjectType:
        return self._with_active(lambda store: store.put_asset(record))

    def delete_asset(self, asset_id: str) -> None | NoActiveProjectType:
        return self._with_active(lambda store: store.delete_asset(asset_id))

    # ── System config ───────────────────────────────────────────

    def get_monitor_config(self) -> MonitorConfig | None:
        return self._config.get_config()

    def set_monitor_config(self, cfg: MonitorConfig) -> None:
        self._config.set_config(cfg)

    def status(self) -> dict[str, Any]:
        """Summary for the status command and endpoint."""
        stats = self._with_active(lambda store: store.stats())
        return {
            "data_dir": str(self._layout.data_dir),
            "projects": len(self._registry.ids()),
            "active": self._slot.snapshot().project_id,
            "active_stats": stats or None,
            "last_project": self._config.get_last_project(),
            "auto_load_last_project": self.auto_load_last_project,
        }

    # ── Internal ────────────────────────────────────────────────

    def _opener(self, project_id: str) -> Callable[[], ProjectStore]:
        path = self._layout.project_db(project_id)
        return lambda: ProjectStore.open(path, lock_timeout=self._lock_timeout)

    def _with_active(self, op: Callable[[ProjectStore], _T]) -> _T | NoActiveProjectType:
        with self._slot.use() as current:
            if current.handle is None:
                return NO_ACTIVE_PROJECT
            return op(current.handle)

    def _remember(self, project_id: str) -> None:
        # The pointer only matters for auto-load; the slot is already consistent.
        try:
            self._config.set_last_project(project_id)
        except StoreError as e:
            logger.warning("Cannot persist last project %s: %s", project_id, e)
