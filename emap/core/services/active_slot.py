"""
Active project slot — the one swappable reference to the live project.

Thread safety model
───────────────────
- ``ActiveProjectSlot`` is a frozen value: an id and a handle, both set
  or both None.  It is never mutated, only replaced.
- ``SlotHolder._lock`` guards the single current slot.  ``install()``,
  ``clear()`` and ``retire()`` replace it wholesale, so readers see
  either the old pair or the new pair, never a mix.
- ``use()`` keeps the lock held while the caller runs against the
  handle.  A replacement therefore waits for in-flight reads/writes on
  the old handle and the old handle is never closed under a running
  statement.
- Closing a replaced handle happens after the replacement, still inside the
  lock, so no other thread can reach it.
- ``then`` and ``cleanup`` callbacks run while the slot lock is held.
  Lock order is always slot lock first, then any store handle lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TypeVar

from emap.core.persistence.errors import LockTimeout
from emap.core.persistence.store import DEFAULT_LOCK_TIMEOUT, ProjectStore

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


@dataclass(frozen=True)
class ActiveProjectSlot:
    """Current project id and its open store, or neither."""

    project_id: str | None = None
    handle: ProjectStore | None = None

    def __post_init__(self) -> None:
        if (self.project_id is None) != (self.handle is None):
            raise ValueError("project_id and handle must both be set or both be None")

    @property
    def loaded(self) -> bool:
        return self.project_id is not None


EMPTY_SLOT = ActiveProjectSlot()


class SlotHolder:
    """Lock-guarded owner of the current ``ActiveProjectSlot``.

    Args:
        lock_timeout: Seconds to wait for the slot lock before raising
            ``LockTimeout``.
    """

    def __init__(self, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self._lock = threading.Lock()
        self._slot: ActiveProjectSlot = EMPTY_SLOT
        self._lock_timeout = lock_timeout

    @contextmanager
    def _held(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise LockTimeout("Timed out waiting for the active project slot")
        try:
            yield
        finally:
            self._lock.release()

    def snapshot(self) -> ActiveProjectSlot:
        """The current slot value.  Do not run statements on its handle."""
        with self._held():
            return self._slot

    @contextmanager
    def use(self) -> Iterator[ActiveProjectSlot]:
        """Hold the slot for the duration of one read-through operation."""
        with self._held():
            yield self._slot

    def install(
        self,
        project_id: str,
        opener: Callable[[], ProjectStore],
        then: Callable[[], None] | None = None,
    ) -> bool:
        """Make ``project_id`` active, opening its store under the slot lock.

        ``then`` runs before the lock is released, whether or not the slot
        changed.  If ``opener`` raises, the slot is left exactly as it was
        and ``then`` does not run.

        Returns:
            False if ``project_id`` was already active (nothing opened).
        """
        with self._held():
            old = self._slot
            changed = old.project_id != project_id
            if changed:
                handle = opener()
                self._slot = ActiveProjectSlot(project_id, handle)
                if old.handle is not None:
                    old.handle.close()
            if then is not None:
                then()
        if changed:
            logger.info("Active project: %s → %s", old.project_id or "(none)", project_id)
        return changed

    def clear(self, then: Callable[[], None] | None = None) -> ActiveProjectSlot:
        """Empty the slot, closing the current handle.

        ``then`` runs before the lock is released.

        Returns:
            The previous slot (its handle already closed).
        """
        with self._held():
            old = self._slot
            self._slot = EMPTY_SLOT
            if old.handle is not None:
                old.handle.close()
            if then is not None:
                then()
        if old.loaded:
            logger.info("Active project: %s → (none)", old.project_id)
        return old

    def retire(self, project_id: str, cleanup: Callable[[bool], _T]) -> tuple[bool, _T]:
        """Empty the slot if ``project_id`` is active, then run ``cleanup``.

        Both happen under one lock acquisition, so no ``install`` can
        reopen the project between the handle closing and ``cleanup``
        removing its storage.  ``cleanup`` receives whether the project
        was active.

        Returns:
            (was_active, cleanup result)
        """
        with self._held():
            old = self._slot
            was_active = old.project_id == project_id
            if was_active:
                self._slot = EMPTY_SLOT
                if old.handle is not None:
                    old.handle.close()
            result = cleanup(was_active)
        if was_active:
            logger.info("Active project: %s → (none)", project_id)
        return was_active, result
