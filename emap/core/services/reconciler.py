"""
Orphan reconciler — startup cleanup of project storage with no registry row.

Runs once, synchronously, before the server accepts requests.  Registry
and filesystem can diverge after an unclean shutdown (directory created
but the insert failed, or a manual copy into the data directory); this
pass deletes whatever the registry does not know about.

Best effort: a removal that fails is logged and the pass continues.  The
remaining orphans are picked up on the next start.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from emap.core.persistence.layout import SIDECAR_SUFFIXES, StorageLayout
from emap.core.persistence.registry import RegistryStore

logger = logging.getLogger(__name__)


def _owner_id(entry: Path) -> str | None:
    """Project id an entry under the projects root belongs to, if any."""
    if entry.is_dir():
        return entry.name
    name = entry.name
    for suffix in SIDECAR_SUFFIXES:
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    if name.endswith(".db"):
        return name[:-3]
    return None


def reconcile_orphans(registry: RegistryStore, layout: StorageLayout) -> list[Path]:
    """Remove on-disk project directories and legacy files not in the registry.

    Args:
        registry: Open registry store (source of truth for ids).
        layout: Storage layout to scan.

    Returns:
        Paths that were removed.
    """
    root = layout.projects_root
    if not root.is_dir():
        logger.debug("No projects directory at %s — nothing to reconcile", root)
        return []

    known = registry.ids()
    removed: list[Path] = []

    for entry in sorted(root.iterdir()):
        if entry.name.startswith("."):
            continue
        owner = _owner_id(entry)
        if owner is None or owner in known:
            continue
        try:
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as e:
            logger.warning("Cannot remove orphan %s: %s — will retry next start", entry, e)
            continue
        removed.append(entry)
        logger.info("Removed orphaned project storage: %s", entry.name)

    if removed:
        logger.info("Reconciled %d orphan(s) under %s", len(removed), root)
    return removed
