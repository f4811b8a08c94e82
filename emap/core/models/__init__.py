"""
Domain models for the Emap server.

    ProjectRecord  — registry identity (id, name, created_at)
    AssetRecord    — per-project media metadata
    KVEntry        — per-project scene data
    MonitorConfig  — system-wide monitor routing
"""

from emap.core.models.project import (
    AssetRecord,
    KVEntry,
    MonitorConfig,
    ProjectRecord,
)

__all__ = [
    "AssetRecord",
    "KVEntry",
    "MonitorConfig",
    "ProjectRecord",
]
