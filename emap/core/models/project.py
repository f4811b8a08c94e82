"""
Project models — identity, asset metadata and monitor routing.

ProjectRecord lives in the registry store, AssetRecord in a project's own
store, MonitorConfig in the system config store.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ProjectRecord(BaseModel):
    """Identity of one project.  Immutable once inserted."""

    id: str
    name: str
    created_at: str = Field(default_factory=_now_iso)


class AssetRecord(BaseModel):
    """Metadata row for an imported or uploaded media file.

    The id is the bare filename.  Deleting the row never touches the file.
    """

    id: str
    name: str
    mime_type: str = "application/octet-stream"


class KVEntry(BaseModel):
    """A scene/document blob keyed by name (value is opaque JSON text)."""

    key: str
    value: str


class MonitorConfig(BaseModel):
    """Which monitor shows the control panel and which ones project."""

    control_panel_monitor_id: int
    projection_monitor_ids: list[int] = Field(default_factory=list)
