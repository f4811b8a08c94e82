"""
Server settings — where data lives and how the server behaves.

Loaded from emap.yml (optional); every field has a working default so a
fresh checkout runs with no config file at all.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class ServerSettings(BaseModel):
    """Runtime settings for the Emap server."""

    data_dir: Path = Path("data")
    assets_dir: Path = Path("assets")

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)

    # Seconds a store or the active slot may be waited on before LockTimeout
    lock_timeout: float = Field(default=5.0, gt=0)

    # Reload the last active project on start (off: start with nothing loaded)
    auto_load_last_project: bool = False

    max_upload_mb: int = Field(default=1024, ge=1)

    def resolve_paths(self, base: Path) -> ServerSettings:
        """Return a copy with relative directories anchored at ``base``."""
        data_dir = self.data_dir if self.data_dir.is_absolute() else base / self.data_dir
        assets_dir = self.assets_dir if self.assets_dir.is_absolute() else base / self.assets_dir
        return self.model_copy(update={"data_dir": data_dir, "assets_dir": assets_dir})
