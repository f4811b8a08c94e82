"""
System config store — settings that outlive any single project.

Two entries in one key/value table:

    monitor_config  → MonitorConfig as JSON
    last_project    → id of the last loaded project
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from emap.core.models.project import MonitorConfig
from emap.core.persistence.store import StoreHandle

logger = logging.getLogger(__name__)

MONITOR_CONFIG_KEY = "monitor_config"
LAST_PROJECT_KEY = "last_project"


class ConfigStore(StoreHandle):
    """Monitor routing and the last-active-project pointer."""

    KV_TABLE = "system_data"
    SCHEMA = ("CREATE TABLE IF NOT EXISTS system_data (key TEXT PRIMARY KEY, value TEXT)",)

    def get_config(self) -> MonitorConfig | None:
        """Return the monitor config, or None if unset or unreadable."""
        raw = self._get_value(MONITOR_CONFIG_KEY)
        if raw is None:
            return None
        try:
            return MonitorConfig.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Corrupt monitor config in %s: %s — ignoring", self.path, e)
            return None

    def set_config(self, cfg: MonitorConfig) -> None:
        """Replace the monitor config wholesale."""
        self._put_value(MONITOR_CONFIG_KEY, json.dumps(cfg.model_dump(mode="json")))
        logger.info("Monitor config saved (control panel=%d)", cfg.control_panel_monitor_id)

    def get_last_project(self) -> str | None:
        return self._get_value(LAST_PROJECT_KEY) or None

    def set_last_project(self, project_id: str) -> None:
        self._put_value(LAST_PROJECT_KEY, project_id)

    def clear_last_project(self) -> None:
        self._delete_value(LAST_PROJECT_KEY)
