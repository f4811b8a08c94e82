"""
Configuration loader — reads emap.yml into ServerSettings.

The file is optional.  Values resolve in precedence order:

    EMAP_* env vars  >  emap.yml  >  model defaults

Relative directories are anchored at the config file's directory, or at
the working directory when there is no file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from emap.core.models.settings import ServerSettings

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "emap.yml"

# env var → settings field
_ENV_OVERRIDES = {
    "EMAP_DATA_DIR": "data_dir",
    "EMAP_ASSETS_DIR": "assets_dir",
    "EMAP_HOST": "host",
    "EMAP_PORT": "port",
    "EMAP_AUTO_LOAD": "auto_load_last_project",
}


class ConfigError(Exception):
    """Raised when the server configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for emap.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to emap.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may wrap everything under a "server" key or be flat
    if "server" not in data:
        return data
    section = data["server"]
    if not isinstance(section, dict):
        raise ConfigError(
            f"Expected a mapping under 'server' in {path}, got {type(section).__name__}"
        )
    return section


def load_settings(
    path: Path | None = None,
    *,
    env: dict[str, str] | None = None,
) -> ServerSettings:
    """Load and validate server settings.

    Args:
        path: Explicit path to emap.yml. If None, searches upward from cwd.
        env: Environment mapping (default: ``os.environ``).

    Returns:
        Validated settings with absolute directories.

    Raises:
        ConfigError: An explicit path is missing, or the file is invalid.
    """
    env = os.environ if env is None else env

    if path is not None and not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    if path is None:
        path = find_config_file()

    data: dict[str, Any] = {}
    if path is not None:
        logger.debug("Loading server config from %s", path)
        data = dict(_read_yaml(path))
        base = path.parent.resolve()
    else:
        base = Path.cwd()

    for var, field in _ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data[field] = value

    try:
        settings = ServerSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid server configuration: {e}") from e

    settings = settings.resolve_paths(base)
    logger.info("Settings loaded (data=%s, assets=%s)", settings.data_dir, settings.assets_dir)
    return settings
