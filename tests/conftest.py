"""
Shared test fixtures and configuration.
"""

from collections.abc import Iterator
from pathlib import Path

import pytest

from emap.core.services.project_lifecycle import ProjectService


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Return a temporary data directory (not yet created)."""
    return tmp_path / "data"


@pytest.fixture
def assets_dir(tmp_path: Path) -> Path:
    """Return a temporary assets directory."""
    d = tmp_path / "assets"
    d.mkdir()
    return d


@pytest.fixture
def service(data_dir: Path) -> Iterator[ProjectService]:
    """An opened project service with a short lock timeout."""
    svc = ProjectService.open(data_dir, lock_timeout=1.0)
    yield svc
    svc.close()
