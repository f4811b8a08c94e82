"""
Shared helpers for the API blueprints.

Every blueprint reaches the service and settings through these, never
through module globals, so tests can build as many apps as they like.
"""

from __future__ import annotations

from pathlib import Path

from flask import current_app, jsonify

from emap.core.models.settings import ServerSettings
from emap.core.persistence.errors import (
    Conflict,
    LockTimeout,
    NotFound,
    StoreError,
)
from emap.core.services.project_lifecycle import ProjectService

EXTENSION_KEY = "emap"

# Body returned whenever an operation needs a project and none is loaded
NOTHING_LOADED = {"loaded": False, "message": "No project loaded"}


def service() -> ProjectService:
    return current_app.extensions[EXTENSION_KEY]


def settings() -> ServerSettings:
    return current_app.config["EMAP_SETTINGS"]


def assets_dir() -> Path:
    return settings().assets_dir


def store_error_response(e: StoreError):  # type: ignore[no-untyped-def]
    """Map a store failure to a JSON error and status code."""
    if isinstance(e, NotFound):
        status = 404
    elif isinstance(e, Conflict):
        status = 409
    elif isinstance(e, LockTimeout):
        status = 503
    else:
        status = 500
    return jsonify({"error": str(e), "kind": type(e).__name__}), status
