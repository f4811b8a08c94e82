"""
Web server — Flask app factory.

Creates the Flask application that backs the projection UI.  The app
holds one ``ProjectService`` (in ``app.extensions["emap"]``); the
reconciler runs inside ``create_app`` so it always finishes before the
first request.  Flask's threaded server is the worker pool: handlers
run concurrently and only hold store locks for their own DB work.
"""

from __future__ import annotations

import logging

from flask import Flask

from emap.core.models.settings import ServerSettings
from emap.core.persistence.errors import StoreError
from emap.core.services.project_lifecycle import ProjectService
from emap.ui.web.helpers import EXTENSION_KEY, store_error_response

logger = logging.getLogger(__name__)


def create_app(
    settings: ServerSettings | None = None,
    service: ProjectService | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        settings: Server settings (default: all defaults, cwd-relative).
        service: An already-started service.  When omitted one is opened
            from ``settings.data_dir`` and started (reconcile + optional
            auto-load).

    Returns:
        Configured Flask application.
    """
    settings = settings or ServerSettings()

    app = Flask(__name__)
    app.config["EMAP_SETTINGS"] = settings
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024

    if service is None:
        service = ProjectService.open(
            settings.data_dir,
            lock_timeout=settings.lock_timeout,
            auto_load_last_project=settings.auto_load_last_project,
        )
        service.start()
    app.extensions[EXTENSION_KEY] = service

    settings.assets_dir.mkdir(parents=True, exist_ok=True)

    from emap.ui.web.routes_assets import assets_bp
    from emap.ui.web.routes_config import config_bp
    from emap.ui.web.routes_kv import kv_bp
    from emap.ui.web.routes_projects import projects_bp

    app.register_blueprint(projects_bp, url_prefix="/api")
    app.register_blueprint(kv_bp, url_prefix="/api")
    app.register_blueprint(assets_bp, url_prefix="/api")
    app.register_blueprint(config_bp, url_prefix="/api")

    app.register_error_handler(StoreError, store_error_response)

    logger.info("Web app created (data=%s)", settings.data_dir)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8080,
    debug: bool = False,
) -> None:
    """Run the threaded Flask server until interrupted, then close the stores."""
    logger.info("Starting server on http://%s:%d", host, port)
    try:
        app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
    finally:
        app.extensions[EXTENSION_KEY].close()
