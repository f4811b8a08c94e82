"""
Project API routes — registry and active-project lifecycle.

GET    /api/health                → liveness + whether a project is loaded
GET    /api/status                → data dir, counts, last project, active row counts
GET    /api/projects              → all projects, newest first
POST   /api/projects              → create {name} and make it active
DELETE /api/projects/<id>         → delete (idempotent)
POST   /api/projects/<id>/load    → make <id> the active project
POST   /api/project/unload        → empty the active slot
GET    /api/project/active        → active project, or {"loaded": false}
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from emap.ui.web.helpers import NOTHING_LOADED, service

logger = logging.getLogger(__name__)

projects_bp = Blueprint("projects", __name__)


@projects_bp.route("/health")
def api_health():  # type: ignore[no-untyped-def]
    return jsonify({"status": "ok", "active": service().slot().loaded})


@projects_bp.route("/status")
def api_status():  # type: ignore[no-untyped-def]
    return jsonify(service().status())


@projects_bp.route("/projects")
def api_projects_list():  # type: ignore[no-untyped-def]
    records = service().list_projects()
    return jsonify([r.model_dump() for r in records])


@projects_bp.route("/projects", methods=["POST"])
def api_projects_create():  # type: ignore[no-untyped-def]
    """Create a project.

    JSON body:
        name: display name
    """
    data = request.get_json(silent=True) or {}
    name = str(data.get("name", "")).strip()
    if not name:
        return jsonify({"error": "Missing 'name'"}), 400

    record = service().create(name)
    return jsonify(record.model_dump()), 201


@projects_bp.route("/projects/<project_id>", methods=["DELETE"])
def api_projects_delete(project_id: str):  # type: ignore[no-untyped-def]
    try:
        was_active = service().delete(project_id)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"deleted": project_id, "was_active": was_active})


@projects_bp.route("/projects/<project_id>/load", methods=["POST"])
def api_projects_load(project_id: str):  # type: ignore[no-untyped-def]
    try:
        record = service().load(project_id)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"loaded": True, **record.model_dump()})


@projects_bp.route("/project/unload", methods=["POST"])
def api_project_unload():  # type: ignore[no-untyped-def]
    service().unload()
    return jsonify({"loaded": False})


@projects_bp.route("/project/active")
def api_project_active():  # type: ignore[no-untyped-def]
    record = service().active()
    if record is None:
        return jsonify(NOTHING_LOADED)
    return jsonify({"loaded": True, **record.model_dump()})
