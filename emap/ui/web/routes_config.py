"""
System config API — monitor routing, stored independently of any project.

GET  /api/config/monitor   → current MonitorConfig, or {"configured": false}
POST /api/config/monitor   → replace it
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from emap.core.models.project import MonitorConfig
from emap.ui.web.helpers import service

logger = logging.getLogger(__name__)

config_bp = Blueprint("config", __name__)


@config_bp.route("/config/monitor")
def api_monitor_config_read():  # type: ignore[no-untyped-def]
    cfg = service().get_monitor_config()
    if cfg is None:
        return jsonify({"configured": False})
    return jsonify({"configured": True, **cfg.model_dump()})


@config_bp.route("/config/monitor", methods=["POST"])
def api_monitor_config_save():  # type: ignore[no-untyped-def]
    """Save the monitor assignment.

    JSON body:
        control_panel_monitor_id: int
        projection_monitor_ids: list[int] (optional)
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a JSON object"}), 400
    try:
        cfg = MonitorConfig.model_validate(data)
    except ValidationError as e:
        return jsonify({"error": f"Invalid monitor config: {e.errors()[0]['msg']}"}), 400

    service().set_monitor_config(cfg)
    return jsonify({"saved": True, **cfg.model_dump()})
