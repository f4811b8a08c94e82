"""
Scene data API — key/value blobs in the active project.

GET  /api/kv         → keys in the active project
GET  /api/kv/<key>   → stored JSON text as-is, 404 if the key is unset
POST /api/kv/<key>   → upsert raw request body

With no project loaded the listing is empty and the per-key routes
answer 200 ``{"loaded": false}``.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, jsonify, request

from emap.core.persistence.errors import NO_ACTIVE_PROJECT
from emap.ui.web.helpers import NOTHING_LOADED, service

logger = logging.getLogger(__name__)

kv_bp = Blueprint("kv", __name__)


@kv_bp.route("/kv")
def api_kv_list():  # type: ignore[no-untyped-def]
    entries = service().list_kv()
    if entries is NO_ACTIVE_PROJECT:
        return jsonify([])
    return jsonify([e.key for e in entries])


@kv_bp.route("/kv/<key>")
def api_kv_get(key: str):  # type: ignore[no-untyped-def]
    value = service().get_kv(key)
    if value is NO_ACTIVE_PROJECT:
        return jsonify(NOTHING_LOADED)
    if value is None:
        return jsonify({"error": f"No value for '{key}'"}), 404
    return Response(value, mimetype="application/json")


@kv_bp.route("/kv/<key>", methods=["POST"])
def api_kv_put(key: str):  # type: ignore[no-untyped-def]
    body = request.get_data(as_text=True)
    if service().put_kv(key, body) is NO_ACTIVE_PROJECT:
        return jsonify({**NOTHING_LOADED, "saved": False})
    logger.debug("Saved kv '%s' (%d chars)", key, len(body))
    return jsonify({"saved": True, "key": key})
