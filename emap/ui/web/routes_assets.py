"""
Asset API — media files on disk and their rows in the active project.

GET    /api/assets          → asset rows of the active project ([] if none loaded)
POST   /api/asset/import    → copy {path} into the assets dir and register it
POST   /api/asset/<id>      → upload raw body (name from X-Asset-Name)
GET    /api/asset/<id>      → file bytes
DELETE /api/asset/<id>      → drop the row only; the file stays
GET    /api/fs/list?path=   → directory listing for the import browser

Import and upload refuse to replace an existing file with 409 unless
``overwrite`` is set (JSON field for import, ``?overwrite=1`` for upload).
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request, send_file

from emap.core.persistence.errors import NO_ACTIVE_PROJECT
from emap.core.services import asset_files
from emap.ui.web.helpers import NOTHING_LOADED, assets_dir, service

logger = logging.getLogger(__name__)

assets_bp = Blueprint("assets", __name__)

_TRUTHY = ("1", "true", "yes", "on")


@assets_bp.route("/assets")
def api_assets_list():  # type: ignore[no-untyped-def]
    rows = service().list_assets()
    if rows is NO_ACTIVE_PROJECT:
        return jsonify([])
    return jsonify([r.model_dump() for r in rows])


@assets_bp.route("/asset/import", methods=["POST"])
def api_asset_import():  # type: ignore[no-untyped-def]
    """Import a file from the local filesystem.

    JSON body:
        path: absolute path of the source file
        overwrite: replace an existing asset with the same name
    """
    data = request.get_json(silent=True) or {}
    src = str(data.get("path", "")).strip()
    if not src:
        return jsonify({"error": "Missing 'path'"}), 400

    try:
        record = asset_files.import_file(src, assets_dir(), overwrite=bool(data.get("overwrite")))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if service().put_asset(record) is NO_ACTIVE_PROJECT:
        return jsonify({**NOTHING_LOADED, "file": record.name, "registered": False})
    return jsonify({"imported": True, **record.model_dump()})


@assets_bp.route("/asset/<asset_id>", methods=["POST"])
def api_asset_upload(asset_id: str):  # type: ignore[no-untyped-def]
    filename = request.headers.get("X-Asset-Name") or asset_id
    overwrite = request.args.get("overwrite", "").lower() in _TRUTHY
    try:
        record = asset_files.save_upload(
            request.get_data(), filename, assets_dir(), overwrite=overwrite,
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if service().put_asset(record) is NO_ACTIVE_PROJECT:
        return jsonify({**NOTHING_LOADED, "file": record.name, "registered": False})
    return jsonify({"saved": True, **record.model_dump()})


@assets_bp.route("/asset/<asset_id>")
def api_asset_get(asset_id: str):  # type: ignore[no-untyped-def]
    try:
        path = asset_files.asset_path(asset_id, assets_dir())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return send_file(path, mimetype=asset_files.guess_mime(path.name))


@assets_bp.route("/asset/<asset_id>", methods=["DELETE"])
def api_asset_delete(asset_id: str):  # type: ignore[no-untyped-def]
    if service().delete_asset(asset_id) is NO_ACTIVE_PROJECT:
        return jsonify({**NOTHING_LOADED, "deleted": False})
    return jsonify({"deleted": asset_id})


@assets_bp.route("/fs/list")
def api_fs_list():  # type: ignore[no-untyped-def]
    return jsonify(asset_files.list_directory(request.args.get("path"), assets_dir()))
