"""
Asset file operations — import, upload, read and browse media files.

Channel-independent: no Flask or HTTP dependency.

Asset files live in one shared assets directory; each project's store
only keeps metadata rows pointing at them by filename.  File and row
lifecycles are separate: deleting a row never deletes the file.
"""

from __future__ import annotations

import logging
import mimetypes
import shutil
from pathlib import Path
from typing import Any

from emap.core.models.project import AssetRecord
from emap.core.persistence.errors import Conflict, IOFailure, NotFound
from emap.core.persistence.layout import bare_name

logger = logging.getLogger(__name__)


_EXT_MIME: dict[str, str] = {
    # Images
    ".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".png": "image/png",
    ".gif": "image/gif", ".webp": "image/webp", ".svg": "image/svg+xml",
    ".bmp": "image/bmp", ".avif": "image/avif",
    # Video
    ".mp4": "video/mp4", ".webm": "video/webm", ".mov": "video/quicktime",
    ".mkv": "video/x-matroska", ".ogv": "video/ogg", ".m4v": "video/mp4",
    # Audio
    ".mp3": "audio/mpeg", ".wav": "audio/wav", ".ogg": "audio/ogg",
}


def safe_filename(raw: str) -> str:
    """Reduce a user-supplied filename to a bare name or raise ValueError."""
    return bare_name(raw)


def guess_mime(filename: str) -> str:
    """Resolve MIME type from filename.

    Uses a hardcoded table for projection media first (stdlib misses
    .webp, .mkv on some platforms), then ``mimetypes.guess_type``.
    """
    ext = Path(filename).suffix.lower()
    if ext in _EXT_MIME:
        return _EXT_MIME[ext]
    guessed = mimetypes.guess_type(filename)[0]
    return guessed or "application/octet-stream"


def format_size(size_bytes: int) -> str:
    """Format bytes into a human-readable string."""
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.2f} KB"
    return f"{size_bytes} B"


# ── Import / upload ─────────────────────────────────────────────


def _check_target(dest: Path, overwrite: bool) -> None:
    if dest.exists() and not overwrite:
        raise Conflict(f"Asset '{dest.name}' already exists")


def import_file(source: Path | str, assets_dir: Path, *, overwrite: bool = False) -> AssetRecord:
    """Copy a file from anywhere on disk into the assets directory.

    A file that already sits in the assets directory is registered as-is.

    Raises:
        NotFound: The source does not exist or is not a file.
        Conflict: A different file with that name exists and ``overwrite`` is off.
        IOFailure: The copy failed.
    """
    src = Path(source)
    if not src.is_file():
        raise NotFound(f"File not found: {src}")

    name = safe_filename(src.name)
    assets_dir.mkdir(parents=True, exist_ok=True)
    dest = assets_dir / name

    if src.resolve().parent != assets_dir.resolve():
        _check_target(dest, overwrite)
        try:
            shutil.copy2(src, dest)
        except OSError as e:
            raise IOFailure(f"Cannot copy {src} → {dest}: {e}") from e
        logger.info("Imported asset %s from %s", name, src.parent)
    else:
        logger.debug("Asset %s already in assets dir — registering only", name)

    return AssetRecord(id=name, name=name, mime_type=guess_mime(name))


def save_upload(
    data: bytes,
    filename: str,
    assets_dir: Path,
    *,
    overwrite: bool = False,
) -> AssetRecord:
    """Write uploaded bytes into the assets directory.

    Raises:
        ValueError: Unsafe filename.
        Conflict: The file exists and ``overwrite`` is off.
        IOFailure: The write failed.
    """
    name = safe_filename(filename)
    assets_dir.mkdir(parents=True, exist_ok=True)
    dest = assets_dir / name
    _check_target(dest, overwrite)
    try:
        dest.write_bytes(data)
    except OSError as e:
        raise IOFailure(f"Failed to save {name}: {e}") from e
    logger.info("Saved upload %s (%s)", name, format_size(len(data)))
    return AssetRecord(id=name, name=name, mime_type=guess_mime(name))


def asset_path(asset_id: str, assets_dir: Path) -> Path:
    """Path of an asset file.

    Raises:
        ValueError: Unsafe id.
        NotFound: No such file.
    """
    path = assets_dir / safe_filename(asset_id)
    if not path.is_file():
        raise NotFound(f"Asset not found: {asset_id}")
    return path


# ── Browse ──────────────────────────────────────────────────────


def list_directory(path: str | None, assets_dir: Path) -> dict[str, Any]:
    """List a directory for the import browser.

    Empty ``path`` lists the assets directory.  Hidden entries are
    skipped; directories sort before files, then by name.  An unreadable
    or missing directory yields an empty listing.
    """
    current = (path or "").strip()
    target = Path(current) if current else assets_dir

    items: list[dict[str, str]] = []
    try:
        entries = list(target.iterdir())
    except OSError as e:
        logger.debug("Cannot list %s: %s", target, e)
        entries = []

    for entry in entries:
        if entry.name.startswith("."):
            continue
        try:
            is_dir = entry.is_dir()
            size = 0 if is_dir else entry.stat().st_size
        except OSError:
            is_dir, size = False, 0
        items.append({
            "name": entry.name,
            "path": str(entry),
            "type": "dir" if is_dir else "file",
            "size": "" if is_dir else format_size(size),
        })

    items.sort(key=lambda i: (i["type"] != "dir", i["name"]))
    return {"path": current, "items": items}
