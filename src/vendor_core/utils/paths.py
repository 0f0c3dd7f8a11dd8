from __future__ import annotations

import logging
import shutil
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

logger = logging.getLogger("vendor_core.utils")


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_plain_filename(name: str) -> bool:
    """True when ``name`` names a file directly inside the work directory."""
    if not name or name in {".", ".."}:
        return False
    return "/" not in name and "\\" not in name


def basename_from_url(url: str) -> str:
    """Return the last path segment of ``url`` (query and fragment ignored)."""
    path = unquote(urlparse(url).path)
    return PurePosixPath(path).name


def is_absolute_http_url(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme.lower() in {"http", "https"} and bool(parsed.netloc)


def remove_path(path: Path) -> None:
    """Remove a file, symlink, or directory tree; missing paths are ignored."""
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
    elif path.is_dir():
        shutil.rmtree(path)
