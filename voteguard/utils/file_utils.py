"""
File and path utility functions.

Temporary files and uploads always get unique names, and temporary files are
removed on every exit path.
"""

from __future__ import annotations

import os
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".tiff", ".tif", ".bmp", ".webp"}


def safe_filename(name: str, default: str = "upload") -> str:
    """
    Get a filesystem-safe file name.

    Replaces special characters with underscores and drops any directory
    components a client may have sent.
    """
    base = os.path.basename(name or "").strip()
    cleaned = "".join(
        ch if ch.isalnum() or ch in ("-", "_", ".") else "_"
        for ch in base
    ).lstrip(".")
    return cleaned or default


def unique_filename(original_name: str) -> str:
    """Unique name of the form `<random>-<safe original>`."""
    return f"{uuid.uuid4().hex[:12]}-{safe_filename(original_name)}"


def ensure_dir(path: Path) -> Path:
    """Ensure directory exists, creating if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def iter_images(images_dir: Path) -> Iterator[Path]:
    """
    Iterate over image files in a directory.

    Yields:
        Paths to image files (sorted alphabetically)
    """
    images_dir = Path(images_dir)
    if not images_dir.exists():
        return

    for path in sorted(images_dir.iterdir()):
        if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS:
            yield path


@contextmanager
def temporary_file(suffix: str = "", directory: Optional[Path] = None) -> Iterator[Path]:
    """
    Reserve a uniquely named temporary file and delete it on exit.

    The file is created empty; callers write to the yielded path.
    """
    fd, name = tempfile.mkstemp(suffix=suffix, dir=str(directory) if directory else None)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass


def atomic_write_bytes(path: Path, data: bytes) -> Path:
    """
    Write bytes through a sibling temp file and rename it into place.

    Readers never observe a partially written file; the temp file is removed
    if anything fails.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return path
