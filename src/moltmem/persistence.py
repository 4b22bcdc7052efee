"""
moltmem persistence -- the on-disk file <-> in-memory image boundary.

The working database is an in-memory SQLite connection. At startup the file
(if any) is copied into it with the online-backup API; a flush copies the
whole image back out into a temp file next to the target, fsyncs it and
renames it over the target, so neither readers nor a crash leave a
half-written database behind.

This is a full rewrite on every flush: fine for memory-scale data (thousands
of short records), not for high write throughput.
"""

import logging
import os
import sqlite3
from pathlib import Path

from moltmem.errors import StorageIOError

logger = logging.getLogger("moltmem.persistence")


def _ensure_parent(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    except OSError as e:
        raise StorageIOError(f"Cannot create directory {path.parent}: {e}") from e


def _fsync(path: Path) -> None:
    """Force *path*'s contents to disk before it is renamed into place."""
    fd = os.open(str(path), os.O_RDWR)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def open_image() -> sqlite3.Connection:
    """Return an empty in-memory database image.

    check_same_thread=False: the auto-save thread flushes the image; the
    store serializes all access with its own lock.
    """
    return sqlite3.connect(":memory:", check_same_thread=False)


def load_image(db_path) -> sqlite3.Connection:
    """Load *db_path* into a fresh in-memory image.

    Creates parent directories as needed. A missing file yields an empty
    image. Raises StorageIOError if the file cannot be read as a database.
    """
    path = Path(db_path)
    _ensure_parent(path)

    image = open_image()
    if not path.exists():
        logger.debug("No database at %s, starting empty", path)
        return image

    try:
        src = sqlite3.connect(str(path))
        try:
            src.backup(image)
        finally:
            src.close()
    except (OSError, sqlite3.Error) as e:
        image.close()
        raise StorageIOError(f"Failed to load {path}: {e}") from e

    logger.debug("Loaded database image from %s", path)
    return image


def flush_image(image: sqlite3.Connection, db_path) -> None:
    """Atomically replace *db_path* with the full contents of *image*.

    The file is written with 0o600 permissions. Raises StorageIOError on
    failure; the target is left untouched in that case.
    """
    path = Path(db_path)
    _ensure_parent(path)
    tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")

    try:
        if tmp.exists():
            tmp.unlink()
        # Pre-create with restricted permissions (no TOCTOU window)
        fd = os.open(str(tmp), os.O_CREAT | os.O_WRONLY | os.O_TRUNC, 0o600)
        os.close(fd)

        dst = sqlite3.connect(str(tmp))
        try:
            image.backup(dst)
        finally:
            dst.close()
        _fsync(tmp)
        os.replace(tmp, path)
    except (OSError, sqlite3.Error) as e:
        try:
            tmp.unlink()
        except OSError:
            pass  # never created, or already gone
        raise StorageIOError(f"Failed to write {path}: {e}") from e
