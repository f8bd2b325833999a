# Vault - File Storage Helpers
#
# All module and registry files are written owner-only (0600) through a
# temp file + rename so a crash never leaves a half-written file behind.

import logging
import os
from pathlib import Path

from .exceptions import StorageError

logger = logging.getLogger(__name__)


def atomic_write(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` atomically, mode 0600.

    Raises:
        StorageError: The file could not be written
    """
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                logger.warning(f"Could not remove temp file {tmp_path}")
        raise StorageError(f"Failed to write {path}: {e.strerror or e}") from e


def create_exclusive(path: Path, data: bytes) -> None:
    """Create ``path`` with ``data``; fail if it already exists.

    Raises:
        FileExistsError: The file already exists
        StorageError: Any other filesystem failure
    """
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        raise
    except OSError as e:
        raise StorageError(f"Failed to create {path}: {e.strerror or e}") from e
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e.strerror or e}") from e


def read_file(path: Path) -> bytes:
    """
    Raises:
        StorageError: The file could not be read
    """
    try:
        return path.read_bytes()
    except OSError as e:
        raise StorageError(f"Failed to read {path}: {e.strerror or e}") from e
