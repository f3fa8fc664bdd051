"""Atomic file operations for document persistence."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def ensure_dir(path: PathLike) -> Path:
    """
    Create a directory and any missing parents.

    Calling it on an existing directory is a no-op.

    Args:
        path: Directory to create

    Returns:
        The directory as a Path

    Raises:
        OSError: If the path cannot be created as a directory (for example
            a regular file is in the way, or permission is denied)
    """
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def atomic_write(file_path: PathLike, data: Union[bytes, str]) -> None:
    """
    Replace the contents of a file atomically.

    Strategy:
    1. Write to a temporary file in the same directory
    2. fsync to ensure data on disk
    3. Rename onto the target filename (atomic replace)

    Readers see either the old content or the new content, never a mix,
    even if the process dies mid-write.

    Args:
        file_path: Target file path
        data: Bytes to write; str is encoded as UTF-8

    Raises:
        OSError: If directory creation, write or rename fails. The target
            is left untouched and the temporary file is removed.
    """
    target = Path(file_path)
    payload = data.encode("utf-8") if isinstance(data, str) else data

    # Same directory keeps the rename on one filesystem
    ensure_dir(target.parent)

    temp_fd, temp_path = tempfile.mkstemp(
        dir=target.parent,
        prefix=f".{target.name}.tmp."
    )
    fd_open = True

    try:
        view = memoryview(payload)
        while view:
            written = os.write(temp_fd, view)
            view = view[written:]

        os.fsync(temp_fd)

        fd_open = False
        os.close(temp_fd)

        os.replace(temp_path, target)
    except BaseException:
        if fd_open:
            try:
                os.close(temp_fd)
            except OSError:
                pass

        try:
            os.unlink(temp_path)
        except OSError:
            pass

        raise

    logger.debug(f"Wrote {len(payload)} bytes to {target}")
