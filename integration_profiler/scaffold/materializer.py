"""Copying template fragments into the output tree."""
import shutil
from pathlib import Path

from integration_profiler.core.errors import MaterializeError
from integration_profiler.core.logger import get_logger

logger = get_logger(__name__)


def copy_file(src: Path, dst: Path) -> None:
    """Copy a single file, creating parent directories as needed.

    Existing destination files are overwritten byte-for-byte. Permission
    bits are not carried over.

    Raises:
        MaterializeError: If the source is missing or the write fails.
    """
    src, dst = Path(src), Path(dst)
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)
    except OSError as e:
        raise MaterializeError(f"Failed to copy {src} to {dst}: {e}") from e


def copy_directory(src: Path, dst: Path) -> None:
    """Recursively copy a directory, merging into an existing destination.

    Stops at the first failure; files copied so far are left in place.

    Raises:
        MaterializeError: If the source is not a directory or any copy fails.
    """
    src, dst = Path(src), Path(dst)
    if not src.is_dir():
        raise MaterializeError(f"Failed to copy directory {src}: not a directory")

    try:
        dst.mkdir(parents=True, exist_ok=True)
        entries = sorted(src.iterdir())
    except OSError as e:
        raise MaterializeError(f"Failed to copy directory {src} to {dst}: {e}") from e

    for entry in entries:
        target = dst / entry.name
        if entry.is_dir():
            copy_directory(entry, target)
        else:
            copy_file(entry, target)


def move_directory(src: Path, dst: Path) -> None:
    """Copy a directory into place, then remove the source."""
    copy_directory(src, dst)
    try:
        shutil.rmtree(src)
    except OSError as e:
        raise MaterializeError(f"Copied {src} but could not remove it: {e}") from e
    logger.debug(f"Moved {src} to {dst}")
