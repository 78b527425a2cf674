"""Removal of generated artifacts that do not apply to a cluster."""
import shutil
from pathlib import Path

from integration_profiler.core.errors import PruneError
from integration_profiler.core.logger import get_logger

logger = get_logger(__name__)


def remove(path: Path) -> bool:
    """Recursively delete a file or directory.

    Returns:
        True if something was removed, False if the path was already absent.

    Raises:
        PruneError: If the path exists but cannot be removed.
    """
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        return False

    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        raise PruneError(f"Failed to delete {path}: {e}") from e

    logger.debug(f"Pruned {path}")
    return True
