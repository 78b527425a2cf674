"""Cooperative cancellation for scaffolding runs.

The pipeline checks the token between steps instead of being killed in the
middle of a write. Temporary paths registered on the token are removed on a
best-effort basis when the run is cancelled or fails.
"""
import shutil
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import List

from integration_profiler.core.errors import CancelledError
from integration_profiler.core.logger import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Tracks cancellation requests and temporary paths for one run."""

    def __init__(self):
        self._cancelled = False
        self._temp_paths: List[Path] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation. Safe to call from a signal handler."""
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        """Raise CancelledError if cancellation was requested."""
        if self._cancelled:
            raise CancelledError("Run interrupted by user")

    def register_temp_path(self, path: Path) -> Path:
        """Register a path that must not outlive the run."""
        self._temp_paths.append(Path(path))
        return Path(path)

    def release_temp_path(self, path: Path) -> None:
        """Forget a temporary path that was already handled."""
        self._temp_paths = [p for p in self._temp_paths if p != Path(path)]

    def cleanup(self) -> None:
        """Best-effort recursive delete of every registered path."""
        while self._temp_paths:
            path = self._temp_paths.pop()
            if not path.exists():
                continue
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink()
                logger.debug(f"Removed temporary path {path}")
            except OSError as e:
                logger.warning(f"Could not remove temporary path {path}: {e}")


@contextmanager
def handle_signals(token: CancellationToken):
    """Route SIGINT/SIGTERM to the token for the duration of the block.

    Usage:
        token = CancellationToken()
        with handle_signals(token):
            manager.run(engagement)
    """
    def _cancel(signum, frame):
        logger.warning("Interrupt received, stopping after the current step...")
        token.cancel()

    previous_int = signal.signal(signal.SIGINT, _cancel)
    previous_term = signal.signal(signal.SIGTERM, _cancel)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous_int)
        signal.signal(signal.SIGTERM, previous_term)
