"""Download and extraction of the upstream scheduler plugin archives."""
import shutil
import zipfile
from pathlib import Path
from typing import Iterable, List, Optional

import requests

from integration_profiler.core.errors import DownloadError
from integration_profiler.core.logger import get_logger
from integration_profiler.models.cluster import Scheduler

logger = get_logger(__name__)

# Large archives on slow links
DEFAULT_DOWNLOAD_TIMEOUT = 600
CHUNK_SIZE = 64 * 1024


class ArchiveDownloader:
    """Fetches plugin archives into the scripts path."""

    def __init__(
        self,
        scripts_path: Path,
        timeout: int = DEFAULT_DOWNLOAD_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.scripts_path = Path(scripts_path)
        self.timeout = timeout
        self.session = session or requests.Session()

    def archive_path(self, scheduler: Scheduler) -> Path:
        return self.scripts_path / f"{scheduler.value}.zip"

    def download(self, scheduler: Scheduler) -> Path:
        """Download and extract one plugin archive.

        An existing extracted directory of the same name is replaced.

        Returns:
            Path to the extracted plugin directory.

        Raises:
            DownloadError: On network, HTTP or extraction failures.
        """
        url = scheduler.archive_url
        archive = self.archive_path(scheduler)
        logger.debug(f"Downloading {url} -> {archive}")

        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                with open(archive, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        f.write(chunk)
        except requests.RequestException as e:
            raise DownloadError(f"Failed to download the {scheduler.value} integration scripts: {e}") from e
        except OSError as e:
            raise DownloadError(f"Failed to write {archive}: {e}") from e

        target = self.scripts_path / scheduler.plugin_directory
        if target.exists():
            try:
                shutil.rmtree(target)
            except OSError as e:
                raise DownloadError(f"Failed to delete the existing integration scripts directory: {e}") from e

        self._extract(archive)

        if not target.is_dir():
            raise DownloadError(f"{archive} did not contain {scheduler.plugin_directory}/")
        return target

    def download_all(self, schedulers: Optional[Iterable[Scheduler]] = None) -> List[Path]:
        """Download every plugin archive (or the given subset)."""
        logger.info("Beginning download of integration scripts. Please wait.")
        extracted = [self.download(s) for s in (schedulers or list(Scheduler))]
        logger.info("✓ Latest integration scripts downloaded and extracted successfully!")
        return extracted

    def _extract(self, archive: Path) -> None:
        root = self.scripts_path.resolve()
        try:
            with zipfile.ZipFile(archive) as zf:
                for member in zf.namelist():
                    destination = (root / member).resolve()
                    if root != destination and root not in destination.parents:
                        raise DownloadError(f"Refusing to extract {member} outside {root}")
                zf.extractall(root)
        except zipfile.BadZipFile as e:
            raise DownloadError(f"Failed to extract integration scripts from {archive}: {e}") from e
        except OSError as e:
            raise DownloadError(f"Failed to extract {archive}: {e}") from e
