"""Profiler runtime settings.

Settings are read once from a ``settings.txt`` file of ``key = value`` lines and
validated into an immutable :class:`ProfilerSettings`, which is then passed
explicitly to every pipeline stage.
"""
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from integration_profiler.core.errors import ConfigurationError
from integration_profiler.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SETTINGS_FILE = "settings.txt"
SETTINGS_ENV_VAR = "ISP_SETTINGS"
ENGAGEMENTS_DIRNAME = "Customer-Engagements"


class ProfilerSettings(BaseModel):
    """Run-wide settings, read-only after load.

    Field aliases match the camelCase keys used in settings files.
    """

    model_config = ConfigDict(extra='forbid', frozen=True, populate_by_name=True)

    scripts_path: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()), alias="scriptsPath")
    access_token: str = Field("", alias="accessToken", repr=False)
    git_repo_path: Optional[Path] = Field(None, alias="gitRepoPath")
    git_repo_api_url: str = Field("", alias="gitRepoAPIURL")
    git_group_id: int = Field(0, alias="gitGroupID")
    git_group_name: str = Field("", alias="gitGroupName")
    git_username: str = Field("", alias="gitUsername")
    git_email_address: str = Field("", alias="gitEmailAddress")
    git_existing_repo_commit_message: str = Field(
        "Updated integration scripts.", alias="gitExistingRepoCommitMessage"
    )
    release_number: str = Field("", alias="releaseNumber")
    team: Optional[str] = Field(None, alias="team")
    download_scripts_on_launch: bool = Field(True, alias="downloadScriptsOnLaunch")
    submit_to_remote_repo: bool = Field(False, alias="submitToRemoteRepo")

    @field_validator('git_repo_api_url')
    @classmethod
    def normalize_api_url(cls, v: str) -> str:
        """Make the API URL end with ``/projects/``."""
        v = v.strip()
        if not v:
            return v
        v = v.rstrip("/")
        if not v.endswith("/projects"):
            v += "/projects"
        return v + "/"

    @field_validator('team')
    @classmethod
    def validate_team(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        lowered = v.lower()
        if "install" in lowered:
            return "install"
        if "parallel" in lowered:
            return "parallel"
        raise ValueError("team must be 'install' or 'parallel'")

    @field_validator('scripts_path')
    @classmethod
    def validate_scripts_path(cls, v: Path) -> Path:
        if not v.exists():
            raise ValueError(f"scripts path {v} does not exist")
        return v

    @field_validator('git_repo_path')
    @classmethod
    def validate_repo_path(cls, v: Optional[Path]) -> Optional[Path]:
        if v is not None and not v.exists():
            raise ValueError(f"git repo path {v} does not exist")
        return v

    @model_validator(mode='after')
    def validate_remote_settings(self) -> 'ProfilerSettings':
        """Remote submission needs the full set of hosting credentials."""
        if not self.submit_to_remote_repo:
            return self
        missing = [
            alias
            for alias, value in (
                ("accessToken", self.access_token),
                ("gitRepoAPIURL", self.git_repo_api_url),
                ("gitGroupID", self.git_group_id),
                ("gitGroupName", self.git_group_name),
                ("gitUsername", self.git_username),
            )
            if not value
        ]
        if missing:
            raise ValueError(
                "submitToRemoteRepo requires: " + ", ".join(missing)
            )
        return self

    @property
    def api_root(self) -> str:
        """API base URL without the trailing ``projects/`` segment."""
        return self.git_repo_api_url[: -len("projects/")] if self.git_repo_api_url else ""

    @property
    def web_base(self) -> str:
        """Scheme and host of the hosting service, used to build clone URLs."""
        parsed = urlparse(self.git_repo_api_url)
        return f"{parsed.scheme}://{parsed.netloc}" if parsed.netloc else ""

    @property
    def engagements_root(self) -> Path:
        """Directory that holds one repository per organization."""
        base = self.git_repo_path if self.git_repo_path is not None else Path.cwd()
        return base / ENGAGEMENTS_DIRNAME

    @property
    def template_root(self) -> Path:
        """Directory that holds the ``Utilities`` fragment library."""
        return self.git_repo_path if self.git_repo_path is not None else Path.cwd()


def parse_settings_lines(lines: List[str]) -> Tuple[Dict[str, str], List[str]]:
    """Split ``key = value`` lines into a mapping.

    Returns:
        Tuple of (values, problems). Problems are lines without a ``=``.
    """
    values: Dict[str, str] = {}
    problems: List[str] = []
    for number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            problems.append(f"line {number}: expected 'key = value', got {line!r}")
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip('"')
    return values, problems


def load_settings(path: Optional[Path] = None, required: bool = False) -> ProfilerSettings:
    """Load and validate a settings file.

    Args:
        path: Settings file path. A missing file yields defaults unless
            ``required`` is set.
        required: Treat a missing file as a configuration error.

    Raises:
        ConfigurationError: With every problem found, not just the first.
    """
    settings_path = Path(path) if path else Path(DEFAULT_SETTINGS_FILE)

    if not settings_path.exists():
        if required:
            raise ConfigurationError(f"Settings file not found: {settings_path}")
        logger.debug(f"No settings file at {settings_path}, using defaults")
        return _validate({}, [])

    logger.info(f"Custom settings found: {settings_path}")
    try:
        lines = settings_path.read_text().splitlines()
    except OSError as e:
        raise ConfigurationError(f"Failed to read settings file {settings_path}: {e}") from e

    values, problems = parse_settings_lines(lines)
    return _validate(values, problems)


def find_settings(settings_path: Optional[str] = None) -> Path:
    """Locate the active settings file."""
    if settings_path:
        return Path(settings_path)

    if env_settings := os.environ.get(SETTINGS_ENV_VAR):
        return Path(env_settings)

    return Path(DEFAULT_SETTINGS_FILE)


def _validate(values: Dict[str, str], problems: List[str]) -> ProfilerSettings:
    try:
        settings = ProfilerSettings.model_validate(values)
    except ValidationError as e:
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"]) or "settings"
            if error["type"] == "extra_forbidden":
                problems.append(f"{location}: unrecognized setting")
            else:
                problems.append(f"{location}: {error['msg']}")
        settings = None

    if problems:
        raise ConfigurationError(
            "Invalid settings:\n" + "\n".join(f"  - {p}" for p in problems)
        )
    return settings
