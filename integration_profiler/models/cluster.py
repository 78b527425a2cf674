"""Cluster models: schedulers, submission types and the resolved ClusterSpec."""
import re
from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from integration_profiler.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CLUSTER_NAME = "HPC"
# Prefix of the template config file names
CONFIG_PLACEHOLDER = "hpc"
MIN_WORKERS = 1
MAX_WORKERS = 100000
# Licenses are rarely issued below this many seats
TYPICAL_MIN_WORKERS = 16

QUEUE_TOKEN = "QueueName = "
PARTITION_TOKEN = "Partition = "

_BANNED_SYMBOLS = re.compile(r"[^a-zA-Z0-9._-]+")
_HAS_LETTER_OR_DIGIT = re.compile(r"[a-zA-Z0-9]")


def slugify(value: str, lowercase: bool = False) -> str:
    """Normalize a name into a filesystem and URL safe slug.

    Spaces become hyphens and anything outside ``[a-zA-Z0-9._-]`` is dropped.
    """
    value = value.strip()
    if lowercase:
        value = value.lower()
    value = value.replace(" ", "-")
    return _BANNED_SYMBOLS.sub("", value)


class Scheduler(str, Enum):
    """Supported cluster schedulers."""
    SLURM = "slurm"
    PBS = "pbs"
    LSF = "lsf"
    GRIDENGINE = "gridengine"
    HTCONDOR = "htcondor"
    AWSBATCH = "awsbatch"
    KUBERNETES = "kubernetes"

    @property
    def has_helper_bin(self) -> bool:
        """True if a helper ``bin`` directory ships for this scheduler."""
        return self not in _BARE_SCHEDULERS

    @property
    def has_discover_script(self) -> bool:
        """True if scheduler-specific helper functions and ``discover`` ship."""
        return self not in _BARE_SCHEDULERS

    @property
    def skipped_tokens(self) -> FrozenSet[str]:
        """Config tokens that must be left alone for this scheduler."""
        if self in (Scheduler.PBS, Scheduler.LSF, Scheduler.GRIDENGINE):
            return frozenset({QUEUE_TOKEN})
        if self is Scheduler.SLURM:
            return frozenset({PARTITION_TOKEN})
        return frozenset()

    @property
    def plugin_directory(self) -> str:
        """Name of the extracted upstream plugin directory."""
        return f"matlab-parallel-{self.value}-plugin-main"

    @property
    def archive_url(self) -> str:
        """Download URL of the upstream plugin archive."""
        return (
            "https://codeload.github.com/mathworks/"
            f"matlab-parallel-{self.value}-plugin/zip/refs/heads/main"
        )


_BARE_SCHEDULERS = frozenset({Scheduler.AWSBATCH, Scheduler.KUBERNETES, Scheduler.HTCONDOR})


class SubmissionType(str, Enum):
    """Which job submission workflows the scripts support."""
    DESKTOP = "desktop"
    CLUSTER = "cluster"
    BOTH = "both"

    @property
    def includes_desktop(self) -> bool:
        return self in (SubmissionType.DESKTOP, SubmissionType.BOTH)

    @property
    def includes_cluster(self) -> bool:
        return self in (SubmissionType.CLUSTER, SubmissionType.BOTH)


class ConfigVariant(str, Enum):
    """Cluster profile config files shipped in ``conf-files``."""
    DESKTOP = "hpcDesktop"
    CLUSTER = "hpcCluster"
    REMOTE_DESKTOP = "hpcRemoteDesktop"
    REMOTE_CLUSTER = "hpcRemoteCluster"

    @property
    def filename(self) -> str:
        return f"{self.value}.conf"

    @property
    def is_remote(self) -> bool:
        return self in (ConfigVariant.REMOTE_DESKTOP, ConfigVariant.REMOTE_CLUSTER)

    @property
    def is_desktop(self) -> bool:
        return self in (ConfigVariant.DESKTOP, ConfigVariant.REMOTE_DESKTOP)

    def applies_to(self, submission: SubmissionType) -> bool:
        """True if the variant is used by the given submission type."""
        if self.is_desktop:
            return submission.includes_desktop
        return submission.includes_cluster


class ClusterSpec(BaseModel):
    """Resolved configuration for one target compute cluster."""

    model_config = ConfigDict(extra='forbid')

    name: str = Field(DEFAULT_CLUSTER_NAME, description="Cluster profile display name")
    scheduler: Scheduler = Scheduler.SLURM
    submission: SubmissionType = SubmissionType.BOTH
    workers: int = Field(MAX_WORKERS, ge=MIN_WORKERS, le=MAX_WORKERS,
                         description="Workers available on the cluster's license")
    shared_filesystem: bool = True
    matlab_root: Optional[str] = Field(None, description="MATLAB install path on the cluster")
    hostname: Optional[str] = Field(None, description="Host used to SSH to the cluster")
    custom_mpi: bool = False
    include_remote_config: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Names that slug to nothing fall back to the default.

        Other names need a letter or digit, and their slug must not contain
        the config file placeholder, or renamed profiles would collide with
        the next cluster's templates.
        """
        v = v.strip()
        slug = slugify(v, lowercase=True)
        if not slug:
            return DEFAULT_CLUSTER_NAME
        if v == DEFAULT_CLUSTER_NAME:
            return v
        if not _HAS_LETTER_OR_DIGIT.search(slug):
            raise ValueError(
                f"Cluster name '{v}' must include at least 1 letter or number"
            )
        if CONFIG_PLACEHOLDER in slug:
            raise ValueError(
                f"Cluster name '{v}' must not contain '{CONFIG_PLACEHOLDER}' "
                f"(reserved for config templates)"
            )
        return v

    @model_validator(mode='after')
    def validate_desktop_fields(self) -> 'ClusterSpec':
        """Desktop submission needs to know where MATLAB lives and how to reach it."""
        if self.submission.includes_desktop:
            root = (self.matlab_root or "").strip()
            if "/" not in root and "\\" not in root:
                raise ValueError(
                    f"matlab_root must be a full path for {self.submission.value} submission"
                )
            if not (self.hostname or "").strip():
                raise ValueError(
                    f"hostname is required for {self.submission.value} submission"
                )
            self.matlab_root = root
            self.hostname = self.hostname.strip()

        if self.workers < TYPICAL_MIN_WORKERS:
            logger.warning(
                f"{self.workers} workers requested for '{self.name}'; licenses are "
                f"rarely issued with fewer than {TYPICAL_MIN_WORKERS} seats"
            )
        return self

    @property
    def slug(self) -> str:
        """Filesystem name of the cluster. The default name is kept verbatim."""
        if self.name == DEFAULT_CLUSTER_NAME:
            return DEFAULT_CLUSTER_NAME
        return slugify(self.name, lowercase=True)

    def required_variants(self) -> FrozenSet[ConfigVariant]:
        """Config variants this cluster needs after pruning."""
        required = set()
        for variant in ConfigVariant:
            if not variant.applies_to(self.submission):
                continue
            if variant.is_remote and not self.include_remote_config:
                continue
            required.add(variant)
        return frozenset(required)
