"""Task planning: which fragments to copy, prune and rewrite for a cluster.

Planning is pure. It only computes paths; nothing is read or written.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional

from integration_profiler.models.cluster import CONFIG_PLACEHOLDER, ClusterSpec, ConfigVariant, Scheduler
from integration_profiler.scaffold.templates import ENGAGEMENT_DOCS, PCT_DEBUG_FILES, TemplateStore

# Leftovers from older template sets that never belong in a bundle
LEGACY_ARTIFACTS = ["mdcs.rc", "licenseCheck.m", "parseGenericTemplateFile.m"]
MPI_CONFIG_FILE = "mpiLibConf.m"
DISCOVER_NAME = "discover"


@dataclass
class FileCopyTask:
    """Copy of one template file or directory into the output tree."""
    slot: str
    source: Path
    destination: Path
    is_directory: bool = False
    requires: Optional[str] = None  # Scheduler capability, e.g. "has_helper_bin"

    def applies_to(self, scheduler: Scheduler) -> bool:
        """True unless the scheduler lacks the capability this task needs."""
        if self.requires is None:
            return True
        return bool(getattr(scheduler, self.requires))


@dataclass
class PruneTask:
    """Deletion of an inapplicable generated artifact."""
    target: Path
    reason: str


@dataclass
class TemplateTask:
    """Config file to rewrite and rename after pruning."""
    path: Path
    variant: ConfigVariant


@dataclass
class ClusterPaths:
    """Destination directories of one cluster inside the staging tree."""
    root: Path
    scheduler_root: Path
    bin: Path
    matlab: Path
    integration_scripts: Path


@dataclass
class ClusterPlan:
    """Everything the pipeline does for one cluster, in execution order."""
    spec: ClusterSpec
    paths: ClusterPaths
    copy_tasks: List[FileCopyTask] = field(default_factory=list)
    prune_tasks: List[PruneTask] = field(default_factory=list)
    template_tasks: List[TemplateTask] = field(default_factory=list)
    skipped: List[FileCopyTask] = field(default_factory=list)


def cluster_paths(spec: ClusterSpec, contact_root: Path, release: str = "") -> ClusterPaths:
    """Compute where a cluster's files go under a contact directory."""
    scheduler_root = Path(contact_root) / "scripts" / spec.scheduler.value
    if release:
        scheduler_root = scheduler_root / release
    matlab = scheduler_root / "matlab"
    return ClusterPaths(
        root=Path(contact_root),
        scheduler_root=scheduler_root,
        bin=scheduler_root / "bin",
        matlab=matlab,
        integration_scripts=matlab / "IntegrationScripts" / spec.slug,
    )


def plan_engagement(store: TemplateStore, contact_root: Path) -> List[FileCopyTask]:
    """Copy tasks done once per engagement: documentation and ``pub``."""
    contact_root = Path(contact_root)
    tasks = [
        FileCopyTask(slot="doc", source=store.doc_file(name), destination=contact_root / "doc" / name)
        for name in ENGAGEMENT_DOCS
    ]
    tasks.append(
        FileCopyTask(slot="pub", source=store.pub_dir(), destination=contact_root / "pub", is_directory=True)
    )
    return tasks


def plan_cluster(
    spec: ClusterSpec,
    store: TemplateStore,
    contact_root: Path,
    release: str = "",
    keep_mpi: bool = False,
) -> ClusterPlan:
    """Plan the copy, prune and template tasks for one cluster.

    Args:
        spec: Resolved cluster configuration
        store: Template fragment locations
        contact_root: Contact directory the cluster is materialized under
        release: Optional release segment in the scripts path
        keep_mpi: Keep the MPI config even if this cluster does not ask for
            it, because another cluster sharing the directory does

    Returns:
        ClusterPlan with tasks in execution order
    """
    paths = cluster_paths(spec, contact_root, release)
    scheduler = spec.scheduler
    plan = ClusterPlan(spec=spec, paths=paths)

    candidates = [
        FileCopyTask(
            slot="helper_bin",
            source=store.helper_bin_dir(scheduler),
            destination=paths.bin,
            is_directory=True,
            requires="has_helper_bin",
        ),
    ]
    candidates.extend(
        FileCopyTask(
            slot="pct_debug",
            source=store.pct_debug_file(name),
            destination=paths.matlab / "+pctDebug" / name,
        )
        for name in PCT_DEBUG_FILES
    )
    candidates.extend([
        FileCopyTask(
            slot="discover",
            source=store.helper_functions_dir(scheduler),
            destination=paths.matlab,
            is_directory=True,
            requires="has_discover_script",
        ),
        FileCopyTask(
            slot="common_helpers",
            source=store.helper_functions_dir(),
            destination=paths.matlab,
            is_directory=True,
        ),
        FileCopyTask(
            slot="conf_files",
            source=store.conf_files_dir(),
            destination=paths.matlab,
            is_directory=True,
        ),
        FileCopyTask(
            slot="matlab_files",
            source=store.matlab_files_dir(),
            destination=paths.matlab,
            is_directory=True,
        ),
        FileCopyTask(
            slot="plugin",
            source=store.plugin_dir(scheduler),
            destination=paths.integration_scripts,
            is_directory=True,
        ),
    ])

    for task in candidates:
        if task.applies_to(scheduler):
            plan.copy_tasks.append(task)
        else:
            plan.skipped.append(task)

    plan.prune_tasks = _plan_prunes(spec, paths, keep_mpi)

    required = spec.required_variants()
    plan.template_tasks = [
        TemplateTask(path=paths.matlab / variant.filename, variant=variant)
        for variant in ConfigVariant
        if variant in required
    ]
    return plan


def _plan_prunes(spec: ClusterSpec, paths: ClusterPaths, keep_mpi: bool) -> List[PruneTask]:
    prunes = [
        PruneTask(target=paths.matlab / name, reason="legacy artifact")
        for name in LEGACY_ARTIFACTS
    ]

    if not spec.scheduler.has_discover_script:
        prunes.append(PruneTask(
            target=paths.integration_scripts / DISCOVER_NAME,
            reason=f"no discover script for {spec.scheduler.value}",
        ))

    if not (spec.custom_mpi or keep_mpi):
        prunes.append(PruneTask(target=paths.matlab / MPI_CONFIG_FILE, reason="custom MPI not requested"))

    required = spec.required_variants()
    for variant in ConfigVariant:
        if variant in required:
            continue
        if not variant.applies_to(spec.submission):
            reason = f"not used by {spec.submission.value} submission"
        else:
            reason = "remote config not requested"
        prunes.append(PruneTask(target=paths.matlab / variant.filename, reason=reason))

    return prunes


def custom_mpi_schedulers(clusters: Iterable[ClusterSpec]) -> FrozenSet[Scheduler]:
    """Schedulers whose shared ``matlab`` directory keeps the MPI config.

    Every cluster of a scheduler writes into the same directory, so one
    cluster asking for custom MPI keeps the file for all of them.
    """
    return frozenset(spec.scheduler for spec in clusters if spec.custom_mpi)


def plan_stale_prunes(
    spec: ClusterSpec,
    contact_root: Path,
    release: str = "",
    keep_mpi: bool = False,
) -> List[PruneTask]:
    """Plan removal of a cluster's leftovers from an earlier run.

    Targets live in the destination contact directory, where config files
    already carry the cluster slug. The cluster's integration scripts
    directory is included so it is replaced rather than merged.
    """
    paths = cluster_paths(spec, contact_root, release)
    prunes = [PruneTask(target=paths.integration_scripts, reason="replaced by this run")]

    required = spec.required_variants()
    for variant in ConfigVariant:
        if variant not in required:
            name = variant.filename.replace(CONFIG_PLACEHOLDER, spec.slug)
            prunes.append(PruneTask(target=paths.matlab / name, reason="variant no longer required"))

    if not (spec.custom_mpi or keep_mpi):
        prunes.append(PruneTask(target=paths.matlab / MPI_CONFIG_FILE, reason="custom MPI not requested"))

    return prunes
