"""Core scaffolding functionality for engagement repositories."""
import tempfile
from pathlib import Path
from typing import FrozenSet, List, Optional

from jinja2 import BaseLoader, Environment

from integration_profiler.core.cancellation import CancellationToken
from integration_profiler.core.config import ProfilerSettings
from integration_profiler.core.errors import MaterializeError, ProfilerError
from integration_profiler.core.logger import get_logger
from integration_profiler.models.cluster import ClusterSpec, Scheduler
from integration_profiler.models.engagement import Engagement
from integration_profiler.scaffold import materializer, pruner, templater
from integration_profiler.scaffold.planner import (
    ClusterPlan,
    FileCopyTask,
    custom_mpi_schedulers,
    plan_cluster,
    plan_engagement,
    plan_stale_prunes,
)
from integration_profiler.scaffold.templates import TemplateStore
from integration_profiler.services.publisher import RepoPublisher

logger = get_logger(__name__)

README_TEMPLATE = """# {{ organization }}

Cluster integration scripts for {{ contact }}.

## Clusters

{% for cluster in clusters %}
- `{{ cluster.name }}` ({{ cluster.scheduler }}) - `{{ cluster.path }}`
{% endfor %}

## Repository Structure

- `doc/` - Getting started guides
- `pub/` - Published material
- `scripts/<scheduler>/` - Cluster profiles and integration scripts
"""


class ScaffoldManager:
    """Materializes engagements and hands them to the publisher."""

    def __init__(
        self,
        settings: ProfilerSettings,
        store: Optional[TemplateStore] = None,
        publisher: Optional[RepoPublisher] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.settings = settings
        self.store = store or TemplateStore(settings.template_root, settings.scripts_path)
        self.publisher = publisher or RepoPublisher(settings)
        self.token = token or CancellationToken()
        self.jinja_env = Environment(
            loader=BaseLoader(),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def scaffold(self, engagement: Engagement, publish: bool = True) -> Path:
        """Scaffold every cluster of an engagement and publish the result.

        Clusters are built one after another in a staging directory, which is
        moved into the engagement repository once all of them succeed. On
        any failure or interrupt the staging directory is removed.

        Args:
            engagement: Organization, contact and clusters to build
            publish: Commit (and push, if enabled) the repository afterwards

        Returns:
            Path to the contact directory inside the engagement repository
        """
        org_path = engagement.organization_path(self.settings.engagements_root)
        contact_path = engagement.contact_path(self.settings.engagements_root)

        logger.info(f"✨ Creating integration scripts for {engagement.organization}/{engagement.contact}")

        if publish and self.settings.submit_to_remote_repo:
            self.publisher.prepare(engagement.organization, org_path)

        staging = self.token.register_temp_path(
            Path(tempfile.mkdtemp(prefix=f"isp-{engagement.contact}-"))
        )
        try:
            self._copy_all(plan_engagement(self.store, staging))
            mpi_schedulers = custom_mpi_schedulers(engagement.clusters)

            for index, spec in enumerate(engagement.clusters, start=1):
                self.token.raise_if_cancelled()
                logger.info(f"Creating integration scripts for cluster #{index} ({spec.name})...")
                self.build_cluster(spec, staging, keep_mpi=spec.scheduler in mpi_schedulers)
                logger.info(f"Finished script creation for cluster #{index}!")

            self.token.raise_if_cancelled()
            self._prune_stale(engagement, contact_path, mpi_schedulers)
            materializer.move_directory(staging, contact_path)
            self.token.release_temp_path(staging)
        except ProfilerError:
            logger.error("Scaffolding failed, removing temporary engagement files")
            raise
        finally:
            self.token.cleanup()

        self._generate_readme(contact_path, engagement)
        logger.info(f"📁 Generated engagement tree at {contact_path}")

        if publish:
            self.token.raise_if_cancelled()
            state = self.publisher.finalize(engagement.organization, org_path, engagement.abbreviation)
            logger.info(f"🔧 Repository state: {state.value}")

        return contact_path

    def build_cluster(self, spec: ClusterSpec, contact_root: Path, keep_mpi: bool = False) -> ClusterPlan:
        """Plan, copy, prune and template one cluster under ``contact_root``."""
        plan = plan_cluster(spec, self.store, contact_root, self.settings.release_number, keep_mpi)

        for task in plan.skipped:
            logger.debug(f"Skipping {task.slot} for {spec.scheduler.value}")
        self._copy_all(plan.copy_tasks)

        for prune in plan.prune_tasks:
            if pruner.remove(prune.target):
                logger.debug(f"Removed {prune.target.name} ({prune.reason})")

        tokens = templater.build_token_map(spec)
        for task in plan.template_tasks:
            templater.rewrite(task.path, templater.tokens_for(tokens, spec, task.variant))
            templater.rename_placeholder(task.path, spec.slug)

        return plan

    def _prune_stale(
        self,
        engagement: Engagement,
        contact_path: Path,
        mpi_schedulers: FrozenSet[Scheduler],
    ) -> None:
        """Remove what earlier runs left behind for the clusters being rebuilt."""
        for spec in engagement.clusters:
            keep_mpi = spec.scheduler in mpi_schedulers
            for prune in plan_stale_prunes(spec, contact_path, self.settings.release_number, keep_mpi):
                if pruner.remove(prune.target):
                    logger.debug(f"Removed {prune.target.relative_to(contact_path)} ({prune.reason})")

    def _copy_all(self, tasks: List[FileCopyTask]) -> None:
        for task in tasks:
            self.token.raise_if_cancelled()
            if task.is_directory:
                materializer.copy_directory(task.source, task.destination)
            else:
                materializer.copy_file(task.source, task.destination)

    def _generate_readme(self, contact_path: Path, engagement: Engagement) -> None:
        """Generate README listing every cluster present in the tree.

        Clusters from earlier runs are included, so re-running with the same
        input produces the same file.
        """
        clusters = []
        for integration_dir in sorted(contact_path.glob("scripts/*/**/IntegrationScripts")):
            scheduler = integration_dir.relative_to(contact_path / "scripts").parts[0]
            for cluster_dir in sorted(p for p in integration_dir.iterdir() if p.is_dir()):
                clusters.append({
                    "name": cluster_dir.name,
                    "scheduler": scheduler,
                    "path": cluster_dir.relative_to(contact_path).as_posix(),
                })

        template = self.jinja_env.from_string(README_TEMPLATE)
        readme = template.render(
            organization=engagement.organization,
            contact=engagement.contact,
            clusters=clusters,
        )
        try:
            (contact_path / "README.md").write_text(readme)
        except OSError as e:
            raise MaterializeError(f"Failed to write README in {contact_path}: {e}") from e
