"""Scaffolding CLI commands - scaffold, plan."""
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from integration_profiler.core.cancellation import CancellationToken, handle_signals
from integration_profiler.core.errors import ConfigurationError, ProfilerError
from integration_profiler.models.cluster import CONFIG_PLACEHOLDER, ClusterSpec, Scheduler, SubmissionType
from integration_profiler.models.engagement import Engagement, load_engagement
from integration_profiler.scaffold.core import ScaffoldManager
from integration_profiler.scaffold.planner import plan_cluster
from integration_profiler.scaffold.templates import TemplateStore
from integration_profiler.services.downloader import ArchiveDownloader
from integration_profiler.services.git_manager import GitManager
from integration_profiler.services.publisher import RepoPublisher

# Module-level console instance (will be set by register function)
console: Console = Console()


def _cluster_from_options(**options) -> ClusterSpec:
    try:
        return ClusterSpec.model_validate({k: v for k, v in options.items() if v is not None})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid cluster options:\n{e}") from e


def _engagement_from_options(
    engagement_file: Optional[str],
    organization: Optional[str],
    contact: Optional[str],
    abbreviation: Optional[str],
    cluster: Optional[ClusterSpec],
) -> Engagement:
    if engagement_file:
        return load_engagement(Path(engagement_file))

    if not organization:
        raise ConfigurationError("Either --engagement or --org is required")

    data = {"organization": organization, "clusters": [cluster]}
    if contact is not None:
        data["contact"] = contact
    if abbreviation is not None:
        data["abbreviation"] = abbreviation
    try:
        return Engagement.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid engagement options:\n{e}") from e


def scaffold(
    engagement_file: Optional[str] = typer.Option(None, "--engagement", "-e",
                                                  help="YAML engagement file with one or more clusters"),
    organization: Optional[str] = typer.Option(None, "--org", "-o", help="Organization name"),
    contact: Optional[str] = typer.Option(None, "--contact", help="Contact name (default: first-last)"),
    abbreviation: Optional[str] = typer.Option(None, "--abbreviation", help="Organization abbreviation"),
    name: Optional[str] = typer.Option(None, "--cluster", "-c", help="Cluster name (default: HPC)"),
    scheduler: Scheduler = typer.Option(Scheduler.SLURM, "--scheduler", "-s", case_sensitive=False),
    submission: SubmissionType = typer.Option(SubmissionType.BOTH, "--submission", case_sensitive=False),
    workers: int = typer.Option(100000, "--workers", "-w", help="Workers on the cluster's license"),
    matlab_root: Optional[str] = typer.Option(None, "--matlab-root", help="MATLAB path on the cluster"),
    hostname: Optional[str] = typer.Option(None, "--host", help="Hostname used to SSH to the cluster"),
    shared_filesystem: bool = typer.Option(True, "--shared-fs/--no-shared-fs",
                                           help="Client and cluster share a filesystem"),
    custom_mpi: bool = typer.Option(False, "--custom-mpi", help="Include the custom MPI config"),
    remote_config: bool = typer.Option(False, "--remote-config", help="Include remote submission configs"),
    settings_path: Optional[str] = typer.Option(None, "--settings", help="Settings file path"),
    skip_download: bool = typer.Option(False, "--skip-download", help="Use already extracted plugins"),
    no_publish: bool = typer.Option(False, "--no-publish", help="Do not commit or push the repository"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Write a log file"),
):
    """Build integration scripts for an engagement and publish them.

    Examples:
        isp scaffold -e acme.yml
        isp scaffold --org Acme -c Prod -s slurm -w 5000 \\
            --matlab-root /usr/local/MATLAB/R2024a --host login.acme.org
    """
    from integration_profiler.cli_support import (
        handle_cli_error,
        is_mock,
        load_settings_or_exit,
        print_info,
        print_success,
        setup_file_logging,
    )

    if verbose or log_file:
        setup_file_logging(log_file=log_file, verbose=verbose)

    settings = load_settings_or_exit(settings_path, console)

    try:
        engagement = _engagement_from_options(
            engagement_file,
            organization,
            contact,
            abbreviation,
            _cluster_from_options(
                name=name,
                scheduler=scheduler,
                submission=submission,
                workers=workers,
                matlab_root=matlab_root,
                hostname=hostname,
                shared_filesystem=shared_filesystem,
                custom_mpi=custom_mpi,
                include_remote_config=remote_config,
            ) if not engagement_file else None,
        )

        store = TemplateStore(settings.template_root, settings.scripts_path)
        if settings.download_scripts_on_launch and not skip_download:
            ArchiveDownloader(settings.scripts_path).download_all()
        else:
            print_info(console, "Integration scripts download skipped.")
        store.verify()

        git = GitManager(
            username=settings.git_username,
            access_token=settings.access_token,
            author_email=settings.git_email_address,
            mock=is_mock(),
        )
        token = CancellationToken()
        manager = ScaffoldManager(
            settings,
            store=store,
            publisher=RepoPublisher(settings, git=git),
            token=token,
        )
        with handle_signals(token):
            contact_path = manager.scaffold(engagement, publish=not no_publish)
    except ProfilerError as e:
        handle_cli_error(e, console, verbose)

    table = Table(title=f"{engagement.organization} / {engagement.contact}")
    table.add_column("Cluster")
    table.add_column("Scheduler")
    table.add_column("Submission")
    table.add_column("Workers", justify="right")
    for spec in engagement.clusters:
        table.add_row(spec.slug, spec.scheduler.value, spec.submission.value, str(spec.workers))
    console.print(table)
    print_success(console, f"Finished! Scripts are in {contact_path}")


def plan(
    name: Optional[str] = typer.Option(None, "--cluster", "-c", help="Cluster name (default: HPC)"),
    scheduler: Scheduler = typer.Option(Scheduler.SLURM, "--scheduler", "-s", case_sensitive=False),
    submission: SubmissionType = typer.Option(SubmissionType.CLUSTER, "--submission", case_sensitive=False),
    matlab_root: Optional[str] = typer.Option(None, "--matlab-root", help="MATLAB path on the cluster"),
    hostname: Optional[str] = typer.Option(None, "--host", help="Hostname used to SSH to the cluster"),
    custom_mpi: bool = typer.Option(False, "--custom-mpi", help="Include the custom MPI config"),
    remote_config: bool = typer.Option(False, "--remote-config", help="Include remote submission configs"),
    settings_path: Optional[str] = typer.Option(None, "--settings", help="Settings file path"),
):
    """Show what would be copied, pruned and rewritten for one cluster."""
    from integration_profiler.cli_support import handle_cli_error, load_settings_or_exit

    settings = load_settings_or_exit(settings_path, console)
    try:
        spec = _cluster_from_options(
            name=name,
            scheduler=scheduler,
            submission=submission,
            matlab_root=matlab_root,
            hostname=hostname,
            custom_mpi=custom_mpi,
            include_remote_config=remote_config,
        )
    except ProfilerError as e:
        handle_cli_error(e, console)

    store = TemplateStore(settings.template_root, settings.scripts_path)
    # Paths are shown relative to the contact directory
    cluster_plan = plan_cluster(spec, store, Path("."), settings.release_number)

    table = Table(title=f"Plan for {spec.slug} ({spec.scheduler.value}, {spec.submission.value})")
    table.add_column("Action")
    table.add_column("Detail")
    table.add_column("Path")
    for task in cluster_plan.copy_tasks:
        table.add_row("[green]copy[/green]", task.slot, str(task.destination))
    for task in cluster_plan.skipped:
        table.add_row("[dim]skip[/dim]", task.slot, str(task.destination))
    for prune in cluster_plan.prune_tasks:
        table.add_row("[red]prune[/red]", prune.reason, str(prune.target))
    for task in cluster_plan.template_tasks:
        renamed = task.path.name.replace(CONFIG_PLACEHOLDER, spec.slug)
        table.add_row("[cyan]template[/cyan]", f"-> {renamed}", str(task.path))
    console.print(table)


def register_scaffold_commands(app: typer.Typer, shared_console: Console):
    """Register scaffolding commands with the main Typer app.

    Args:
        app: Main Typer application
        shared_console: Shared Rich console instance
    """
    global console
    console = shared_console

    app.command()(scaffold)
    app.command()(plan)
