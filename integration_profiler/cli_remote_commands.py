"""Remote CLI commands - download, check-remote."""
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from integration_profiler.core.errors import ConfigurationError, ProfilerError
from integration_profiler.models.cluster import Scheduler, slugify
from integration_profiler.services.downloader import ArchiveDownloader
from integration_profiler.services.publisher import RepoPublisher

# Module-level console instance (will be set by register function)
console: Console = Console()


def download(
    schedulers: Optional[List[Scheduler]] = typer.Argument(
        None, help="Schedulers to download (default: all)", case_sensitive=False
    ),
    settings_path: Optional[str] = typer.Option(None, "--settings", help="Settings file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Download and extract the scheduler plugin archives.

    Examples:
        isp download
        isp download slurm pbs
    """
    from integration_profiler.cli_support import handle_cli_error, load_settings_or_exit, print_success

    settings = load_settings_or_exit(settings_path, console)
    downloader = ArchiveDownloader(settings.scripts_path)

    try:
        with console.status("Downloading integration scripts..."):
            extracted = downloader.download_all(schedulers or None)
    except ProfilerError as e:
        handle_cli_error(e, console, verbose)

    for path in extracted:
        print_success(console, f"{path.name}")
    console.print(f"\n[dim]Extracted to {settings.scripts_path}[/dim]")


def check_remote(
    organization: str = typer.Argument(..., help="Organization name"),
    settings_path: Optional[str] = typer.Option(None, "--settings", help="Settings file path"),
):
    """Check whether an organization already has a remote project."""
    from integration_profiler.cli_support import handle_cli_error, load_settings_or_exit, print_info

    settings = load_settings_or_exit(settings_path, console)

    try:
        if not settings.git_repo_api_url or not settings.access_token:
            raise ConfigurationError("check-remote requires gitRepoAPIURL and accessToken in settings")
        status = RepoPublisher(settings).check_remote(slugify(organization))
    except ProfilerError as e:
        handle_cli_error(e, console)

    if not status.exists:
        print_info(console, f"No remote project for '{organization}'")
        console.print(f"[dim]Would be created at {status.clone_url}[/dim]")
        return

    table = Table(title=f"Remote project: {organization}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Project ID", str(status.project_id))
    table.add_row("Clone URL", status.clone_url)
    table.add_row("Web URL", status.web_url or "-")
    console.print(table)


def register_remote_commands(app: typer.Typer, shared_console: Console):
    """Register remote commands with the main Typer app."""
    global console
    console = shared_console

    app.command()(download)
    app.command("check-remote")(check_remote)
