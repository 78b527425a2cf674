#!/usr/bin/env python3
"""Integration Profiler CLI - customer cluster integration script bundles."""

import typer
from rich.console import Console

from integration_profiler.cli_remote_commands import register_remote_commands
from integration_profiler.cli_scaffold_commands import register_scaffold_commands
from integration_profiler.core.logger import get_logger

app = typer.Typer(
    name="isp",
    help="""Integration Profiler - scaffold and publish cluster integration scripts

Quick start:
  isp download                          # Fetch the scheduler plugins
  isp plan --scheduler slurm            # See what a cluster gets
  isp scaffold --engagement acme.yml    # Build and publish an engagement

More commands: isp --help
""",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

# Attach modular subcommands
register_scaffold_commands(app, console)
register_remote_commands(app, console)

if __name__ == "__main__":
    app()
