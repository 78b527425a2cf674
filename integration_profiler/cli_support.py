"""Shared utilities for Integration Profiler CLI modules."""
from __future__ import annotations

import os
from typing import Optional

import typer
from rich.console import Console

from integration_profiler.core.config import ProfilerSettings, find_settings, load_settings
from integration_profiler.core.errors import ProfilerError


def is_mock() -> bool:
    """Return True when CLI runs in mock mode (no git commands are executed)."""
    return os.environ.get("ISP_MOCK") == "1"


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up file logging for CLI commands.

    Args:
        log_file: Path to log file (optional)
        verbose: Enable verbose logging
    """
    from integration_profiler.core.logger import setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)


def load_settings_or_exit(settings_path: Optional[str], console: Console) -> ProfilerSettings:
    """Load settings, turning configuration errors into a clean CLI exit."""
    path = find_settings(settings_path)
    try:
        return load_settings(path, required=settings_path is not None)
    except ProfilerError as e:
        handle_cli_error(e, console)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting."""
    console.print(f"[green]{prefix}[/green] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    """Print info message with consistent formatting."""
    console.print(f"[cyan]{prefix}[/cyan] {message}")
