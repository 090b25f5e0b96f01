"""GitHub Actions step outputs and failure annotations."""

from __future__ import annotations

import logging
import os

import click
from rich.console import Console

from prsync_core.sync import SyncResult

console = Console()
logger = logging.getLogger(__name__)


def result_outputs(summary: SyncResult) -> dict[str, str]:
    return {"result": summary.result, "task_url": summary.permalink}


def write_outputs(outputs: dict[str, str], output_path: str | None = None) -> None:
    """Append ``key=value`` lines to the GITHUB_OUTPUT file and echo them."""
    path = output_path or os.environ.get("GITHUB_OUTPUT")
    if path:
        with open(path, "a", encoding="utf-8") as f:
            for key, value in outputs.items():
                f.write(f"{key}={value}\n")
        logger.debug("Wrote %d output(s) to %s", len(outputs), path)
    for key, value in outputs.items():
        console.print(f"{key}: [bold]{value}[/bold]")


def report_failure(error: BaseException, debug: bool = False) -> None:
    """Surface a failed run: an ::error:: annotation plus a readable message."""
    message = str(error) or error.__class__.__name__
    click.echo(f"::error::{message}")
    console.print(f"[red]Sync failed: {message}[/red]")
    if debug:
        console.print_exception()
