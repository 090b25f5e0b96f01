"""CLI entry point for prsync.

Commands:
  sync     — sync the pull request in the current webhook event (the GitHub Action)
  resync   — re-sync one pull request from its live GitHub state
  fields   — check the Asana custom fields the sync depends on
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prsync_cli.commands.fields import fields_cmd
from prsync_cli.commands.resync import resync_cmd
from prsync_cli.commands.sync import sync_cmd

console = Console()


def _build_tracker(config):
    """Instantiate the Asana backend for a validated configuration."""
    from prsync_tracker.asana import AsanaTracker

    return AsanaTracker(token=config.asana_token)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prsync"),
    prog_name="prsync",
)
@click.option(
    "--config",
    "config_path",
    default=".prsync.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSYNC_CONFIG",
)
@click.option("--debug", is_flag=True, envvar="RUNNER_DEBUG", help="Verbose logging and tracebacks on failure.")
@click.pass_context
def main(ctx: click.Context, config_path: str, debug: bool):
    """Keep Asana tasks in sync with GitHub pull requests."""
    from prsync_core.config import load_config
    from prsync_core.errors import ConfigurationError

    ctx.ensure_object(dict)
    _configure_logging(debug)

    try:
        config = load_config(config_path).validate()
    except ConfigurationError as e:
        raise click.UsageError(str(e))

    tracker = _build_tracker(config)
    ctx.obj["config"] = config
    ctx.obj["tracker"] = tracker
    ctx.obj["debug"] = debug
    ctx.call_on_close(tracker.close)


main.add_command(sync_cmd)
main.add_command(resync_cmd)
main.add_command(fields_cmd)
