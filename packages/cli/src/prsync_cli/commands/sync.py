"""sync command — process the webhook event of the current workflow run."""

from __future__ import annotations

import click
from rich.console import Console

from prsync_core.events import load_event
from prsync_core.sync import run_sync
from prsync_cli.outputs import report_failure, result_outputs, write_outputs

console = Console()


@click.command("sync")
@click.option(
    "--event-path",
    envvar="GITHUB_EVENT_PATH",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Webhook payload JSON. Defaults to $GITHUB_EVENT_PATH.",
)
@click.option(
    "--event-name",
    envvar="GITHUB_EVENT_NAME",
    required=True,
    help="Webhook event name. Defaults to $GITHUB_EVENT_NAME.",
)
@click.option("--output-path", envvar="GITHUB_OUTPUT", default=None, help="Step output file ($GITHUB_OUTPUT).")
@click.pass_context
def sync_cmd(ctx, event_path: str, event_name: str, output_path: str | None):
    """Sync the pull request in a GitHub webhook event to its Asana task.

    \b
    Required configuration (Action inputs or environment):
      ASANA_ACCESS_TOKEN   Asana personal access token
      ASANA_WORKSPACE_ID   Workspace holding the Github URL / Github Status fields
      ASANA_PROJECT_ID     Project new tasks are created in
    """
    config = ctx.obj["config"]
    tracker = ctx.obj["tracker"]

    console.print(f"Event: [bold]{event_name}[/bold]")
    event = load_event(event_path, event_name)
    if event is None:
        console.print("[yellow]Only runs for pull request changes. Nothing to do.[/yellow]")
        return

    try:
        summary = run_sync(event, config, tracker)
    except Exception as e:
        report_failure(e, debug=ctx.obj.get("debug", False))
        ctx.exit(1)

    if summary is not None:
        write_outputs(result_outputs(summary), output_path)
