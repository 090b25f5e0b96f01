"""fields command — check the workspace has the custom fields the sync needs."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from prsync_core.content import STATUS_CLOSED, STATUS_DRAFT, STATUS_MERGED, STATUS_OPEN
from prsync_core.errors import ConfigurationError
from prsync_core.fields import FieldDirectory

console = Console()


@click.command("fields")
@click.pass_context
def fields_cmd(ctx):
    """Resolve the Github URL and Github Status custom fields and show their ids."""
    config = ctx.obj["config"]
    directory = FieldDirectory(ctx.obj["tracker"], config.url_field_name, config.status_field_name)
    try:
        fields = directory.resolve(config.workspace_id)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    table = Table(title=f"Custom fields — workspace {config.workspace_id}", show_header=True, header_style="bold cyan")
    table.add_column("Field")
    table.add_column("GID")
    table.add_column("Options")
    table.add_row(fields.url.name, fields.url.gid, "—")
    options = ", ".join(f"{o.name} ({o.gid})" for o in fields.status.enum_options) or "—"
    table.add_row(fields.status.name, fields.status.gid, options)
    console.print(table)

    missing = [s for s in (STATUS_OPEN, STATUS_DRAFT, STATUS_CLOSED, STATUS_MERGED) if fields.status.option(s) is None]
    if missing:
        raise click.ClickException(f"{fields.status.name!r} is missing option(s): {', '.join(missing)}")
    console.print("[green]All required fields and options are present.[/green]")
