"""resync command — re-sync one pull request from its live GitHub state."""

from __future__ import annotations

import click
from github import GithubException
from rich.console import Console

from prsync_core.gh.pull_request import get_repo, resync_event
from prsync_core.sync import run_sync
from prsync_cli.outputs import report_failure, result_outputs, write_outputs

console = Console()


@click.command("resync")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.pass_context
def resync_cmd(ctx, repo: str, pr_number: int):
    """Fetch a pull request from GitHub and bring its Asana task up to date.

    Useful after fixing configuration, when the webhook-driven run failed.
    Needs GITHUB_TOKEN or a `gh auth login` session.
    """
    from prsync_cli.auth import resolve_github_token

    token = resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )

    try:
        event = resync_event(get_repo(repo, token=token), pr_number)
    except GithubException:
        raise click.UsageError(f"PR #{pr_number} not found in {repo}.")

    try:
        summary = run_sync(event, ctx.obj["config"], ctx.obj["tracker"])
    except Exception as e:
        report_failure(e, debug=ctx.obj.get("debug", False))
        ctx.exit(1)

    if summary is not None:
        write_outputs(result_outputs(summary))
