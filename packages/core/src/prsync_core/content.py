"""Task content derived from a pull-request snapshot."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from prsync_core.events import PullRequestSnapshot
from prsync_core.utils.richtext import render_rich_text

STATUS_OPEN = "Open"
STATUS_DRAFT = "Draft"
STATUS_CLOSED = "Closed"
STATUS_MERGED = "Merged"

NOTES_PREAMBLE = (
    "This task is managed automatically from GitHub. Changes to this description will be overwritten."
)
TRUNCATION_MARKER = "\n\n… (truncated)"
DEFAULT_BODY_LIMIT = 5000

# A line consisting solely of --- starts a bot-appended footer.
_FOOTER_RE = re.compile(r"^---[ \t]*$", re.MULTILINE)


@dataclass(frozen=True)
class TaskContent:
    title: str
    notes: str
    html_notes: str
    status: str


def pr_status(pr: PullRequestSnapshot) -> str:
    """Map pull-request flags to a Status option name.

    Merged is checked first: a merged pull request also reports state "closed".
    """
    if pr.merged:
        return STATUS_MERGED
    if pr.state == "open":
        return STATUS_DRAFT if pr.draft else STATUS_OPEN
    return STATUS_CLOSED


def task_title(pr: PullRequestSnapshot) -> str:
    return f"{pr.repository}#{pr.number} - {pr.title}"


def strip_footer(body: str) -> str:
    # Bodies edited in the GitHub web UI arrive with CRLF line endings.
    body = (body or "").replace("\r\n", "\n")
    match = _FOOTER_RE.search(body)
    if match:
        body = body[: match.start()]
    return body.rstrip()


def truncate(body: str, limit: int = DEFAULT_BODY_LIMIT) -> str:
    if len(body) <= limit:
        return body
    return body[:limit] + TRUNCATION_MARKER


def build_notes(pr: PullRequestSnapshot, body_limit: int = DEFAULT_BODY_LIMIT) -> str:
    body = truncate(strip_footer(pr.body), body_limit)
    parts = [NOTES_PREAMBLE, pr.html_url]
    if body:
        parts.append(body)
    return "\n\n".join(parts)


def build_content(
    pr: PullRequestSnapshot,
    body_limit: int = DEFAULT_BODY_LIMIT,
    render: Callable[[str], str] = render_rich_text,
) -> TaskContent:
    notes = build_notes(pr, body_limit)
    return TaskContent(
        title=task_title(pr),
        notes=notes,
        html_notes=f"<body>{render(notes)}</body>",
        status=pr_status(pr),
    )
