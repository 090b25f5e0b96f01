"""Sync one GitHub pull-request event into Asana."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable

from rich.console import Console

from prsync_core.closure import ClosurePolicy
from prsync_core.config import SyncConfig
from prsync_core.content import TaskContent, build_content
from prsync_core.errors import RenderError
from prsync_core.events import SyncEvent
from prsync_core.fields import FieldDirectory, ResolvedFields
from prsync_core.resolver import RetryPolicy, TaskResolver
from prsync_core.reviews import ReviewReconciler
from prsync_core.utils.richtext import render_rich_text
from prsync_tracker.base import TrackerBackend
from prsync_tracker.models import Task, TaskChanges

console = Console()
logger = logging.getLogger(__name__)

RESULT_CREATED = "created"
RESULT_UPDATED = "updated"


@dataclass
class SyncResult:
    """Outcome of run_sync, reported by the CLI as Action outputs."""

    result: str  # "created" | "updated"
    task_gid: str
    permalink: str
    completed: bool = False
    subtasks: list[str] = field(default_factory=list)


def is_excluded_title(title: str, patterns) -> bool:
    return any(re.search(pattern, title or "") for pattern in patterns)


def persist(tracker: TrackerBackend, task: Task, content: TaskContent, fields: ResolvedFields, completed: bool) -> Task:
    """Write name, notes, status and completion in one update.

    Rich notes go first; if Asana rejects the markup the same update is sent
    again with plain notes only.
    """
    changes = TaskChanges(
        name=content.title,
        notes=content.notes,
        html_notes=content.html_notes,
        completed=completed,
        custom_fields={fields.status.gid: fields.status_option(content.status)},
    )
    try:
        return tracker.update_task(task.gid, changes)
    except RenderError as e:
        logger.warning("Rich notes rejected for task %s, falling back to plain notes: %s", task.gid, e)
        changes.html_notes = None
        return tracker.update_task(task.gid, changes)


def run_sync(
    event: SyncEvent,
    config: SyncConfig,
    tracker: TrackerBackend,
    retry: RetryPolicy | None = None,
    render: Callable[[str], str] = render_rich_text,
) -> SyncResult | None:
    """Converge the Asana task for ``event``'s pull request.

    Returns None when the event is skipped (irrelevant event type or an
    excluded title). Errors other than the locally recoverable ones propagate.
    """
    if not event.is_relevant:
        console.print(f"[yellow]Event {event.name!r} is not a pull request event. Nothing to do.[/yellow]")
        return None

    pr = event.pull_request
    logger.info("Event: %s/%s for %s", event.name, event.action, pr.html_url)
    if is_excluded_title(pr.title, config.skip_title_patterns):
        console.print(f"[yellow]Skipping {pr.html_url}: title matches an excluded pattern.[/yellow]")
        return None

    fields = FieldDirectory(tracker, config.url_field_name, config.status_field_name).resolve(config.workspace_id)
    content = build_content(pr, config.body_limit, render)
    resolution = TaskResolver(tracker, config, retry).find_or_create(event, fields, content)
    task = resolution.task

    touched: list[Task] = []
    completed = False
    if pr.is_closed:
        closure = ClosurePolicy(tracker, config.no_autoclose_projects)
        completed = closure.should_auto_close(task)
        closure.cascade(task)
    else:
        touched = ReviewReconciler(tracker, config).reconcile(task, event)

    task = persist(tracker, task, content, fields, completed)
    result = RESULT_CREATED if resolution.created else RESULT_UPDATED
    console.print(f"[green]Task {result}: {task.permalink_url or task.gid} (status {content.status})[/green]")
    return SyncResult(
        result=result,
        task_gid=task.gid,
        permalink=task.permalink_url,
        completed=completed,
        subtasks=[s.gid for s in touched],
    )
