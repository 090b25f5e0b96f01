"""Find-or-create of the task that tracks a pull request.

Asana's custom-field search index trails writes by tens of seconds, so a task
created by the ``opened`` run is often invisible to the ``edited`` or
``review_requested`` run that follows it. Each lookup attempt therefore tries
the index first and then scans the most recent project tasks, and attempts
are spaced by a fixed interval. When the budget runs out the pull request is
treated as untracked and a task is created: a duplicate task is preferred
over a pull request that never syncs.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable

from rich.console import Console

from prsync_core.config import SyncConfig
from prsync_core.content import TaskContent
from prsync_core.errors import ConsistencyTimeout, RenderError, TrackerPermissionError
from prsync_core.events import SyncEvent
from prsync_core.fields import ResolvedFields
from prsync_tracker.base import TrackerBackend
from prsync_tracker.models import NewTask, Task

console = Console()
logger = logging.getLogger(__name__)

# "Asana: <url>" or "Asana task: <url>" in the pull-request body.
_PARENT_REF_RE = re.compile(r"\basana(?:\s+task)?:\s*(https://app\.asana\.com/\S+)", re.IGNORECASE)
_TASK_SEGMENT_RE = re.compile(r"/task/(\d+)")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded fixed-interval retry. ``sleep`` is injectable for tests."""

    max_attempts: int = 5
    interval: float = 20.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    @classmethod
    def from_config(cls, config: SyncConfig) -> "RetryPolicy":
        return cls(max_attempts=config.search_attempts, interval=config.search_interval)


@dataclass
class Resolution:
    task: Task
    created: bool


def parse_parent_reference(text: str) -> str | None:
    """Return the task id referenced by an ``Asana: <url>`` marker, or None.

    Accepts both URL shapes Asana hands out:
      https://app.asana.com/1/<workspace>/project/<project>/task/<task>
      https://app.asana.com/0/<project>/<task>[/f]
    """
    match = _PARENT_REF_RE.search(text or "")
    if not match:
        return None
    url = match.group(1).rstrip(").,>")
    task_segment = _TASK_SEGMENT_RE.search(url)
    if task_segment:
        return task_segment.group(1)
    numeric = [seg for seg in url.split("?")[0].split("/") if seg.isdigit()]
    # /0/<project>/<task>: the leading 0 is a version marker, not an id.
    if len(numeric) >= 3:
        return numeric[-1]
    return None


class TaskResolver:
    def __init__(self, tracker: TrackerBackend, config: SyncConfig, retry: RetryPolicy | None = None):
        self._tracker = tracker
        self._config = config
        self._retry = retry or RetryPolicy.from_config(config)

    # ------------------------------------------------------------------ #
    # Lookup                                                              #
    # ------------------------------------------------------------------ #

    def _search(self, url: str, fields: ResolvedFields) -> Task | None:
        found = self._tracker.search_tasks_by_field(self._config.workspace_id, fields.url.gid, url)
        if found:
            if len(found) > 1:
                logger.warning("%d tasks share %s; using %s", len(found), url, found[0].gid)
            return found[0]
        return None

    def _scan_project(self, url: str, fields: ResolvedFields) -> Task | None:
        recent = self._tracker.list_project_tasks(self._config.project_id, self._config.fallback_scan_limit)
        for task in recent:
            if task.field_display(fields.url.gid) == url:
                return task
        return None

    def find(self, url: str, fields: ResolvedFields) -> Task:
        """Locate the task whose URL field equals ``url``.

        Raises ConsistencyTimeout when no attempt finds it.
        """
        attempts = self._retry.max_attempts
        for attempt in range(1, attempts + 1):
            task = self._search(url, fields)
            if task is not None:
                logger.debug("Found task %s via search (attempt %d)", task.gid, attempt)
                return task
            task = self._scan_project(url, fields)
            if task is not None:
                logger.info("Found task %s via project scan (attempt %d)", task.gid, attempt)
                return task
            if attempt < attempts:
                logger.info(
                    "Task for %s not visible yet (attempt %d/%d). Retrying in %ss...",
                    url,
                    attempt,
                    attempts,
                    self._retry.interval,
                )
                self._retry.sleep(self._retry.interval)
        raise ConsistencyTimeout(url, attempts)

    # ------------------------------------------------------------------ #
    # Creation                                                            #
    # ------------------------------------------------------------------ #

    def create(self, event: SyncEvent, fields: ResolvedFields, content: TaskContent) -> Task:
        pr = event.pull_request
        followers = []
        author_email = self._config.email_for(pr.author)
        if author_email:
            followers.append(author_email)
        spec = NewTask(
            name=content.title,
            notes=content.notes,
            html_notes=content.html_notes,
            projects=[self._config.project_id],
            custom_fields={fields.url.gid: pr.html_url, fields.status.gid: fields.status_option(content.status)},
            followers=followers,
        )
        try:
            task = self._tracker.create_task(self._config.workspace_id, spec)
        except RenderError as e:
            logger.warning("Rich notes rejected on create, using plain notes: %s", e)
            spec.html_notes = None
            task = self._tracker.create_task(self._config.workspace_id, spec)
        console.print(f"[green]Created task {task.gid} for {pr.html_url}[/green]")

        parent_gid = parse_parent_reference(pr.body)
        if parent_gid:
            try:
                self._tracker.set_parent(task.gid, parent_gid)
                task.parent = parent_gid
                logger.info("Linked task %s under parent %s", task.gid, parent_gid)
            except TrackerPermissionError as e:
                logger.warning("Parent task %s is not accessible, leaving %s top-level: %s", parent_gid, task.gid, e)

        if self._config.section_id:
            self._tracker.add_to_section(self._config.section_id, task.gid)
            logger.info("Moved task %s to section %s", task.gid, self._config.section_id)
        return task

    def find_or_create(self, event: SyncEvent, fields: ResolvedFields, content: TaskContent) -> Resolution:
        if event.action == "opened":
            return Resolution(task=self.create(event, fields, content), created=True)
        try:
            return Resolution(task=self.find(event.pull_request.html_url, fields), created=False)
        except ConsistencyTimeout as e:
            logger.warning("%s. Treating the pull request as untracked and creating a task.", e)
            return Resolution(task=self.create(event, fields, content), created=True)
