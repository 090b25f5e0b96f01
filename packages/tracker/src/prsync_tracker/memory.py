"""In-memory tracker for deterministic tests and local dry runs.

Models the one backend behaviour the engine has to survive: the custom-field
search index lags behind writes. ``search_lag`` is the number of searches a new
task stays invisible to ``search_tasks_by_field``; the project listing is
consistent unless a task is listed in ``hidden_from_listing``.
"""

from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterator

from prsync_tracker.base import TrackerBackend
from prsync_tracker.errors import RenderError, TrackerPermissionError, TransientBackendError
from prsync_tracker.models import CustomField, CustomFieldValue, NewTask, Task, TaskChanges, TrackerUser

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryTracker(TrackerBackend):
    """Dictionary-backed TrackerBackend. Every call is recorded in ``calls``."""

    def __init__(
        self,
        fields: list[CustomField] | None = None,
        users: list[TrackerUser] | None = None,
        search_lag: int = 0,
        reject_html: bool = False,
    ):
        self.fields: list[CustomField] = list(fields or [])
        self.users: dict[str, TrackerUser] = {u.gid: u for u in users or []}
        self.tasks: dict[str, Task] = {}
        self.sections: dict[str, list[str]] = {}
        self.search_lag = search_lag
        self.reject_html = reject_html
        self.denied: set[str] = set()
        self.hidden_from_listing: set[str] = set()
        self.calls: list[tuple] = []
        self._ids = itertools.count(1001)
        self._unindexed: dict[str, int] = {}
        self._order: list[str] = []

    # ------------------------------------------------------------------ #
    # Helpers                                                             #
    # ------------------------------------------------------------------ #

    def _next_gid(self) -> str:
        return str(next(self._ids))

    def _user_for(self, identity: str) -> TrackerUser:
        if identity in self.users:
            return self.users[identity]
        for user in self.users.values():
            if user.email and user.email.lower() == identity.lower():
                return user
        user = TrackerUser(gid=self._next_gid(), email=identity)
        self.users[user.gid] = user
        return user

    def _field_values(self, raw: dict[str, str]) -> dict[str, CustomFieldValue]:
        values = {}
        for field_gid, value in raw.items():
            display = value
            for f in self.fields:
                if f.gid != field_gid:
                    continue
                for opt in f.enum_options:
                    if opt.gid == value:
                        display = opt.name
            values[field_gid] = CustomFieldValue(value=value, display_value=display)
        return values

    def _check_html(self, html_notes: str | None) -> None:
        if html_notes is not None and self.reject_html:
            raise RenderError("html_notes: XML is invalid")

    def _get(self, task_gid: str) -> Task:
        if task_gid in self.denied:
            raise TrackerPermissionError(f"Forbidden: task {task_gid}")
        try:
            return self.tasks[task_gid]
        except KeyError:
            raise TransientBackendError(f"Unknown object: {task_gid}")

    def _store(self, spec: NewTask, parent: str | None) -> Task:
        self._check_html(spec.html_notes)
        gid = self._next_gid()
        project = spec.projects[0] if spec.projects else "0"
        followers = [self._user_for(f).gid for f in spec.followers]
        task = Task(
            gid=gid,
            name=spec.name,
            notes=spec.notes,
            html_notes=spec.html_notes or "",
            completed=spec.completed,
            custom_fields=self._field_values(spec.custom_fields),
            memberships=list(spec.projects),
            parent=parent,
            followers=followers,
            assignee=self._user_for(spec.assignee) if spec.assignee else None,
            permalink_url=f"https://app.asana.com/0/{project}/{gid}",
            created_at=(_EPOCH + timedelta(seconds=len(self._order))).isoformat(),
        )
        self.tasks[gid] = task
        self._order.append(gid)
        if self.search_lag:
            self._unindexed[gid] = self.search_lag
        return task

    # ------------------------------------------------------------------ #
    # TrackerBackend                                                      #
    # ------------------------------------------------------------------ #

    def list_custom_fields(self, workspace: str) -> Iterator[CustomField]:
        self.calls.append(("list_custom_fields", workspace))
        yield from self.fields

    def search_tasks_by_field(self, workspace: str, field_gid: str, value: str) -> list[Task]:
        self.calls.append(("search_tasks_by_field", field_gid, value))
        found = []
        for gid in self._order:
            task = self.tasks[gid]
            if task.field_display(field_gid) != value:
                continue
            if self._unindexed.get(gid, 0) > 0:
                continue
            found.append(replace(task))
        for gid in list(self._unindexed):
            self._unindexed[gid] -= 1
            if self._unindexed[gid] <= 0:
                del self._unindexed[gid]
        return found

    def list_project_tasks(self, project: str, limit: int) -> list[Task]:
        self.calls.append(("list_project_tasks", project, limit))
        newest_first = [
            self.tasks[gid]
            for gid in reversed(self._order)
            if project in self.tasks[gid].memberships and gid not in self.hidden_from_listing
        ]
        return [replace(t) for t in newest_first[:limit]]

    def get_task(self, task_gid: str) -> Task:
        self.calls.append(("get_task", task_gid))
        return replace(self._get(task_gid))

    def create_task(self, workspace: str, spec: NewTask) -> Task:
        self.calls.append(("create_task", spec.name))
        return replace(self._store(spec, parent=None))

    def update_task(self, task_gid: str, changes: TaskChanges) -> Task:
        self.calls.append(("update_task", task_gid, changes.as_payload()))
        task = self._get(task_gid)
        self._check_html(changes.html_notes)
        for key in ("name", "notes", "html_notes", "completed"):
            value = getattr(changes, key)
            if value is not None:
                setattr(task, key, value)
        task.custom_fields.update(self._field_values(changes.custom_fields))
        return replace(task)

    def set_parent(self, task_gid: str, parent_gid: str) -> None:
        self.calls.append(("set_parent", task_gid, parent_gid))
        self._get(parent_gid)
        self._get(task_gid).parent = parent_gid

    def add_to_section(self, section_gid: str, task_gid: str) -> None:
        self.calls.append(("add_to_section", section_gid, task_gid))
        self.sections.setdefault(section_gid, []).append(task_gid)

    def add_subtask(self, parent_gid: str, spec: NewTask) -> Task:
        self.calls.append(("add_subtask", parent_gid, spec.name))
        self._get(parent_gid)
        return replace(self._store(spec, parent=parent_gid))

    def list_subtasks(self, task_gid: str) -> list[Task]:
        self.calls.append(("list_subtasks", task_gid))
        subtasks = []
        for gid in self._order:
            task = self.tasks[gid]
            if task.parent != task_gid:
                continue
            # Compact assignee records carry the gid only, like the real API.
            assignee = TrackerUser(gid=task.assignee.gid) if task.assignee else None
            subtasks.append(replace(task, assignee=assignee))
        return subtasks

    def get_user(self, user_gid: str) -> TrackerUser:
        self.calls.append(("get_user", user_gid))
        try:
            return self.users[user_gid]
        except KeyError:
            raise TransientBackendError(f"Unknown user: {user_gid}")

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)
