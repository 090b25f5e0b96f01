"""AsanaTracker — TrackerBackend over the official asana SDK (v5).

Responses from the SDK are plain dicts; they are translated into
prsync_tracker.models here so nothing above this module handles raw JSON.
ApiException is translated into prsync_tracker.errors in one place.
"""

from __future__ import annotations

import contextlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterator

import asana
from asana.rest import ApiException

from prsync_tracker.base import TrackerBackend
from prsync_tracker.errors import RenderError, TrackerPermissionError, TransientBackendError
from prsync_tracker.models import (
    CustomField,
    CustomFieldValue,
    EnumOption,
    NewTask,
    Task,
    TaskChanges,
    TrackerUser,
)

logger = logging.getLogger(__name__)

_TASK_FIELDS = ",".join(
    [
        "name",
        "notes",
        "completed",
        "created_at",
        "permalink_url",
        "parent.gid",
        "assignee.gid",
        "assignee.email",
        "followers.gid",
        "memberships.project.gid",
        "custom_fields.gid",
        "custom_fields.display_value",
        "custom_fields.text_value",
        "custom_fields.enum_value.gid",
    ]
)
_FIELD_FIELDS = "name,enum_options.gid,enum_options.name"

# Asana's project listing cannot be sorted by recency, so the fallback scan
# lists tasks modified inside this window and sorts them client-side.
_RECENT_WINDOW = timedelta(days=1)


def _to_user(data: dict | None) -> TrackerUser | None:
    if not data:
        return None
    return TrackerUser(gid=data["gid"], email=data.get("email"), name=data.get("name"))


def _to_field(data: dict) -> CustomField:
    options = tuple(EnumOption(gid=o["gid"], name=o.get("name", "")) for o in data.get("enum_options") or [])
    return CustomField(gid=data["gid"], name=data.get("name", ""), enum_options=options)


def _to_task(data: dict) -> Task:
    custom_fields = {}
    for cf in data.get("custom_fields") or []:
        enum_value = cf.get("enum_value") or {}
        value = cf.get("text_value") if cf.get("text_value") is not None else enum_value.get("gid")
        custom_fields[cf["gid"]] = CustomFieldValue(value=value, display_value=cf.get("display_value"))
    parent = data.get("parent") or {}
    return Task(
        gid=data["gid"],
        name=data.get("name", ""),
        notes=data.get("notes", ""),
        html_notes=data.get("html_notes", ""),
        completed=bool(data.get("completed", False)),
        custom_fields=custom_fields,
        memberships=[m["project"]["gid"] for m in data.get("memberships") or [] if m.get("project")],
        parent=parent.get("gid"),
        followers=[f["gid"] for f in data.get("followers") or []],
        assignee=_to_user(data.get("assignee")),
        permalink_url=data.get("permalink_url", ""),
        created_at=data.get("created_at", ""),
    )


def _new_task_body(spec: NewTask) -> dict:
    data: dict = {"name": spec.name, "completed": spec.completed}
    if spec.html_notes is not None:
        data["html_notes"] = spec.html_notes
    else:
        data["notes"] = spec.notes
    if spec.projects:
        data["projects"] = list(spec.projects)
    if spec.custom_fields:
        data["custom_fields"] = dict(spec.custom_fields)
    if spec.assignee:
        data["assignee"] = spec.assignee
    if spec.followers:
        data["followers"] = list(spec.followers)
    return data


class AsanaTracker(TrackerBackend):
    """Talks to the Asana REST API with a personal access token."""

    def __init__(self, token: str, api_client=None):
        if api_client is None:
            configuration = asana.Configuration()
            configuration.access_token = token
            api_client = asana.ApiClient(configuration)
        self._client = api_client
        self._tasks = asana.TasksApi(api_client)
        self._custom_fields = asana.CustomFieldsApi(api_client)
        self._sections = asana.SectionsApi(api_client)
        self._users = asana.UsersApi(api_client)

    def close(self) -> None:
        self._client.close()

    @contextlib.contextmanager
    def _translate(self, operation: str, rich_text: bool = False):
        try:
            yield
        except ApiException as e:
            body = str(e.body or "")
            logger.debug("Asana %s failed (%s): %s", operation, e.status, body)
            if e.status in (403, 404):
                raise TrackerPermissionError(f"{operation}: {e.status} {e.reason}") from e
            if rich_text and e.status == 400 and ("xml" in body.lower() or "html" in body.lower()):
                raise RenderError(f"{operation}: {body}") from e
            raise TransientBackendError(f"{operation}: {e.status} {e.reason} {body}".strip()) from e

    def list_custom_fields(self, workspace: str) -> Iterator[CustomField]:
        with self._translate("get_custom_fields_for_workspace"):
            for data in self._custom_fields.get_custom_fields_for_workspace(
                workspace, {"opt_fields": _FIELD_FIELDS}
            ):
                yield _to_field(data)

    def search_tasks_by_field(self, workspace: str, field_gid: str, value: str) -> list[Task]:
        opts = {f"custom_fields.{field_gid}.value": value, "opt_fields": _TASK_FIELDS}
        with self._translate("search_tasks_for_workspace"):
            return [_to_task(d) for d in self._tasks.search_tasks_for_workspace(workspace, opts)]

    def list_project_tasks(self, project: str, limit: int) -> list[Task]:
        since = (datetime.now(timezone.utc) - _RECENT_WINDOW).isoformat()
        opts = {"project": project, "modified_since": since, "limit": min(limit, 100), "opt_fields": _TASK_FIELDS}
        # The listing comes back in project order; read the whole window before
        # keeping the newest ``limit``.
        with self._translate("get_tasks"):
            tasks = [_to_task(d) for d in self._tasks.get_tasks(opts)]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks[:limit]

    def get_task(self, task_gid: str) -> Task:
        with self._translate("get_task"):
            return _to_task(self._tasks.get_task(task_gid, {"opt_fields": _TASK_FIELDS}))

    def create_task(self, workspace: str, spec: NewTask) -> Task:
        data = {**_new_task_body(spec), "workspace": workspace}
        with self._translate("create_task", rich_text=spec.html_notes is not None):
            return _to_task(self._tasks.create_task({"data": data}, {"opt_fields": _TASK_FIELDS}))

    def update_task(self, task_gid: str, changes: TaskChanges) -> Task:
        data = changes.as_payload()
        if "html_notes" in data:
            data.pop("notes", None)
        with self._translate("update_task", rich_text="html_notes" in data):
            return _to_task(self._tasks.update_task({"data": data}, task_gid, {"opt_fields": _TASK_FIELDS}))

    def set_parent(self, task_gid: str, parent_gid: str) -> None:
        with self._translate("set_parent_for_task"):
            self._tasks.set_parent_for_task({"data": {"parent": parent_gid}}, task_gid, {})

    def add_to_section(self, section_gid: str, task_gid: str) -> None:
        with self._translate("add_task_for_section"):
            self._sections.add_task_for_section(section_gid, {"body": {"data": {"task": task_gid}}})

    def add_subtask(self, parent_gid: str, spec: NewTask) -> Task:
        with self._translate("create_subtask_for_task", rich_text=spec.html_notes is not None):
            return _to_task(
                self._tasks.create_subtask_for_task(
                    {"data": _new_task_body(spec)}, parent_gid, {"opt_fields": _TASK_FIELDS}
                )
            )

    def list_subtasks(self, task_gid: str) -> list[Task]:
        with self._translate("get_subtasks_for_task"):
            return [_to_task(d) for d in self._tasks.get_subtasks_for_task(task_gid, {"opt_fields": _TASK_FIELDS})]

    def get_user(self, user_gid: str) -> TrackerUser:
        with self._translate("get_user"):
            data = self._users.get_user(user_gid, {"opt_fields": "email,name"})
        return TrackerUser(gid=data.get("gid", user_gid), email=data.get("email"), name=data.get("name"))
