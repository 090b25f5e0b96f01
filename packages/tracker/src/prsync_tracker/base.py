"""Abstract tracker interface.

The sync engine depends on TrackerBackend, not on Asana, so the engine can be
driven by the in-memory backend in tests and by AsanaTracker in CI without
touching prsync_core.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from prsync_tracker.models import CustomField, NewTask, Task, TaskChanges, TrackerUser


class TrackerBackend(ABC):
    """Operations the sync engine needs from a task tracker.

    Every call is a single request. Implementations raise the errors in
    prsync_tracker.errors and nothing else.
    """

    @abstractmethod
    def list_custom_fields(self, workspace: str) -> Iterator[CustomField]:
        """Yield every custom field defined in the workspace."""

    @abstractmethod
    def search_tasks_by_field(self, workspace: str, field_gid: str, value: str) -> list[Task]:
        """Indexed search on a custom-field value.

        Not read-after-write consistent: a task created seconds ago may be
        missing from the result.
        """

    @abstractmethod
    def list_project_tasks(self, project: str, limit: int) -> list[Task]:
        """Return up to ``limit`` tasks of the project, newest first, with custom fields."""

    @abstractmethod
    def get_task(self, task_gid: str) -> Task:
        """Fetch one task including its project memberships."""

    @abstractmethod
    def create_task(self, workspace: str, spec: NewTask) -> Task:
        """Create a top-level task."""

    @abstractmethod
    def update_task(self, task_gid: str, changes: TaskChanges) -> Task:
        """Apply a partial update in one request."""

    @abstractmethod
    def set_parent(self, task_gid: str, parent_gid: str) -> None:
        """Make ``task_gid`` a subtask of ``parent_gid``."""

    @abstractmethod
    def add_to_section(self, section_gid: str, task_gid: str) -> None:
        """Move a task into a project section."""

    @abstractmethod
    def add_subtask(self, parent_gid: str, spec: NewTask) -> Task:
        """Create a subtask under ``parent_gid``."""

    @abstractmethod
    def list_subtasks(self, task_gid: str) -> list[Task]:
        """Return every subtask (open or completed) with its assignee."""

    @abstractmethod
    def get_user(self, user_gid: str) -> TrackerUser:
        """Fetch a user's identity, including e-mail where visible."""

    def close(self) -> None:
        """Release any resources held by the backend (HTTP pools).

        Default is a no-op.
        """
