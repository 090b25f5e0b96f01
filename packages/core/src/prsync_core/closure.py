"""What happens to the task and its subtasks when the pull request closes."""

from __future__ import annotations

import logging
from typing import Iterable

from prsync_tracker.base import TrackerBackend
from prsync_tracker.models import Task, TaskChanges

logger = logging.getLogger(__name__)


class ClosurePolicy:
    def __init__(self, tracker: TrackerBackend, exclusion_project_ids: Iterable[str] = ()):
        self._tracker = tracker
        self._excluded = frozenset(exclusion_project_ids)

    def should_auto_close(self, task: Task) -> bool:
        """True unless the task belongs to a project exempt from auto-close."""
        if not self._excluded:
            return True
        memberships = self._tracker.get_task(task.gid).memberships
        blocking = sorted(self._excluded.intersection(memberships))
        if blocking:
            logger.info("Task %s is in no-autoclose project(s) %s; leaving it open", task.gid, ", ".join(blocking))
            return False
        return True

    def cascade(self, task: Task) -> int:
        """Complete every open subtask. Returns how many were completed."""
        completed = 0
        for subtask in self._tracker.list_subtasks(task.gid):
            if subtask.completed:
                continue
            self._tracker.update_task(subtask.gid, TaskChanges(completed=True))
            completed += 1
        if completed:
            logger.info("Completed %d review subtask(s) of task %s", completed, task.gid)
        return completed
