"""Keep one review subtask per reviewer under the pull request's task.

Subtasks are matched to reviewers by the e-mail of their assignee, never by
name, so renaming a pull request or a subtask cannot produce a second subtask
for the same reviewer. A re-requested review reopens the existing subtask.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rich.console import Console

from prsync_core.config import SyncConfig
from prsync_core.events import SyncEvent
from prsync_tracker.base import TrackerBackend
from prsync_tracker.models import NewTask, Task, TaskChanges

console = Console()
logger = logging.getLogger(__name__)

# Actions after which every currently requested reviewer should have a subtask.
_FULL_RECONCILE_ACTIONS = frozenset({"opened", "reopened", "ready_for_review"})


@dataclass(frozen=True)
class ReviewTarget:
    login: str
    approved: bool = False  # review submitted with state "approved"
    removed: bool = False  # review request withdrawn


def review_targets(event: SyncEvent) -> list[ReviewTarget]:
    """Derive the reviewers this event concerns, in the order to process them."""
    if event.is_review_event:
        if event.action == "submitted" and event.review is not None and event.review.approved:
            return [ReviewTarget(login=event.review.author, approved=True)]
        return []
    if event.action == "review_requested" and event.requested_reviewer:
        return [ReviewTarget(login=event.requested_reviewer)]
    if event.action == "review_request_removed" and event.requested_reviewer:
        return [ReviewTarget(login=event.requested_reviewer, removed=True)]
    if event.action in _FULL_RECONCILE_ACTIONS:
        return [ReviewTarget(login=login) for login in event.pull_request.requested_reviewers]
    return []


def subtask_name(title: str) -> str:
    return f"Review Request: {title}"


def subtask_notes(event: SyncEvent) -> str:
    pr = event.pull_request
    requester = event.sender or pr.author
    return (
        f"{requester} requested your review on {pr.repository}#{pr.number}: {pr.title}\n"
        f"{pr.html_url}\n\n"
        "This task closes automatically when your review is completed."
    )


class ReviewReconciler:
    def __init__(self, tracker: TrackerBackend, config: SyncConfig):
        self._tracker = tracker
        self._config = config
        self._emails: dict[str, str | None] = {}  # user gid -> e-mail, per run

    def _assignee_email(self, subtask: Task) -> str | None:
        assignee = subtask.assignee
        if assignee is None:
            return None
        if assignee.email:
            return assignee.email
        if assignee.gid not in self._emails:
            self._emails[assignee.gid] = self._tracker.get_user(assignee.gid).email
        return self._emails[assignee.gid]

    def find_subtask(self, task: Task, email: str) -> Task | None:
        """Return the subtask assigned to ``email`` under ``task``, open or completed."""
        for subtask in self._tracker.list_subtasks(task.gid):
            assignee_email = self._assignee_email(subtask)
            if assignee_email and assignee_email.lower() == email.lower():
                return subtask
        return None

    def _create_subtask(self, task: Task, event: SyncEvent, email: str) -> Task:
        followers = [email]
        author_email = self._config.email_for(event.pull_request.author)
        if author_email and author_email.lower() != email.lower():
            followers.append(author_email)
        spec = NewTask(
            name=subtask_name(event.pull_request.title),
            notes=subtask_notes(event),
            assignee=email,
            followers=followers,
        )
        subtask = self._tracker.add_subtask(task.gid, spec)
        console.print(f"  Created review subtask {subtask.gid} for {email}")
        return subtask

    def reconcile_reviewer(self, task: Task, event: SyncEvent, target: ReviewTarget) -> Task | None:
        email = self._config.email_for(target.login)
        if email is None:
            reason = "skip list" if self._config.is_skipped(target.login) else "no user mapping"
            logger.info("Not tracking review by %s (%s)", target.login, reason)
            return None

        subtask = self.find_subtask(task, email)
        if target.removed:
            if subtask is not None and not subtask.completed:
                logger.info("Review request for %s removed, completing subtask %s", target.login, subtask.gid)
                return self._tracker.update_task(subtask.gid, TaskChanges(completed=True))
            return subtask

        if subtask is None:
            subtask = self._create_subtask(task, event, email)
        elif subtask.completed and not target.approved:
            logger.info("Review re-requested from %s, reopening subtask %s", target.login, subtask.gid)
            subtask = self._tracker.update_task(subtask.gid, TaskChanges(completed=False))

        if target.approved and not subtask.completed:
            logger.info("%s approved, completing subtask %s", target.login, subtask.gid)
            subtask = self._tracker.update_task(subtask.gid, TaskChanges(completed=True))
        return subtask

    def reconcile(self, task: Task, event: SyncEvent) -> list[Task]:
        """Bring the subtasks of ``task`` in line with the reviewers in ``event``.

        Reviewers are processed one at a time; returns the subtasks touched.
        """
        touched = []
        for target in review_targets(event):
            subtask = self.reconcile_reviewer(task, event, target)
            if subtask is not None:
                touched.append(subtask)
        return touched
