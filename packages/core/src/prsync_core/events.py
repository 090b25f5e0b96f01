"""Typed views of the GitHub webhook payload.

Only the fields the engine reads are kept. Snapshots are frozen: nothing in
the engine mutates the event it was handed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

PULL_REQUEST_EVENTS = frozenset({"pull_request", "pull_request_target"})
REVIEW_EVENTS = frozenset({"pull_request_review", "pull_request_review_target"})
RELEVANT_EVENTS = PULL_REQUEST_EVENTS | REVIEW_EVENTS


@dataclass(frozen=True)
class PullRequestSnapshot:
    number: int
    title: str
    body: str
    html_url: str
    author: str
    state: str  # "open" | "closed"
    merged: bool = False
    draft: bool = False
    repository: str = ""  # owner/name
    requested_reviewers: tuple[str, ...] = ()

    @property
    def is_closed(self) -> bool:
        return self.state != "open"


@dataclass(frozen=True)
class ReviewSnapshot:
    author: str
    state: str  # lower-cased: approved | commented | changes_requested | dismissed

    @property
    def approved(self) -> bool:
        return self.state == "approved"


@dataclass(frozen=True)
class SyncEvent:
    name: str
    action: str
    pull_request: PullRequestSnapshot
    sender: str = ""
    review: Optional[ReviewSnapshot] = None
    requested_reviewer: Optional[str] = None

    @property
    def is_relevant(self) -> bool:
        return self.name in RELEVANT_EVENTS

    @property
    def is_review_event(self) -> bool:
        return self.name in REVIEW_EVENTS


def _login(user: dict | None) -> str:
    return (user or {}).get("login", "") or ""


def parse_pull_request(pr: dict, repository: str = "") -> PullRequestSnapshot:
    repo = repository or ((pr.get("base") or {}).get("repo") or {}).get("full_name", "")
    return PullRequestSnapshot(
        number=int(pr["number"]),
        title=pr.get("title") or "",
        body=pr.get("body") or "",
        html_url=pr["html_url"],
        author=_login(pr.get("user")),
        state=pr.get("state") or "open",
        merged=bool(pr.get("merged")),
        draft=bool(pr.get("draft")),
        repository=repo,
        requested_reviewers=tuple(_login(r) for r in pr.get("requested_reviewers") or [] if _login(r)),
    )


def parse_event(event_name: str, payload: dict) -> SyncEvent:
    """Build a SyncEvent from a webhook payload.

    Raises KeyError/ValueError when the payload has no usable pull_request;
    callers check ``is_relevant`` before calling this for non-PR events.
    """
    repository = (payload.get("repository") or {}).get("full_name", "")
    review = None
    raw_review = payload.get("review")
    if raw_review:
        review = ReviewSnapshot(author=_login(raw_review.get("user")), state=(raw_review.get("state") or "").lower())
    requested = payload.get("requested_reviewer")
    return SyncEvent(
        name=event_name,
        action=payload.get("action") or "",
        pull_request=parse_pull_request(payload["pull_request"], repository),
        sender=_login(payload.get("sender")),
        review=review,
        requested_reviewer=_login(requested) or None,
    )


def load_event(event_path: str, event_name: str) -> SyncEvent | None:
    """Read the event JSON GitHub Actions writes to GITHUB_EVENT_PATH.

    Returns None for events without a pull request (push, schedule...).
    """
    payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    if "pull_request" not in payload:
        return None
    return parse_event(event_name, payload)
