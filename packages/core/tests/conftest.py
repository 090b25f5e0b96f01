"""Shared fixtures: an in-memory Asana workspace and event builders."""

from __future__ import annotations

import pytest

from prsync_core.config import SyncConfig
from prsync_core.events import PullRequestSnapshot, ReviewSnapshot, SyncEvent
from prsync_core.fields import ResolvedFields
from prsync_core.resolver import RetryPolicy
from prsync_tracker.memory import InMemoryTracker
from prsync_tracker.models import CustomField, EnumOption, TrackerUser

URL_FIELD = CustomField(gid="cf-url", name="Github URL")
STATUS_FIELD = CustomField(
    gid="cf-status",
    name="Github Status",
    enum_options=(
        EnumOption(gid="opt-open", name="Open"),
        EnumOption(gid="opt-draft", name="Draft"),
        EnumOption(gid="opt-closed", name="Closed"),
        EnumOption(gid="opt-merged", name="Merged"),
    ),
)
PR_URL = "https://github.com/acme/widgets/pull/42"


@pytest.fixture
def tracker():
    return InMemoryTracker(
        fields=[CustomField(gid="cf-other", name="Priority"), URL_FIELD, STATUS_FIELD],
        users=[
            TrackerUser(gid="u-alice", email="alice@example.com", name="Alice"),
            TrackerUser(gid="u-dana", email="dana@example.com", name="Dana"),
        ],
    )


@pytest.fixture
def fields():
    return ResolvedFields(url=URL_FIELD, status=STATUS_FIELD)


@pytest.fixture
def config():
    return SyncConfig.from_mapping(
        {
            "asana_token": "tok",
            "workspace_id": "ws-1",
            "project_id": "proj-1",
            "skip_logins": "dependabot[bot]",
            "user_map": {"alice": "alice@example.com", "dana": "dana@example.com", "bob": "bob@example.com"},
            "skip_title_patterns": [r"^chore\(release\)"],
        }
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry(sleeps):
    return RetryPolicy(max_attempts=5, interval=20.0, sleep=sleeps.append)


@pytest.fixture
def make_pr():
    def _make_pr(**overrides) -> PullRequestSnapshot:
        values = {
            "number": 42,
            "title": "Fix bug",
            "body": "Fixes the flaky widget.",
            "html_url": PR_URL,
            "author": "dana",
            "state": "open",
            "repository": "acme/widgets",
        }
        values.update(overrides)
        return PullRequestSnapshot(**values)

    return _make_pr


@pytest.fixture
def make_event(make_pr):
    def _make_event(action="opened", name="pull_request", pr=None, review=None, requested=None, **pr_overrides):
        if isinstance(review, tuple):
            review = ReviewSnapshot(author=review[0], state=review[1])
        return SyncEvent(
            name=name,
            action=action,
            pull_request=pr or make_pr(**pr_overrides),
            sender="dana",
            review=review,
            requested_reviewer=requested,
        )

    return _make_event
