from __future__ import annotations

from github import Github

from prsync_core.events import PullRequestSnapshot, SyncEvent


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_requested_reviewers(pr) -> tuple[str, ...]:
    """Logins of individually requested reviewers. Team requests are ignored."""
    users, _teams = pr.get_review_requests()
    return tuple(u.login for u in users)


def snapshot_from_pull(pr, repo_name: str = "") -> PullRequestSnapshot:
    """Build a PullRequestSnapshot from a PyGithub PullRequest."""
    return PullRequestSnapshot(
        number=pr.number,
        title=pr.title or "",
        body=pr.body or "",
        html_url=pr.html_url,
        author=pr.user.login if pr.user else "",
        state=pr.state,
        merged=bool(pr.merged),
        draft=bool(pr.draft),
        repository=repo_name or pr.base.repo.full_name,
        requested_reviewers=get_requested_reviewers(pr),
    )


def resync_event(repo, pr_number: int, sender: str = "") -> SyncEvent:
    """Synthesize an ``edited`` event for the current state of a pull request."""
    pr = get_pull(repo, pr_number)
    return SyncEvent(
        name="pull_request",
        action="edited",
        pull_request=snapshot_from_pull(pr, repo.full_name),
        sender=sender,
    )
