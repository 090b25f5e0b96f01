"""Tests for the CLI entry point."""

import json

import pytest
from click.testing import CliRunner

from prsync_cli.cli import main
from prsync_core.config import SyncConfig
from prsync_core.events import PullRequestSnapshot, SyncEvent
from prsync_tracker.memory import InMemoryTracker
from prsync_tracker.models import CustomField, EnumOption, TrackerUser

PR_URL = "https://github.com/acme/widgets/pull/42"


def _make_config(**overrides):
    values = {
        "asana_token": "tok",
        "workspace_id": "ws-1",
        "project_id": "proj-1",
        "user_map": {"alice": "alice@example.com", "dana": "dana@example.com"},
        "search_attempts": 1,
    }
    values.update(overrides)
    return SyncConfig.from_mapping(values)


def _make_tracker(status_options=("Open", "Draft", "Closed", "Merged")):
    status = CustomField(
        gid="cf-status",
        name="Github Status",
        enum_options=tuple(EnumOption(gid=f"opt-{name.lower()}", name=name) for name in status_options),
    )
    return InMemoryTracker(
        fields=[CustomField(gid="cf-url", name="Github URL"), status],
        users=[TrackerUser(gid="u-alice", email="alice@example.com")],
    )


def _payload(action="opened", **pr):
    pull_request = {
        "number": 42,
        "title": "Fix bug",
        "body": "Fixes the flaky widget.",
        "html_url": PR_URL,
        "user": {"login": "dana"},
        "state": "open",
        "merged": False,
        "draft": False,
        "requested_reviewers": [{"login": "alice"}],
    }
    pull_request.update(pr)
    return {
        "action": action,
        "pull_request": pull_request,
        "repository": {"full_name": "acme/widgets"},
        "sender": {"login": "dana"},
    }


def _patch_common(mocker, config=None, tracker=None):
    """Patch load_config and _build_tracker for most tests."""
    cfg = config or _make_config()
    backend = tracker or _make_tracker()
    mocker.patch("prsync_core.config.load_config", return_value=cfg)
    mocker.patch("prsync_cli.cli._build_tracker", return_value=backend)
    return cfg, backend


@pytest.fixture(autouse=True)
def _no_actions_env(monkeypatch):
    for name in ("GITHUB_OUTPUT", "GITHUB_EVENT_PATH", "GITHUB_EVENT_NAME", "RUNNER_DEBUG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def event_file(tmp_path):
    def _write(payload):
        path = tmp_path / "event.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return str(path)

    return _write


class TestCLIValidation:
    def test_missing_configuration_is_usage_error(self, mocker):
        _patch_common(mocker, config=SyncConfig(workspace_id="ws-1"))

        result = CliRunner().invoke(main, ["fields"])
        assert result.exit_code == 2
        assert "asana_token" in result.output
        assert "project_id" in result.output

    def test_tracker_closed_after_command(self, mocker):
        _, tracker = _patch_common(mocker)
        close = mocker.patch.object(tracker, "close")

        CliRunner().invoke(main, ["fields"])
        close.assert_called_once()


class TestSyncCommand:
    def test_opened_event_creates_task_and_writes_outputs(self, mocker, event_file, tmp_path):
        _, tracker = _patch_common(mocker)
        output = tmp_path / "github_output"

        result = CliRunner().invoke(
            main,
            [
                "sync",
                "--event-path",
                event_file(_payload()),
                "--event-name",
                "pull_request",
                "--output-path",
                str(output),
            ],
        )

        assert result.exit_code == 0, result.output
        (task,) = [t for t in tracker.tasks.values() if t.parent is None]
        lines = output.read_text(encoding="utf-8").splitlines()
        assert lines == ["result=created", f"task_url={task.permalink_url}"]
        assert tracker.count("add_subtask") == 1

    def test_reads_event_from_actions_environment(self, mocker, event_file):
        _, tracker = _patch_common(mocker)
        env = {"GITHUB_EVENT_PATH": event_file(_payload()), "GITHUB_EVENT_NAME": "pull_request"}

        result = CliRunner().invoke(main, ["sync"], env=env)

        assert result.exit_code == 0, result.output
        assert tracker.count("create_task") == 1

    def test_event_without_pull_request_is_noop(self, mocker, event_file):
        _, tracker = _patch_common(mocker)

        result = CliRunner().invoke(
            main, ["sync", "--event-path", event_file({"ref": "refs/heads/main"}), "--event-name", "push"]
        )

        assert result.exit_code == 0
        assert "Nothing to do" in result.output
        assert tracker.calls == []

    def test_failure_exits_non_zero_with_annotation(self, mocker, event_file):
        tracker = InMemoryTracker(fields=[CustomField(gid="cf-url", name="Github URL")])
        _patch_common(mocker, tracker=tracker)

        result = CliRunner().invoke(
            main, ["sync", "--event-path", event_file(_payload()), "--event-name", "pull_request"]
        )

        assert result.exit_code == 1
        assert "::error::Required fields missing" in result.output
        assert tracker.count("create_task") == 0

    def test_untracked_pr_is_created_on_later_event(self, mocker, event_file):
        _, tracker = _patch_common(mocker)

        result = CliRunner().invoke(
            main, ["sync", "--event-path", event_file(_payload("edited")), "--event-name", "pull_request"]
        )

        assert result.exit_code == 0, result.output
        assert "result: created" in result.output


class TestResyncCommand:
    def test_missing_github_token(self, mocker):
        _patch_common(mocker)
        mocker.patch("prsync_cli.auth.resolve_github_token", return_value=None)

        result = CliRunner().invoke(main, ["resync", "--repo", "acme/widgets", "--pr", "42"])
        assert result.exit_code != 0
        assert "GITHUB_TOKEN" in result.output

    def test_syncs_live_pull_request_state(self, mocker):
        _, tracker = _patch_common(mocker)
        mocker.patch("prsync_cli.auth.resolve_github_token", return_value="gh-tok")
        mock_repo = mocker.patch("prsync_cli.commands.resync.get_repo")
        snapshot = PullRequestSnapshot(
            number=42,
            title="Fix bug",
            body="",
            html_url=PR_URL,
            author="dana",
            state="closed",
            merged=True,
            repository="acme/widgets",
        )
        mock_event = mocker.patch(
            "prsync_cli.commands.resync.resync_event",
            return_value=SyncEvent(name="pull_request", action="edited", pull_request=snapshot),
        )

        result = CliRunner().invoke(main, ["resync", "--repo", "acme/widgets", "--pr", "42"])

        assert result.exit_code == 0, result.output
        mock_repo.assert_called_once_with("acme/widgets", token="gh-tok")
        assert mock_event.call_args[0][1] == 42
        (task,) = tracker.tasks.values()
        assert task.completed is True
        assert task.field_display("cf-status") == "Merged"

    def test_unknown_pull_request(self, mocker):
        from github import GithubException

        _patch_common(mocker)
        mocker.patch("prsync_cli.auth.resolve_github_token", return_value="gh-tok")
        mocker.patch("prsync_cli.commands.resync.get_repo")
        mocker.patch("prsync_cli.commands.resync.resync_event", side_effect=GithubException(404, "Not Found", None))

        result = CliRunner().invoke(main, ["resync", "--repo", "acme/widgets", "--pr", "999"])
        assert result.exit_code == 2
        assert "PR #999 not found" in result.output


class TestFieldsCommand:
    def test_lists_fields_and_options(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["fields"])

        assert result.exit_code == 0, result.output
        assert "cf-url" in result.output
        assert "cf-status" in result.output
        assert "All required fields" in result.output

    def test_missing_status_option(self, mocker):
        _patch_common(mocker, tracker=_make_tracker(status_options=("Open", "Closed")))

        result = CliRunner().invoke(main, ["fields"])
        assert result.exit_code == 1
        assert "Draft" in result.output and "Merged" in result.output

    def test_missing_field(self, mocker):
        _patch_common(mocker, tracker=InMemoryTracker())

        result = CliRunner().invoke(main, ["fields"])
        assert result.exit_code == 1
        assert "Github URL" in result.output
