"""Tests for prsync-tracker backends."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from asana.rest import ApiException

from prsync_tracker.asana import AsanaTracker, _new_task_body, _to_task
from prsync_tracker.errors import RenderError, TrackerPermissionError, TransientBackendError
from prsync_tracker.memory import InMemoryTracker
from prsync_tracker.models import CustomField, EnumOption, NewTask, TaskChanges, TrackerUser

STATUS = CustomField(gid="cf-status", name="Github Status", enum_options=(EnumOption("opt-open", "Open"),))


def _api_error(status, body=""):
    e = ApiException(status=status, reason="Boom")
    e.body = body
    return e


def _task_json(gid="1", **extra):
    data = {
        "gid": gid,
        "name": "acme/widgets#42 - Fix bug",
        "notes": "n",
        "completed": False,
        "created_at": "2024-01-01T00:00:00.000Z",
        "permalink_url": f"https://app.asana.com/0/9/{gid}",
        "parent": None,
        "assignee": {"gid": "u1"},
        "followers": [{"gid": "u2"}],
        "memberships": [{"project": {"gid": "proj-1"}}, {"section": {"gid": "s"}}],
        "custom_fields": [
            {"gid": "cf-url", "text_value": "https://github.com/acme/widgets/pull/42", "display_value": "https://github.com/acme/widgets/pull/42"},
            {"gid": "cf-status", "text_value": None, "enum_value": {"gid": "opt-open"}, "display_value": "Open"},
        ],
    }
    data.update(extra)
    return data


# ---------------------------------------------------------------------------
# InMemoryTracker
# ---------------------------------------------------------------------------


class TestInMemoryTracker:
    def _tracker(self, **kwargs):
        return InMemoryTracker(fields=[STATUS], users=[TrackerUser("u-a", "a@example.com")], **kwargs)

    def test_enum_values_display_option_name(self):
        tracker = self._tracker()
        task = tracker.create_task("ws", NewTask(name="t", custom_fields={"cf-status": "opt-open"}))
        assert task.field_display("cf-status") == "Open"
        assert task.custom_fields["cf-status"].value == "opt-open"

    def test_search_lag_hides_new_tasks(self):
        tracker = self._tracker(search_lag=2)
        tracker.create_task("ws", NewTask(name="t", custom_fields={"cf-url": "u"}))
        assert tracker.search_tasks_by_field("ws", "cf-url", "u") == []
        assert tracker.search_tasks_by_field("ws", "cf-url", "u") == []
        assert len(tracker.search_tasks_by_field("ws", "cf-url", "u")) == 1

    def test_project_listing_newest_first(self):
        tracker = self._tracker()
        first = tracker.create_task("ws", NewTask(name="a", projects=["p"]))
        second = tracker.create_task("ws", NewTask(name="b", projects=["p"]))
        tracker.create_task("ws", NewTask(name="c", projects=["other"]))
        assert [t.gid for t in tracker.list_project_tasks("p", 10)] == [second.gid, first.gid]
        assert [t.gid for t in tracker.list_project_tasks("p", 1)] == [second.gid]

    def test_denied_task_raises_permission_error(self):
        tracker = self._tracker()
        task = tracker.create_task("ws", NewTask(name="t"))
        tracker.denied.add(task.gid)
        with pytest.raises(TrackerPermissionError):
            tracker.get_task(task.gid)

    def test_unknown_task_is_transient(self):
        with pytest.raises(TransientBackendError):
            self._tracker().get_task("404")

    def test_rejects_rich_notes_when_configured(self):
        tracker = self._tracker(reject_html=True)
        with pytest.raises(RenderError):
            tracker.create_task("ws", NewTask(name="t", html_notes="<body>x</body>"))
        assert tracker.tasks == {}

    def test_subtask_listing_returns_compact_assignee(self):
        tracker = self._tracker()
        parent = tracker.create_task("ws", NewTask(name="p"))
        tracker.add_subtask(parent.gid, NewTask(name="s", assignee="a@example.com"))
        (subtask,) = tracker.list_subtasks(parent.gid)
        assert subtask.assignee.gid == "u-a"
        assert subtask.assignee.email is None

    def test_returned_tasks_are_copies(self):
        tracker = self._tracker()
        task = tracker.create_task("ws", NewTask(name="t"))
        task.name = "changed"
        assert tracker.tasks[task.gid].name == "t"

    def test_update_only_touches_given_fields(self):
        tracker = self._tracker()
        task = tracker.create_task("ws", NewTask(name="t", notes="keep"))
        updated = tracker.update_task(task.gid, TaskChanges(completed=True))
        assert (updated.name, updated.notes, updated.completed) == ("t", "keep", True)


# ---------------------------------------------------------------------------
# AsanaTracker
# ---------------------------------------------------------------------------


@pytest.fixture
def sdk(mocker):
    """Patch the asana SDK module so every *Api class returns a MagicMock."""
    return mocker.patch("prsync_tracker.asana.asana")


@pytest.fixture
def asana_tracker(sdk):
    return AsanaTracker("tok")


class TestAsanaTranslation:
    def test_to_task_reads_fields(self):
        task = _to_task(_task_json())
        assert task.memberships == ["proj-1"]
        assert task.followers == ["u2"]
        assert task.assignee.gid == "u1"
        assert task.parent is None
        assert task.field_display("cf-status") == "Open"
        assert task.custom_fields["cf-status"].value == "opt-open"
        assert task.custom_fields["cf-url"].value.endswith("/pull/42")

    def test_new_task_body_prefers_rich_notes(self):
        body = _new_task_body(NewTask(name="t", notes="plain", html_notes="<body>rich</body>"))
        assert body["html_notes"] == "<body>rich</body>"
        assert "notes" not in body

    def test_new_task_body_plain(self):
        body = _new_task_body(NewTask(name="t", notes="plain", assignee="a@example.com", followers=["b@example.com"]))
        assert body["notes"] == "plain"
        assert body["assignee"] == "a@example.com"
        assert body["followers"] == ["b@example.com"]


class TestAsanaTracker:
    def test_configures_client_with_token(self, sdk):
        AsanaTracker("tok")
        assert sdk.Configuration.return_value.access_token == "tok"
        sdk.ApiClient.assert_called_once_with(sdk.Configuration.return_value)

    def test_search_filters_on_field_value(self, asana_tracker, sdk):
        tasks_api = sdk.TasksApi.return_value
        tasks_api.search_tasks_for_workspace.return_value = [_task_json("7")]

        found = asana_tracker.search_tasks_by_field("ws", "cf-url", "https://x/pull/1")

        assert [t.gid for t in found] == ["7"]
        workspace, opts = tasks_api.search_tasks_for_workspace.call_args[0]
        assert workspace == "ws"
        assert opts["custom_fields.cf-url.value"] == "https://x/pull/1"

    def test_project_listing_sorted_newest_first(self, asana_tracker, sdk):
        sdk.TasksApi.return_value.get_tasks.return_value = iter(
            [
                _task_json("1", created_at="2024-01-01T00:00:00Z"),
                _task_json("3", created_at="2024-03-01T00:00:00Z"),
                _task_json("2", created_at="2024-02-01T00:00:00Z"),
            ]
        )
        tasks = asana_tracker.list_project_tasks("proj-1", limit=100)
        assert [t.gid for t in tasks] == ["3", "2", "1"]
        opts = sdk.TasksApi.return_value.get_tasks.call_args[0][0]
        assert opts["project"] == "proj-1"
        assert "modified_since" in opts

    def test_project_listing_keeps_newest_beyond_limit(self, asana_tracker, sdk):
        rows = [_task_json(str(i), created_at=f"2024-01-01T00:{i // 60:02d}:{i % 60:02d}Z") for i in range(150)]
        sdk.TasksApi.return_value.get_tasks.return_value = iter(rows)

        tasks = asana_tracker.list_project_tasks("proj-1", limit=100)

        assert len(tasks) == 100
        assert tasks[0].gid == "149"
        assert tasks[-1].gid == "50"

    def test_close_releases_api_client(self, asana_tracker, sdk):
        asana_tracker.close()
        sdk.ApiClient.return_value.close.assert_called_once_with()

    def test_update_sends_rich_notes_only(self, asana_tracker, sdk):
        tasks_api = sdk.TasksApi.return_value
        tasks_api.update_task.return_value = _task_json("5")

        asana_tracker.update_task("5", TaskChanges(name="n", notes="plain", html_notes="<body/>"))

        body, gid, _opts = tasks_api.update_task.call_args[0]
        assert gid == "5"
        assert body == {"data": {"name": "n", "html_notes": "<body/>"}}

    def test_add_to_section(self, asana_tracker, sdk):
        asana_tracker.add_to_section("sec", "5")
        sdk.SectionsApi.return_value.add_task_for_section.assert_called_once_with(
            "sec", {"body": {"data": {"task": "5"}}}
        )

    def test_get_user(self, asana_tracker, sdk):
        sdk.UsersApi.return_value.get_user.return_value = {"gid": "u1", "email": "a@example.com", "name": "A"}
        user = asana_tracker.get_user("u1")
        assert (user.gid, user.email) == ("u1", "a@example.com")

    @pytest.mark.parametrize("status", [403, 404])
    def test_forbidden_maps_to_permission_error(self, asana_tracker, sdk, status):
        sdk.TasksApi.return_value.set_parent_for_task.side_effect = _api_error(status)
        with pytest.raises(TrackerPermissionError):
            asana_tracker.set_parent("5", "9")

    def test_invalid_markup_maps_to_render_error(self, asana_tracker, sdk):
        sdk.TasksApi.return_value.create_task.side_effect = _api_error(400, '{"errors":[{"message":"XML is invalid"}]}')
        with pytest.raises(RenderError):
            asana_tracker.create_task("ws", NewTask(name="t", html_notes="<body><b></body>"))

    def test_bad_request_without_rich_text_is_transient(self, asana_tracker, sdk):
        sdk.TasksApi.return_value.create_task.side_effect = _api_error(400, "xml")
        with pytest.raises(TransientBackendError):
            asana_tracker.create_task("ws", NewTask(name="t", notes="plain"))

    def test_server_error_is_transient(self, asana_tracker, sdk):
        sdk.TasksApi.return_value.get_subtasks_for_task.side_effect = _api_error(500)
        with pytest.raises(TransientBackendError):
            asana_tracker.list_subtasks("5")

    def test_custom_field_listing_errors_translated(self, asana_tracker, sdk):
        sdk.CustomFieldsApi.return_value.get_custom_fields_for_workspace.side_effect = _api_error(401)
        with pytest.raises(TransientBackendError):
            list(asana_tracker.list_custom_fields("ws"))
