"""Tracker data models.

Plain dataclasses shared by every backend. Backends translate their wire
format into these so prsync_core never sees SDK dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class EnumOption:
    gid: str
    name: str


@dataclass(frozen=True)
class CustomField:
    """A custom field definition in the workspace."""

    gid: str
    name: str
    enum_options: tuple[EnumOption, ...] = ()

    def option(self, name: str) -> EnumOption | None:
        for opt in self.enum_options:
            if opt.name == name:
                return opt
        return None


@dataclass(frozen=True)
class CustomFieldValue:
    """The value a task holds for one custom field.

    ``value`` is what the backend accepts on write (text or enum option gid);
    ``display_value`` is the human-readable form returned by list endpoints.
    """

    value: str | None = None
    display_value: str | None = None


@dataclass(frozen=True)
class TrackerUser:
    gid: str
    email: str | None = None
    name: str | None = None


@dataclass
class Task:
    """A tracker task as last seen by this run."""

    gid: str
    name: str = ""
    notes: str = ""
    html_notes: str = ""
    completed: bool = False
    custom_fields: dict[str, CustomFieldValue] = field(default_factory=dict)
    memberships: list[str] = field(default_factory=list)  # project gids
    parent: str | None = None
    followers: list[str] = field(default_factory=list)
    assignee: TrackerUser | None = None
    permalink_url: str = ""
    created_at: str = ""  # ISO-8601 UTC timestamp

    def field_display(self, field_gid: str) -> str | None:
        value = self.custom_fields.get(field_gid)
        if value is None:
            return None
        return value.display_value if value.display_value is not None else value.value


@dataclass
class TaskChanges:
    """A partial update. ``None`` means "leave unchanged"."""

    name: str | None = None
    notes: str | None = None
    html_notes: str | None = None
    completed: bool | None = None
    custom_fields: dict[str, str] = field(default_factory=dict)

    def as_payload(self) -> dict:
        payload: dict = {}
        for key in ("name", "notes", "html_notes", "completed"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.custom_fields:
            payload["custom_fields"] = dict(self.custom_fields)
        return payload


@dataclass
class NewTask:
    """Everything needed to create a task or subtask."""

    name: str
    notes: str = ""
    html_notes: str | None = None
    projects: list[str] = field(default_factory=list)
    custom_fields: dict[str, str] = field(default_factory=dict)
    assignee: str | None = None  # e-mail or user gid
    followers: list[str] = field(default_factory=list)
    completed: bool = False
