from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

import yaml

from prsync_core.errors import ConfigurationError

DEFAULT_CONFIG: dict = {
    "asana_token": None,
    "workspace_id": None,
    "project_id": None,
    "section_id": None,  # optional section new tasks are moved into
    "skip_logins": [],  # logins that never get a personal subtask (bots, service accounts)
    "no_autoclose_projects": [],  # tasks in any of these projects stay open when the PR closes
    "user_map": {},  # GitHub login -> Asana e-mail
    "skip_title_patterns": [r"^chore\(release\)"],
    "url_field_name": "Github URL",
    "status_field_name": "Github Status",
    "search_attempts": 5,
    "search_interval": 20.0,
    "fallback_scan_limit": 100,
    "body_limit": 5000,
}

# GitHub Actions exposes `with:` inputs as INPUT_<NAME> environment variables.
_ENV_INPUTS: dict[str, tuple[str, ...]] = {
    "asana_token": ("INPUT_ASANA_ACCESS_TOKEN", "ASANA_ACCESS_TOKEN"),
    "workspace_id": ("INPUT_ASANA_WORKSPACE_ID", "ASANA_WORKSPACE_ID"),
    "project_id": ("INPUT_ASANA_PROJECT_ID", "ASANA_PROJECT_ID"),
    "section_id": ("INPUT_MOVE_TO_SECTION_ID",),
    "skip_logins": ("INPUT_SKIP_USERS",),
    "no_autoclose_projects": ("INPUT_NO_AUTOCLOSE_PROJECTS",),
    "user_map": ("INPUT_USER_MAP",),
}

_REQUIRED = ("asana_token", "workspace_id", "project_id")


def _split_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]


def _parse_user_map(value) -> dict[str, str]:
    if not value:
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"user_map is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise ConfigurationError("user_map must be a JSON object of login -> e-mail")
    return {str(login).lower(): str(email) for login, email in value.items() if email}


@dataclass(frozen=True)
class SyncConfig:
    """Immutable run configuration passed explicitly to every component."""

    asana_token: Optional[str] = None
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    section_id: Optional[str] = None
    skip_logins: frozenset = frozenset()
    no_autoclose_projects: frozenset = frozenset()
    user_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    skip_title_patterns: tuple = ()
    url_field_name: str = DEFAULT_CONFIG["url_field_name"]
    status_field_name: str = DEFAULT_CONFIG["status_field_name"]
    search_attempts: int = DEFAULT_CONFIG["search_attempts"]
    search_interval: float = DEFAULT_CONFIG["search_interval"]
    fallback_scan_limit: int = DEFAULT_CONFIG["fallback_scan_limit"]
    body_limit: int = DEFAULT_CONFIG["body_limit"]

    @classmethod
    def from_mapping(cls, raw: dict) -> "SyncConfig":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in raw.items() if k in known}
        for key in ("asana_token", "workspace_id", "project_id", "section_id"):
            if values.get(key) is not None:
                values[key] = str(values[key]).strip() or None
        values["skip_logins"] = frozenset(login.lower() for login in _split_list(values.get("skip_logins")))
        values["no_autoclose_projects"] = frozenset(_split_list(values.get("no_autoclose_projects")))
        values["user_map"] = MappingProxyType(_parse_user_map(values.get("user_map")))
        values["skip_title_patterns"] = tuple(values.get("skip_title_patterns") or ())
        for key, cast in (
            ("search_attempts", int),
            ("search_interval", float),
            ("fallback_scan_limit", int),
            ("body_limit", int),
        ):
            if key in values:
                try:
                    values[key] = cast(values[key])
                except (TypeError, ValueError) as e:
                    raise ConfigurationError(f"{key} must be a number, got {values[key]!r}") from e
        return cls(**values)

    def validate(self) -> "SyncConfig":
        missing = [key for key in _REQUIRED if not getattr(self, key)]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
        if self.search_attempts < 1:
            raise ConfigurationError("search_attempts must be at least 1")
        return self

    def is_skipped(self, login: str | None) -> bool:
        return not login or login.lower() in self.skip_logins

    def email_for(self, login: str | None) -> str | None:
        """Return the mapped e-mail for a login, or None if skipped or unmapped."""
        if self.is_skipped(login):
            return None
        return self.user_map.get(login.lower())


def load_config(config_path: str = ".prsync.yml", cli_overrides: Optional[dict] = None) -> SyncConfig:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prsync.yml in the current directory
      3. Environment variables / GitHub Actions inputs
      4. CLI argument overrides

    The result is not validated; call ``validate()`` before talking to Asana.
    """
    config = {**DEFAULT_CONFIG, "skip_title_patterns": list(DEFAULT_CONFIG["skip_title_patterns"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    for key, names in _ENV_INPUTS.items():
        for name in names:
            value = os.environ.get(name)
            if value:
                config[key] = value
                break

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    return SyncConfig.from_mapping(config)
