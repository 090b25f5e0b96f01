"""Resolve the two custom fields the sync relies on."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from prsync_core.errors import ConfigurationError
from prsync_tracker.base import TrackerBackend
from prsync_tracker.models import CustomField

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedFields:
    url: CustomField
    status: CustomField

    def status_option(self, name: str) -> str:
        option = self.status.option(name)
        if option is None:
            available = ", ".join(o.name for o in self.status.enum_options) or "none"
            raise ConfigurationError(
                f"Custom field {self.status.name!r} has no option {name!r} (available: {available})"
            )
        return option.gid


class FieldDirectory:
    def __init__(self, tracker: TrackerBackend, url_name: str = "Github URL", status_name: str = "Github Status"):
        self._tracker = tracker
        self._url_name = url_name
        self._status_name = status_name

    def resolve(self, workspace: str) -> ResolvedFields:
        """Look up both fields by exact name. Missing either is fatal."""
        by_name: dict[str, CustomField] = {}
        for f in self._tracker.list_custom_fields(workspace):
            by_name.setdefault(f.name, f)

        missing = [name for name in (self._url_name, self._status_name) if name not in by_name]
        if missing:
            logger.debug("Custom fields in workspace %s: %s", workspace, sorted(by_name))
            raise ConfigurationError(
                f"Required fields missing: {', '.join(missing)}. Create them in the Asana workspace."
            )

        fields = ResolvedFields(url=by_name[self._url_name], status=by_name[self._status_name])
        logger.debug("%s field gid: %s", self._url_name, fields.url.gid)
        logger.debug("%s field gid: %s", self._status_name, fields.status.gid)
        return fields
