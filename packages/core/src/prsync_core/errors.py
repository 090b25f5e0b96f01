"""Exception hierarchy for the sync engine.

Backend failures come from prsync_tracker.errors and are re-exported here so
callers have one import site.
"""

from __future__ import annotations

from prsync_tracker.errors import RenderError, TrackerError, TrackerPermissionError, TransientBackendError

__all__ = [
    "SyncError",
    "ConfigurationError",
    "ConsistencyTimeout",
    "TrackerError",
    "TrackerPermissionError",
    "RenderError",
    "TransientBackendError",
]


class SyncError(Exception):
    """Base class for errors raised by the engine itself."""


class ConfigurationError(SyncError):
    """Inputs or workspace setup are wrong. Fatal, never retried."""


class ConsistencyTimeout(SyncError):
    """The task could not be found within the retry budget."""

    def __init__(self, url: str, attempts: int):
        super().__init__(f"No task found for {url} after {attempts} attempt(s)")
        self.url = url
        self.attempts = attempts
