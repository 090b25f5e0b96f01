"""Errors raised by tracker backends.

Backends translate their SDK exceptions into these three so callers can
recover from the ones that have a degraded path and let the rest propagate.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for every backend failure."""


class TrackerPermissionError(TrackerError):
    """The referenced object exists but this token cannot see or modify it."""


class RenderError(TrackerError):
    """The backend rejected rich-text notes as malformed."""


class TransientBackendError(TrackerError):
    """Any other request failure. Not retried outside the task resolver."""
