"""GitHub token resolution for `prsync resync`.

Resolution order (stops at first success):
  1. GITHUB_TOKEN / INPUT_GITHUB_TOKEN environment variable (Actions, explicit override)
  2. `gh auth token` (GitHub CLI session — works after `gh auth login`)

The Asana token is plain configuration and lives in prsync_core.config.
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_TOKEN_VARS = ("GITHUB_TOKEN", "INPUT_GITHUB_TOKEN")


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no source has one.

    Never raises; callers check for None and emit a UsageError.
    """
    for name in _TOKEN_VARS:
        token = os.environ.get(name)
        if token:
            return token

    try:
        result = subprocess.run(["gh", "auth", "token"], capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or hung.
        return None
    if result.returncode == 0 and result.stdout.strip():
        logger.debug("Resolved GitHub token via gh CLI session.")
        return result.stdout.strip()
    return None
