"""Scrape error taxonomy.

Each error carries an optional ``meta`` dict so diagnostics collected before
the failure (timings, final URL, counters) survive into the reported result.
"""
from __future__ import annotations


class ScrapeError(Exception):
    """Base error for a single scrape request."""

    outcome = "internal"

    def __init__(self, message: str, meta: dict | None = None):
        super().__init__(message)
        self.meta = meta or {}


class InputError(ScrapeError):
    """Missing or invalid request field. Raised before any browser is launched."""

    outcome = "input"


class AuthRequiredError(ScrapeError):
    """Navigation ended on a login/authorize page: the supplied session is not valid."""

    outcome = "auth"


class NavigationError(ScrapeError):
    """The playlist page did not reach network idle (or failed to load) in time."""

    outcome = "internal"
