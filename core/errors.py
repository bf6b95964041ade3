from __future__ import annotations

from typing import Optional


class DashboardError(Exception):
    """Base class for failures scoped to a single request or refresh cycle."""


class ConfigurationError(DashboardError):
    """Required Airtable settings are missing."""


class UpstreamFetchError(DashboardError):
    """Airtable (or the network in front of it) rejected a request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, error_type: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type


class NoDataError(DashboardError):
    """The people collection is empty, so there is nothing to aggregate."""
