"""Exception hierarchy for the monitoring core."""

from __future__ import annotations


class MonitorError(Exception):
    """Base exception for the monitoring core."""


class NotFoundError(MonitorError, LookupError):
    """Unknown zone or alert identifier."""

    def __str__(self) -> str:
        # LookupError would otherwise repr() the message.
        return str(self.args[0]) if self.args else ""


class ValidationError(MonitorError, ValueError):
    """Zone configuration or request arguments are malformed."""


class BackendUnavailable(MonitorError):
    """The backing row store failed to read or write."""
