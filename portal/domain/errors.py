"""
Error taxonomy for the portal client.

An unauthenticated response to a read is not an error: the gateway returns
``None``. Actions ask for 401 to be raised as :class:`RequestFailedError`.
"""

from __future__ import annotations


class PortalError(Exception):
    """Base class for portal client errors."""


class FetchError(PortalError):
    """A request to the workspace API did not produce a usable response."""


class UnreachableError(FetchError):
    """The server could not be reached (connection, DNS, timeout, open circuit)."""


class RequestFailedError(FetchError):
    """The server answered with a non-success status (401 only for actions)."""

    def __init__(self, endpoint: str, status_code: int) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(f"{endpoint} failed with HTTP {status_code}")

    @property
    def capacity_exceeded(self) -> bool:
        return self.status_code == 503


class ActionError(PortalError):
    """A user-triggered action failed; ``message`` is shown to the user."""

    def __init__(self, action: str, message: str) -> None:
        self.action = action
        self.message = message
        super().__init__(f"{action}: {message}")
