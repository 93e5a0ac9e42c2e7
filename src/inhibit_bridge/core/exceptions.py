"""Exceptions raised by the inhibit bridge.

Per-call errors (``ResourceUnavailable``, ``InvalidHandle``,
``ResourceReleaseError``) are returned to the remote caller that triggered
them. ``TransportSetupError`` aborts startup. ``PeerQueryError`` only ever
skips one liveness tick.
"""

from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base exception for all bridge errors."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class TransportSetupError(BridgeError):
    """Startup failed: bus connection, name claim, export or resource client."""


class ResourceUnavailable(BridgeError):
    """An inhibitor could not be obtained from the session manager."""


class InvalidHandle(BridgeError):
    """Release was asked for a cookie that is not currently live."""

    def __init__(self, handle: int) -> None:
        self.handle = handle
        super().__init__(f"{handle} is an invalid cookie")


class PeerQueryError(BridgeError):
    """The set of connected peers could not be enumerated."""


class ResourceReleaseError(BridgeError):
    """Closing a held inhibitor failed.

    The lock has already been removed from the registry when this is raised.
    """

    def __init__(self, handle: int, details: Optional[str] = None) -> None:
        self.handle = handle
        super().__init__(f"failed to release inhibitor for cookie {handle}", details)
