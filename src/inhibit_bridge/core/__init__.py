"""Core primitives: errors, lock models and settings.

The registry lives in ``core.registry`` and the composed service in
``core.service``.
"""

from .exceptions import (
    BridgeError,
    InvalidHandle,
    PeerQueryError,
    ResourceReleaseError,
    ResourceUnavailable,
    TransportSetupError,
)
from .models import Lock, LockEvent, LockRecord
from .settings import BridgeSettings

__all__ = [
    "BridgeError",
    "InvalidHandle",
    "PeerQueryError",
    "ResourceReleaseError",
    "ResourceUnavailable",
    "TransportSetupError",
    "Lock",
    "LockEvent",
    "LockRecord",
    "BridgeSettings",
]
