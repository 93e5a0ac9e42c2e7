"""Background workers running alongside the bus handlers."""

from .base import BaseWorker
from .liveness import LivenessMonitor

__all__ = ["BaseWorker", "LivenessMonitor"]
