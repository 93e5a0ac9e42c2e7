"""Service providers used by the bridge.

``services.logind`` needs dbus-python and is imported where it is used.
"""

from .audit_logger import AuditLogger

__all__ = ["AuditLogger"]
