"""Composition of registry, liveness monitor, transport and resource client."""

from __future__ import annotations

import enum
import threading
from typing import Iterable, Optional, Protocol, Sequence

from inhibit_bridge.core.exceptions import BridgeError, ResourceUnavailable, TransportSetupError
from inhibit_bridge.core.registry import InhibitorClient, LockRegistry
from inhibit_bridge.core.settings import BridgeSettings
from inhibit_bridge.services.audit_logger import AuditLogger
from inhibit_bridge.utils.logging import get_logger
from inhibit_bridge.workers.liveness import LivenessMonitor


class BridgeState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class InhibitHandler(Protocol):
    """Handlers bound to the exported interface; ``peer`` comes from the transport."""

    def inhibit(self, peer: str, owner: str, reason: str) -> int:
        ...

    def uninhibit(self, peer: str, handle: int) -> None:
        ...


class Transport(Protocol):
    """Bus connection that exports the handlers and enumerates peers."""

    def connect(self) -> None:
        ...

    def claim_name(self, name: str) -> None:
        ...

    def export(self, handler: InhibitHandler, paths: Sequence[str]) -> None:
        ...

    def list_peers(self) -> Iterable[str]:
        ...

    def close(self) -> None:
        ...


class InhibitBridge:
    """Serves the idle-inhibit interface on top of a :class:`LockRegistry`.

    Startup order: bus connect, name claim, resource client, export at
    every path, monitor. Shutdown order: monitor, transport, outstanding
    locks, resource client.
    """

    def __init__(
        self,
        *,
        settings: BridgeSettings,
        transport: Transport,
        inhibitor_client: InhibitorClient,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.inhibitor_client = inhibitor_client
        self.registry = LockRegistry(
            inhibitor_client,
            program=settings.program,
            what=settings.inhibit_what,
            mode=settings.inhibit_mode,
            audit_logger=audit_logger,
        )
        self.monitor = LivenessMonitor(
            self.registry,
            transport,
            interval=settings.heartbeat_interval,
        )
        self.logger = get_logger("InhibitBridge")
        self._state = BridgeState.UNINITIALIZED
        self._lifecycle = threading.RLock()

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> "InhibitBridge":
        """Build a bridge on the session bus backed by systemd-logind."""
        audit_logger = None
        if settings.audit_log_path:
            try:
                audit_logger = AuditLogger(settings.audit_log_path)
            except OSError as exc:
                raise TransportSetupError(f"cannot open audit log {settings.audit_log_path}", str(exc)) from exc

        from inhibit_bridge.services.logind import LogindInhibitorClient
        from inhibit_bridge.transport.dbus_export import DBusTransport

        return cls(
            settings=settings,
            transport=DBusTransport(call_timeout=settings.call_timeout),
            inhibitor_client=LogindInhibitorClient(timeout=settings.call_timeout),
            audit_logger=audit_logger,
        )

    @property
    def state(self) -> BridgeState:
        return self._state

    def start(self) -> None:
        with self._lifecycle:
            if self._state is BridgeState.SERVING:
                return
            if self._state is not BridgeState.UNINITIALIZED:
                raise RuntimeError(f"cannot start bridge in state {self._state.value}")
            self._state = BridgeState.CONNECTING
            try:
                self.transport.connect()
                self.transport.claim_name(self.settings.bus_name)
                self.inhibitor_client.connect()
                self.transport.export(self, self.settings.object_paths)
                self.monitor.start()
            except Exception as exc:
                self.logger.error("Bridge setup failed: %s", exc)
                self._rollback()
                self._state = BridgeState.STOPPED
                if isinstance(exc, TransportSetupError):
                    raise
                raise TransportSetupError("bridge setup failed", str(exc)) from exc
            self._state = BridgeState.SERVING
            self.logger.info(
                "Serving %s at %s", self.settings.bus_name, ", ".join(self.settings.object_paths)
            )

    def stop(self) -> None:
        with self._lifecycle:
            if self._state in (BridgeState.STOPPED, BridgeState.SHUTTING_DOWN):
                return
            if self._state is BridgeState.UNINITIALIZED:
                self._state = BridgeState.STOPPED
                return
            self._state = BridgeState.SHUTTING_DOWN
            self.logger.info("Shutting down bridge")
            try:
                self.monitor.stop()
                self._close_quietly("transport", self.transport.close)
                if self.settings.drain_on_shutdown:
                    drained = self.registry.drain()
                    if drained:
                        self.logger.info("Released %d outstanding lock(s)", len(drained))
                elif len(self.registry):
                    self.logger.info(
                        "Leaving %d lock(s) to be released on process exit", len(self.registry)
                    )
                self._close_quietly("inhibitor client", self.inhibitor_client.close)
            finally:
                self._state = BridgeState.STOPPED

    def inhibit(self, peer: str, owner: str, reason: str) -> int:
        self._require_serving()
        return self.registry.acquire(owner, reason, peer)

    def uninhibit(self, peer: str, handle: int) -> None:
        self._require_serving()
        self.registry.release(handle, requested_by=peer)

    def _require_serving(self) -> None:
        if self._state is not BridgeState.SERVING:
            raise ResourceUnavailable(f"bridge is {self._state.value}")

    def _rollback(self) -> None:
        self.monitor.stop()
        self._close_quietly("transport", self.transport.close)
        self._close_quietly("inhibitor client", self.inhibitor_client.close)

    def _close_quietly(self, what: str, close) -> None:
        try:
            close()
        except (BridgeError, OSError) as exc:
            self.logger.warning("Failed to close %s: %s", what, exc)
