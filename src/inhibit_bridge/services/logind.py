"""systemd-logind inhibitor client over the system bus."""

from __future__ import annotations

import os
import threading
from typing import Optional

import dbus

from inhibit_bridge.core.exceptions import ResourceUnavailable
from inhibit_bridge.utils.logging import get_logger


LOGIND_BUS_NAME = "org.freedesktop.login1"
LOGIND_PATH = "/org/freedesktop/login1"
LOGIND_MANAGER_IFACE = "org.freedesktop.login1.Manager"


class InhibitorFd:
    """File descriptor returned by ``Manager.Inhibit``.

    The inhibition lasts until the descriptor is closed. ``release`` closes it
    at most once; later calls do nothing.
    """

    def __init__(self, fd: int, description: str = "") -> None:
        self._fd = fd
        self.description = description
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def release(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        os.close(self._fd)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"InhibitorFd(fd={self._fd}, {state}, {self.description!r})"


class LogindInhibitorClient:
    """Takes ``idle`` (or other) inhibitor locks from systemd-logind."""

    def __init__(self, *, timeout: float = 25.0, bus: Optional[dbus.bus.BusConnection] = None) -> None:
        self._timeout = timeout
        self._bus = bus
        self._owns_bus = bus is None
        self._manager: Optional[dbus.Interface] = None
        self.logger = get_logger("LogindClient")

    def connect(self) -> None:
        if self._manager is not None:
            return
        try:
            if self._bus is None:
                self._bus = dbus.SystemBus(private=True)
            proxy = self._bus.get_object(LOGIND_BUS_NAME, LOGIND_PATH, introspect=False)
            self._manager = dbus.Interface(proxy, LOGIND_MANAGER_IFACE)
        except dbus.DBusException as exc:
            raise ResourceUnavailable("cannot reach systemd-logind", str(exc)) from exc
        self.logger.debug("Connected to %s", LOGIND_BUS_NAME)

    def inhibit(self, what: str, who: str, why: str, mode: str) -> InhibitorFd:
        if self._manager is None:
            raise ResourceUnavailable("logind client is not connected")
        try:
            unix_fd = self._manager.Inhibit(what, who, why, mode, timeout=self._timeout)
        except dbus.DBusException as exc:
            raise ResourceUnavailable(f"logind refused {what} inhibitor", str(exc)) from exc
        return InhibitorFd(unix_fd.take(), description=why)

    def close(self) -> None:
        self._manager = None
        bus, self._bus = self._bus, None
        if bus is not None and self._owns_bus:
            bus.close()
