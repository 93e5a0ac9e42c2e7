"""Session bus transport exporting ``org.freedesktop.ScreenSaver``."""

from __future__ import annotations

from importlib import resources
from typing import Callable, FrozenSet, Iterable, Optional, Sequence

import dbus
import dbus.bus
import dbus.service

from inhibit_bridge.core.exceptions import BridgeError, PeerQueryError, TransportSetupError
from inhibit_bridge.core.service import InhibitHandler
from inhibit_bridge.utils.logging import get_logger


SCREENSAVER_IFACE = "org.freedesktop.ScreenSaver"
INTROSPECTABLE_IFACE = "org.freedesktop.DBus.Introspectable"
FAILED_ERROR = "org.freedesktop.DBus.Error.Failed"

INTERFACE_RESOURCE = "org.freedesktop.ScreenSaver.xml"

INTROSPECT_DOCTYPE = (
    '<!DOCTYPE node PUBLIC "-//freedesktop//DTD D-BUS Object Introspection 1.0//EN"\n'
    '"http://www.freedesktop.org/standards/dbus/1.0/introspect.dtd">\n'
)
INTROSPECT_BOILERPLATE = """<interface name="org.freedesktop.DBus.Introspectable">
  <method name="Introspect">
    <arg name="out" type="s" direction="out"/>
  </method>
</interface>
<interface name="org.freedesktop.DBus.Peer">
  <method name="Ping"/>
  <method name="GetMachineId">
    <arg name="machine_uuid" type="s" direction="out"/>
  </method>
</interface>
"""


def load_interface_xml() -> str:
    return (resources.files("inhibit_bridge") / "data" / INTERFACE_RESOURCE).read_text(encoding="utf-8")


def build_introspection(interface_xml: str, children: Iterable[str] = ()) -> str:
    """Wrap the interface description and standard interfaces in a ``<node>``."""
    parts = [INTROSPECT_DOCTYPE, "<node>\n", interface_xml.strip(), "\n", INTROSPECT_BOILERPLATE]
    parts.extend(f'<node name="{child}"/>\n' for child in children)
    parts.append("</node>\n")
    return "".join(parts)


class FailedError(dbus.DBusException):
    _dbus_error_name = FAILED_ERROR


class ScreenSaverObject(dbus.service.Object):
    """Exported object forwarding calls, with the caller's unique name, to a handler."""

    SUPPORTS_MULTIPLE_OBJECT_PATHS = True

    def __init__(self, handler: InhibitHandler, interface_xml: Optional[str] = None) -> None:
        super().__init__()
        self._handler = handler
        self._interface_xml = interface_xml if interface_xml is not None else load_interface_xml()

    @dbus.service.method(SCREENSAVER_IFACE, in_signature="ss", out_signature="u", sender_keyword="sender")
    def Inhibit(self, application_name, reason_for_inhibit, sender=None):
        try:
            handle = self._handler.inhibit(str(sender or ""), str(application_name), str(reason_for_inhibit))
        except BridgeError as exc:
            raise FailedError(str(exc)) from exc
        return dbus.UInt32(handle)

    @dbus.service.method(SCREENSAVER_IFACE, in_signature="u", out_signature="", sender_keyword="sender")
    def UnInhibit(self, cookie, sender=None):
        try:
            self._handler.uninhibit(str(sender or ""), int(cookie))
        except BridgeError as exc:
            raise FailedError(str(exc)) from exc

    @dbus.service.method(
        INTROSPECTABLE_IFACE,
        in_signature="",
        out_signature="s",
        path_keyword="object_path",
        connection_keyword="connection",
    )
    def Introspect(self, object_path, connection):
        children = connection.list_exported_child_objects(object_path) if connection is not None else []
        return build_introspection(self._interface_xml, children)


class DBusTransport:
    """Owns the session bus connection, the well-known name and the exported object."""

    def __init__(
        self,
        *,
        call_timeout: float = 25.0,
        bus_factory: Optional[Callable[[], dbus.bus.BusConnection]] = None,
    ) -> None:
        self._call_timeout = call_timeout
        self._bus_factory = bus_factory or (lambda: dbus.SessionBus(private=True))
        self._bus: Optional[dbus.bus.BusConnection] = None
        self._name: Optional[str] = None
        self._object: Optional[ScreenSaverObject] = None
        self.logger = get_logger("DBusTransport")

    @property
    def unique_name(self) -> Optional[str]:
        return self._bus.get_unique_name() if self._bus is not None else None

    def connect(self) -> None:
        if self._bus is not None:
            return
        try:
            self._bus = self._bus_factory()
        except dbus.DBusException as exc:
            raise TransportSetupError("session bus connect failed", str(exc)) from exc
        self.logger.debug("Connected to session bus as %s", self.unique_name)

    def claim_name(self, name: str) -> None:
        bus = self._require_bus()
        try:
            reply = bus.request_name(name, dbus.bus.NAME_FLAG_DO_NOT_QUEUE)
        except dbus.DBusException as exc:
            raise TransportSetupError(f"request_name({name!r}) failed", str(exc)) from exc
        if reply != dbus.bus.REQUEST_NAME_REPLY_PRIMARY_OWNER:
            raise TransportSetupError(f"request_name({name!r})", "not the primary owner")
        self._name = name

    def export(self, handler: InhibitHandler, paths: Sequence[str]) -> None:
        bus = self._require_bus()
        if self._object is None:
            self._object = ScreenSaverObject(handler)
        for path in paths:
            try:
                self._object.add_to_connection(bus, path)
            except (KeyError, ValueError, RuntimeError, dbus.DBusException) as exc:
                raise TransportSetupError(f"couldn't export {SCREENSAVER_IFACE!r} on {path!r}", str(exc)) from exc
            self.logger.debug("Exported %s on %s", SCREENSAVER_IFACE, path)

    def list_peers(self) -> FrozenSet[str]:
        bus = self._bus
        if bus is None:
            raise PeerQueryError("not connected to the session bus")
        try:
            names = bus.call_blocking(
                dbus.BUS_DAEMON_NAME,
                dbus.BUS_DAEMON_PATH,
                dbus.BUS_DAEMON_IFACE,
                "ListNames",
                "",
                (),
                timeout=self._call_timeout,
            )
        except dbus.DBusException as exc:
            raise PeerQueryError("ListNames failed", str(exc)) from exc
        return frozenset(str(name) for name in names)

    def close(self) -> None:
        bus, self._bus = self._bus, None
        if bus is None:
            return
        if self._object is not None and self._object.locations:
            self._object.remove_from_connection()
        self._object = None
        if self._name is not None:
            try:
                bus.release_name(self._name)
            except dbus.DBusException as exc:
                self.logger.warning("Failed to release %s: %s", self._name, exc)
            self._name = None
        bus.close()

    def _require_bus(self) -> dbus.bus.BusConnection:
        if self._bus is None:
            raise TransportSetupError("not connected to the session bus")
        return self._bus
