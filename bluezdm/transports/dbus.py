"""D-Bus gateway implementation backed by dbus-fast.

The dbus-fast client is asyncio based. The gateway runs its own event loop
on a daemon thread and exposes blocking primitives on top of it, so the
manager can stay synchronous. Signal handlers run on that loop thread.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Coroutine
from typing import Any

from dbus_fast import BusType, Message, MessageType, Variant
from dbus_fast.aio import MessageBus, ProxyObject
from dbus_fast.errors import DBusError
from dbus_fast.introspection import Node

from bluezdm.core.errors import (
    InvalidArgumentError,
    ObjectGoneError,
    TransportCallError,
    TransportConnectError,
    TransportTimeoutError,
)
from bluezdm.transports.base import BLUEZ_SERVICE, Capability, PropertiesChangedHandler

PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
_MISSING_OBJECT_ERRORS = frozenset(
    {
        "org.freedesktop.DBus.Error.UnknownObject",
        "org.freedesktop.DBus.Error.UnknownMethod",
    }
)
_SERVICE_UNKNOWN = "org.freedesktop.DBus.Error.ServiceUnknown"
# BlueZ answers StartDiscovery with these when the radio is off or a scan is already running.
_DISCOVERY_REFUSED_ERRORS = frozenset(
    {
        "org.bluez.Error.InProgress",
        "org.bluez.Error.NotReady",
        "org.bluez.Error.Failed",
    }
)
_PROPERTIES_CHANGED_RULE = (
    f"type='signal',sender='{BLUEZ_SERVICE}',"
    f"interface='{PROPERTIES_INTERFACE}',member='PropertiesChanged'"
)
LOGGER = logging.getLogger(__name__)


def unwrap_variant(value: Any) -> Any:
    """Convert dbus-fast Variants, recursively, into plain Python values."""
    if isinstance(value, Variant):
        return unwrap_variant(value.value)
    if isinstance(value, dict):
        return {key: unwrap_variant(item) for key, item in value.items()}
    if isinstance(value, list):
        return [unwrap_variant(item) for item in value]
    return value


def properties_changed_args(message: Message) -> tuple[str, str, dict[str, Any], list[str]] | None:
    """Return (path, interface, changed, invalidated) for a PropertiesChanged signal."""
    if (
        message.message_type != MessageType.SIGNAL
        or message.interface != PROPERTIES_INTERFACE
        or message.member != "PropertiesChanged"
        or len(message.body) != 3
    ):
        return None
    interface, changed, invalidated = message.body
    return message.path, interface, unwrap_variant(changed), list(invalidated)


def _read_error(exc: DBusError, path: str) -> TransportCallError:
    if exc.type in _MISSING_OBJECT_ERRORS:
        return ObjectGoneError(f"{path} disappeared before its properties could be read")
    return TransportCallError(f"Property read on {path} failed: {exc.text}")


class DBusGateway:
    def __init__(
        self,
        *,
        bus_address: str | None = None,
        session: bool = False,
        call_timeout_s: float | None = None,
    ) -> None:
        if bus_address is not None and not bus_address.strip():
            raise InvalidArgumentError("Empty string is not a valid D-Bus address")
        self._call_timeout_s = call_timeout_s
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name="bluezdm-dbus",
            daemon=True,
        )
        self._thread.start()
        bus_type = BusType.SESSION if session else BusType.SYSTEM
        try:
            self._bus: MessageBus = self.call(self._connect(bus_address, bus_type))
        except BaseException:
            self._stop_loop()
            raise

    async def _connect(self, bus_address: str | None, bus_type: BusType) -> MessageBus:
        where = bus_address or bus_type.name.lower()
        try:
            bus = await MessageBus(bus_address=bus_address, bus_type=bus_type).connect()
        except Exception as exc:
            raise TransportConnectError(f"Could not connect to D-Bus ({where}): {exc}") from exc
        LOGGER.debug("Connected to D-Bus (%s) as %s", where, bus.unique_name)
        return bus

    def call(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Run coro on the gateway loop and block until it completes."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout=self._call_timeout_s)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise TransportTimeoutError(
                f"D-Bus call did not complete within {self._call_timeout_s}s"
            ) from exc

    async def _introspect(self, path: str) -> Node | None:
        try:
            return await self._bus.introspect(BLUEZ_SERVICE, path)
        except DBusError as exc:
            if exc.type in _MISSING_OBJECT_ERRORS:
                return None
            if exc.type == _SERVICE_UNKNOWN:
                raise TransportCallError(
                    f"{BLUEZ_SERVICE} is not available on the bus; is bluetoothd running?"
                ) from exc
            raise TransportCallError(f"Introspection of {path} failed: {exc.text}") from exc

    async def _proxy_object(self, path: str, capability: Capability) -> ProxyObject | None:
        node = await self._introspect(path)
        if node is None:
            return None
        if capability.value not in {interface.name for interface in node.interfaces}:
            return None
        return self._bus.get_proxy_object(BLUEZ_SERVICE, path, node)

    def list_children(self, path: str) -> set[str]:
        node = self.call(self._introspect(path))
        if node is None:
            return set()
        return {child.name for child in node.nodes if child.name}

    def get_proxy(self, path: str, capability: Capability) -> DBusAdapterProxy | DBusDeviceProxy | None:
        proxy_object = self.call(self._proxy_object(path, capability))
        if proxy_object is None:
            return None
        if capability is Capability.ADAPTER:
            return DBusAdapterProxy(self, proxy_object, path)
        return DBusDeviceProxy(self, proxy_object, path)

    async def _add_match(self, rule: str) -> None:
        reply = await self._bus.call(
            Message(
                destination="org.freedesktop.DBus",
                path="/org/freedesktop/DBus",
                interface="org.freedesktop.DBus",
                member="AddMatch",
                signature="s",
                body=[rule],
            )
        )
        if reply is not None and reply.message_type == MessageType.ERROR:
            raise TransportCallError(f"AddMatch failed: {reply.error_name}")

    def add_properties_changed_handler(self, handler: PropertiesChangedHandler) -> None:
        def _on_message(message: Message) -> None:
            args = properties_changed_args(message)
            if args is not None:
                handler(*args)

        self.call(self._add_match(_PROPERTIES_CHANGED_RULE))
        self._loop.call_soon_threadsafe(self._bus.add_message_handler, _on_message)

    def disconnect(self) -> None:
        self._loop.call_soon_threadsafe(self._bus.disconnect)
        self._stop_loop()
        LOGGER.debug("Disconnected from D-Bus")

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5.0)
        if not self._thread.is_alive():
            self._loop.close()


class DBusAdapterProxy:
    def __init__(self, gateway: DBusGateway, proxy_object: ProxyObject, path: str) -> None:
        self._gateway = gateway
        self._path = path
        self._adapter = proxy_object.get_interface(Capability.ADAPTER.value)

    def address(self) -> str:
        try:
            return self._gateway.call(self._adapter.get_address())
        except DBusError as exc:
            raise _read_error(exc, self._path) from exc

    def start_discovery(self) -> bool:
        try:
            self._gateway.call(self._adapter.call_start_discovery())
        except DBusError as exc:
            if exc.type in _DISCOVERY_REFUSED_ERRORS:
                LOGGER.info("StartDiscovery refused: %s (%s)", exc.type, exc.text)
                return False
            raise TransportCallError(f"Adapter StartDiscovery failed: {exc.text}") from exc
        return True

    def stop_discovery(self) -> None:
        try:
            self._gateway.call(self._adapter.call_stop_discovery())
        except DBusError as exc:
            if exc.type in _DISCOVERY_REFUSED_ERRORS:
                LOGGER.debug("StopDiscovery refused (may already be stopped): %s", exc.type)
                return
            raise TransportCallError(f"Adapter StopDiscovery failed: {exc.text}") from exc


class DBusDeviceProxy:
    def __init__(self, gateway: DBusGateway, proxy_object: ProxyObject, path: str) -> None:
        self._gateway = gateway
        self._path = path
        self._properties = proxy_object.get_interface(PROPERTIES_INTERFACE)

    def properties(self) -> dict[str, Any]:
        try:
            values = self._gateway.call(self._properties.call_get_all(Capability.DEVICE.value))
        except DBusError as exc:
            raise _read_error(exc, self._path) from exc
        return unwrap_variant(values)
