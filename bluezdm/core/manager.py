"""Device manager facade used by the CLI and by library callers."""

from __future__ import annotations

import logging
from types import TracebackType

from bluezdm.core.config import DEFAULT_DISCOVERY_TIMEOUT_MS, Settings
from bluezdm.core.discovery import DiscoverySession
from bluezdm.core.errors import AdapterNotFoundError, InvalidArgumentError, UsageError
from bluezdm.core.index import AdapterIndex, DeviceIndex
from bluezdm.core.model import Adapter, Device, canonical_address
from bluezdm.core.resolver import AdapterResolver
from bluezdm.transports.base import BusGateway, PropertiesChangedHandler
from bluezdm.transports.dbus import DBusGateway

LOGGER = logging.getLogger(__name__)


class DeviceManager:
    """Entry point for Bluetooth adapters and devices on one bus connection.

    The manager owns the adapter and device indices, the default adapter
    and the gateway. Adapters and devices it hands out share the gateway
    but never close it; only `close` does, once.

    Not thread-safe: callers must serialise access to one manager.
    """

    def __init__(
        self,
        gateway: BusGateway,
        *,
        discovery_timeout_ms: int = DEFAULT_DISCOVERY_TIMEOUT_MS,
    ) -> None:
        if discovery_timeout_ms < 0:
            raise InvalidArgumentError(
                f"Discovery timeout must be >= 0 ms, got {discovery_timeout_ms}"
            )
        self._gateway = gateway
        self._adapters = AdapterIndex(gateway)
        self._devices = DeviceIndex()
        self._resolver = AdapterResolver(self._adapters)
        self._discovery = DiscoverySession(gateway, self._devices)
        self.discovery_timeout_ms = discovery_timeout_ms
        self._closed = False

    @classmethod
    def connect(cls, *, session: bool = False, call_timeout_s: float | None = None) -> DeviceManager:
        """Connect to the system bus, or the user session bus if session is True."""
        return cls(DBusGateway(session=session, call_timeout_s=call_timeout_s))

    @classmethod
    def from_address(cls, address: str | None, *, call_timeout_s: float | None = None) -> DeviceManager:
        """Connect to the bus at an explicit D-Bus address (e.g. tcp:host=127.0.0.1,port=13245)."""
        if not address:
            raise InvalidArgumentError("A D-Bus address is required")
        return cls(DBusGateway(bus_address=address, call_timeout_s=call_timeout_s))

    @classmethod
    def from_settings(cls, settings: Settings) -> DeviceManager:
        if settings.bus in ("system", "session"):
            gateway = DBusGateway(
                session=settings.bus == "session",
                call_timeout_s=settings.call_timeout_s,
            )
        else:
            gateway = DBusGateway(bus_address=settings.bus, call_timeout_s=settings.call_timeout_s)
        return cls(gateway, discovery_timeout_ms=settings.discovery_timeout_ms)

    def __enter__(self) -> DeviceManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._closed:
            self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def default_adapter_address(self) -> str | None:
        return self._adapters.default_address

    @property
    def discovery(self) -> DiscoverySession:
        return self._discovery

    def _ensure_open(self) -> None:
        if self._closed:
            raise UsageError("DeviceManager is closed")

    def close(self) -> None:
        self._ensure_open()
        self._closed = True
        self._gateway.disconnect()

    def scan_for_adapters(self) -> list[Adapter]:
        """Rescan the bus for adapters; the first one found becomes default if none is set."""
        self._ensure_open()
        return self._adapters.rebuild()

    def find_adapter(self, identifier: str | None = None) -> Adapter | None:
        """Resolve an address or interface name (None for the default adapter)."""
        self._ensure_open()
        return self._resolver.resolve(identifier)

    def scan_for_devices(
        self,
        adapter: str | None = None,
        timeout_ms: int | None = None,
    ) -> list[Device]:
        """Run a discovery on the given adapter (default if None).

        Returns the devices recorded by this discovery, or an empty list if
        the adapter cannot be found or discovery could not be started.
        """
        self._ensure_open()
        resolved = self._resolver.resolve(adapter)
        if resolved is None:
            LOGGER.debug("No adapter for %r, skipping discovery", adapter)
            return []
        if timeout_ms is None:
            timeout_ms = self.discovery_timeout_ms
        return self._discovery.run(resolved, timeout_ms)

    def interrupt_discovery(self) -> None:
        self._discovery.interrupt()

    def get_adapters(self) -> list[Adapter]:
        """Return known adapters, scanning first if none are known."""
        self._ensure_open()
        if self._adapters.is_empty:
            self._adapters.rebuild()
        return self._adapters.adapters()

    def get_devices(self, adapter: str | None = None) -> list[Device]:
        """Return devices recorded for an adapter address or name (default if None).

        If no device has been recorded for any adapter yet, a discovery with
        the default timeout runs first. Names are mapped to addresses through
        the current adapter index; no rescan happens here.
        """
        self._ensure_open()
        if self._devices.is_empty:
            self.scan_for_devices(adapter, self.discovery_timeout_ms)
        if adapter is None:
            address = self._adapters.default_address
        else:
            known = self._adapters.by_address(adapter) or self._adapters.by_name(adapter)
            address = known.address if known is not None else adapter
        if address is None:
            return []
        return self._devices.devices_for(address)

    def set_default_adapter(self, adapter: str | Adapter | None) -> None:
        """Make the adapter with the given address (or the given adapter) the default.

        Raises AdapterNotFoundError if no such adapter is known after a scan.
        """
        self._ensure_open()
        if adapter is None:
            raise AdapterNotFoundError("None is not a valid Bluetooth adapter")
        address = adapter.address if isinstance(adapter, Adapter) else canonical_address(adapter)
        if self._adapters.is_empty:
            self._adapters.rebuild()
        if self._adapters.by_address(address) is None:
            raise AdapterNotFoundError(f"Could not find Bluetooth adapter with address: {address}")
        self._adapters.default_address = address

    def register_property_handler(self, handler: PropertiesChangedHandler) -> None:
        """Subscribe handler(path, interface, changed, invalidated) to property changes."""
        self._ensure_open()
        self._gateway.add_properties_changed_handler(handler)
