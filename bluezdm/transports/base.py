"""Bus gateway interfaces."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

BLUEZ_SERVICE = "org.bluez"
BLUEZ_NAMESPACE = "/org/bluez"

PropertiesChangedHandler = Callable[[str, str, dict[str, Any], list[str]], None]


class Capability(str, Enum):
    ADAPTER = "org.bluez.Adapter1"
    DEVICE = "org.bluez.Device1"


class AdapterProxy(Protocol):
    def address(self) -> str:
        """Return the adapter's hardware address; ObjectGoneError if it was removed."""

    def start_discovery(self) -> bool:
        """Start discovery; return False if the adapter refused to start."""

    def stop_discovery(self) -> None:
        """Stop discovery."""


class DeviceProxy(Protocol):
    def properties(self) -> dict[str, Any]:
        """Return all remote device properties as plain Python values.

        Raises ObjectGoneError if the device was removed since enumeration.
        """


class BusGateway(Protocol):
    def list_children(self, path: str) -> set[str]:
        """Return the immediate child node names under path, empty if none."""

    def get_proxy(self, path: str, capability: Capability) -> Any | None:
        """Return a proxy implementing capability at path, or None if absent."""

    def add_properties_changed_handler(self, handler: PropertiesChangedHandler) -> None:
        """Subscribe handler to remote property-change notifications."""

    def disconnect(self) -> None:
        """Close the underlying bus connection."""
