"""Adapter and device wrappers around bus capability proxies."""

from __future__ import annotations

import re
from typing import Any

from bluezdm.transports.base import BLUEZ_NAMESPACE, AdapterProxy, BusGateway, DeviceProxy

_MAC_RE = re.compile(r"^[0-9A-F]{2}(?:[:-][0-9A-F]{2}){5}$", re.IGNORECASE)


def canonical_address(value: str) -> str:
    """Return value as an upper-case colon-separated address if it looks like one."""
    stripped = value.strip()
    if _MAC_RE.match(stripped):
        return stripped.upper().replace("-", ":")
    return value


def adapter_path(adapter_name: str) -> str:
    return f"{BLUEZ_NAMESPACE}/{adapter_name}"


def device_path(adapter_name: str, node: str) -> str:
    return f"{BLUEZ_NAMESPACE}/{adapter_name}/{node}"


class Adapter:
    """One local Bluetooth controller.

    The address is read from the remote object once, when the wrapper is
    built. A rescan builds new wrappers rather than refreshing old ones.
    """

    def __init__(self, proxy: AdapterProxy, path: str, connection: BusGateway) -> None:
        self._proxy = proxy
        self.path = path
        self.connection = connection
        self.address = canonical_address(proxy.address())
        self.discovering = False

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def start_discovery(self) -> bool:
        started = self._proxy.start_discovery()
        if started:
            self.discovering = True
        return started

    def stop_discovery(self) -> None:
        self._proxy.stop_discovery()
        self.discovering = False

    def __repr__(self) -> str:
        return f"Adapter(name={self.name!r}, address={self.address!r})"


class Device:
    """One peripheral discovered through an adapter."""

    def __init__(
        self,
        proxy: DeviceProxy,
        adapter: Adapter,
        path: str,
        connection: BusGateway,
    ) -> None:
        self._proxy = proxy
        self.adapter = adapter
        self.path = path
        self.connection = connection
        self.properties: dict[str, Any] = dict(proxy.properties())

    @property
    def address(self) -> str | None:
        address = self.properties.get("Address")
        return canonical_address(address) if isinstance(address, str) else None

    @property
    def name(self) -> str | None:
        return self.properties.get("Name") or self.properties.get("Alias")

    @property
    def rssi(self) -> int | None:
        return self.properties.get("RSSI")

    def __repr__(self) -> str:
        return f"Device(path={self.path!r}, address={self.address!r}, name={self.name!r})"
