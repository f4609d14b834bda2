from __future__ import annotations

from collections.abc import Callable
from typing import Any

from bluezdm.core.errors import ObjectGoneError
from bluezdm.transports.base import BLUEZ_NAMESPACE, Capability, PropertiesChangedHandler


class FakeAdapterProxy:
    def __init__(
        self,
        address: str,
        *,
        can_start: bool = True,
        on_start: Callable[[], None] | None = None,
        gone: bool = False,
    ) -> None:
        self._address = address
        self.gone = gone
        self.can_start = can_start
        self.on_start = on_start
        self.calls: list[str] = []

    def address(self) -> str:
        if self.gone:
            raise ObjectGoneError("adapter removed")
        return self._address

    def start_discovery(self) -> bool:
        self.calls.append("start")
        if self.on_start is not None:
            self.on_start()
        return self.can_start

    def stop_discovery(self) -> None:
        self.calls.append("stop")


class FakeDeviceProxy:
    def __init__(self, properties: dict[str, Any]) -> None:
        self._properties = properties
        self.gone = False

    def properties(self) -> dict[str, Any]:
        if self.gone:
            raise ObjectGoneError("device removed")
        return dict(self._properties)


class FakeGateway:
    """In-memory stand-in for the BlueZ object tree."""

    def __init__(self) -> None:
        self.children: dict[str, set[str]] = {}
        self.proxies: dict[tuple[str, Capability], Any] = {}
        self.list_calls: list[str] = []
        self.handlers: list[PropertiesChangedHandler] = []
        self.disconnects = 0

    @property
    def adapter_scans(self) -> int:
        return self.list_calls.count(BLUEZ_NAMESPACE)

    def add_adapter(self, name: str, address: str, **kwargs: Any) -> FakeAdapterProxy:
        self.children.setdefault(BLUEZ_NAMESPACE, set()).add(name)
        proxy = FakeAdapterProxy(address, **kwargs)
        self.proxies[(f"{BLUEZ_NAMESPACE}/{name}", Capability.ADAPTER)] = proxy
        return proxy

    def remove_adapter(self, name: str) -> None:
        self.children.get(BLUEZ_NAMESPACE, set()).discard(name)
        self.proxies.pop((f"{BLUEZ_NAMESPACE}/{name}", Capability.ADAPTER), None)

    def add_node(self, parent: str, node: str) -> None:
        self.children.setdefault(parent, set()).add(node)

    def add_device(self, adapter_name: str, node: str, **properties: Any) -> FakeDeviceProxy:
        adapter_path = f"{BLUEZ_NAMESPACE}/{adapter_name}"
        self.add_node(adapter_path, node)
        proxy = FakeDeviceProxy(properties)
        self.proxies[(f"{adapter_path}/{node}", Capability.DEVICE)] = proxy
        return proxy

    def clear_devices(self, adapter_name: str) -> None:
        self.children.pop(f"{BLUEZ_NAMESPACE}/{adapter_name}", None)

    def list_children(self, path: str) -> set[str]:
        self.list_calls.append(path)
        return set(self.children.get(path, set()))

    def get_proxy(self, path: str, capability: Capability) -> Any | None:
        return self.proxies.get((path, capability))

    def add_properties_changed_handler(self, handler: PropertiesChangedHandler) -> None:
        self.handlers.append(handler)

    def disconnect(self) -> None:
        self.disconnects += 1
