"""In-memory indices of adapters and the devices found through them."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from bluezdm.core.errors import ObjectGoneError
from bluezdm.core.model import Adapter, Device, adapter_path, canonical_address
from bluezdm.transports.base import BLUEZ_NAMESPACE, AdapterProxy, BusGateway, Capability

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdapterSnapshot:
    """One published view of the adapters, keyed by address and by interface name."""

    by_address: Mapping[str, Adapter] = field(default_factory=lambda: MappingProxyType({}))
    by_name: Mapping[str, Adapter] = field(default_factory=lambda: MappingProxyType({}))


class AdapterIndex:
    def __init__(self, gateway: BusGateway) -> None:
        self._gateway = gateway
        self._snapshot = AdapterSnapshot()
        self.default_address: str | None = None

    @property
    def snapshot(self) -> AdapterSnapshot:
        return self._snapshot

    @property
    def is_empty(self) -> bool:
        return not self._snapshot.by_address

    def adapters(self) -> list[Adapter]:
        return list(self._snapshot.by_address.values())

    def by_address(self, address: str) -> Adapter | None:
        return self._snapshot.by_address.get(canonical_address(address))

    def by_name(self, name: str) -> Adapter | None:
        return self._snapshot.by_name.get(name)

    def rebuild(self) -> list[Adapter]:
        """Rescan the bus and publish a fresh snapshot.

        Sets the default address to the first adapter found, unless a
        default is already set.
        """
        by_address: dict[str, Adapter] = {}
        by_name: dict[str, Adapter] = {}
        for node, proxy in self._adapter_nodes():
            try:
                adapter = Adapter(proxy, adapter_path(node), self._gateway)
            except ObjectGoneError:
                LOGGER.debug("Skipping %s: removed during scan", adapter_path(node))
                continue
            by_address[adapter.address] = adapter
            by_name[node] = adapter

        self._snapshot = AdapterSnapshot(
            by_address=MappingProxyType(by_address),
            by_name=MappingProxyType(by_name),
        )
        LOGGER.debug("Adapter scan found %d adapter(s)", len(by_name))

        if self.default_address is None and by_address:
            self.default_address = next(iter(by_address))
            LOGGER.debug("Default adapter set to %s", self.default_address)

        return list(by_name.values())

    def _adapter_nodes(self) -> Iterator[tuple[str, AdapterProxy]]:
        """Yield (node, proxy) for children of the namespace root that are adapters.

        Nodes lacking the adapter capability are excluded, not erroneous.
        So are adapters removed before their address could be read.
        """
        for node in sorted(self._gateway.list_children(BLUEZ_NAMESPACE)):
            proxy = self._gateway.get_proxy(adapter_path(node), Capability.ADAPTER)
            if proxy is None:
                LOGGER.debug("Skipping %s: not a Bluetooth adapter", adapter_path(node))
                continue
            yield node, proxy


class DeviceIndex:
    """Devices per owning adapter address, in discovery order.

    Entries are only ever appended; a later discovery for the same adapter
    adds to the existing sequence.
    """

    def __init__(self) -> None:
        self._devices: dict[str, list[Device]] = {}

    @property
    def is_empty(self) -> bool:
        return not self._devices

    def addresses(self) -> list[str]:
        return list(self._devices)

    def devices_for(self, adapter_address: str) -> list[Device]:
        return list(self._devices.get(canonical_address(adapter_address), ()))

    def append(self, adapter_address: str, device: Device) -> None:
        self._devices.setdefault(canonical_address(adapter_address), []).append(device)
