"""Timed device discovery on a single adapter."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from bluezdm.core.errors import InvalidArgumentError, ObjectGoneError
from bluezdm.core.index import DeviceIndex
from bluezdm.core.model import Adapter, Device, device_path
from bluezdm.transports.base import BusGateway, Capability

LOGGER = logging.getLogger(__name__)


class DiscoverySession:
    """Runs start, wait, stop, enumerate against an adapter.

    `run` blocks the calling thread for the discovery window. Callers that
    want to wait some other way (for example from an event loop) can use
    `discovering` directly and enumerate afterwards with `collect`.
    """

    def __init__(self, gateway: BusGateway, devices: DeviceIndex) -> None:
        self._gateway = gateway
        self._devices = devices
        self._interrupted = threading.Event()

    def interrupt(self) -> None:
        """Cut the current wait short. Discovery is still stopped and enumerated."""
        self._interrupted.set()

    def wait(self, timeout_ms: int) -> bool:
        """Block for timeout_ms milliseconds; return True if interrupted early."""
        if timeout_ms < 0:
            raise InvalidArgumentError(f"Discovery timeout must be >= 0 ms, got {timeout_ms}")
        if timeout_ms == 0:
            return False
        return self._interrupted.wait(timeout_ms / 1000)

    @contextmanager
    def discovering(self, adapter: Adapter) -> Iterator[bool]:
        """Start discovery on enter and stop it on exit.

        Yields whether discovery started. Stop is only issued if start
        succeeded, and then always, whatever happens inside the block.
        """
        started = adapter.start_discovery()
        if not started:
            LOGGER.info("Discovery could not be started on %s", adapter.name)
        try:
            yield started
        finally:
            if started:
                adapter.stop_discovery()
                LOGGER.debug("Discovery stopped on %s", adapter.name)

    def run(self, adapter: Adapter, timeout_ms: int) -> list[Device]:
        """Discover devices for timeout_ms and record them in the device index.

        Returns the devices recorded by this run, in enumeration order, or
        an empty list if discovery could not be started.
        """
        if timeout_ms < 0:
            raise InvalidArgumentError(f"Discovery timeout must be >= 0 ms, got {timeout_ms}")
        self._interrupted.clear()
        with self.discovering(adapter) as started:
            if not started:
                return []
            LOGGER.debug("Discovering on %s for %d ms", adapter.name, timeout_ms)
            if self.wait(timeout_ms):
                LOGGER.debug("Discovery wait on %s interrupted", adapter.name)
        return self.collect(adapter)

    def collect(self, adapter: Adapter) -> list[Device]:
        """Wrap every device node under the adapter and append it to the index.

        Nodes lacking the device capability are excluded, not erroneous, as
        are devices BlueZ removes before their properties are read. The index
        is only updated once every node has been wrapped.
        """
        found: list[Device] = []
        for node in sorted(self._gateway.list_children(adapter.path)):
            path = device_path(adapter.name, node)
            proxy = self._gateway.get_proxy(path, Capability.DEVICE)
            if proxy is None:
                LOGGER.debug("Skipping %s: not a Bluetooth device", path)
                continue
            try:
                device = Device(proxy, adapter, path, self._gateway)
            except ObjectGoneError:
                LOGGER.debug("Skipping %s: removed before it could be read", path)
                continue
            found.append(device)
        for device in found:
            self._devices.append(adapter.address, device)
        LOGGER.debug("Recorded %d device(s) for %s", len(found), adapter.address)
        return found
