"""Identifier-to-adapter resolution with a single rescan on miss."""

from __future__ import annotations

import logging

from bluezdm.core.index import AdapterIndex
from bluezdm.core.model import Adapter

LOGGER = logging.getLogger(__name__)


class AdapterResolver:
    def __init__(self, index: AdapterIndex) -> None:
        self._index = index

    def resolve(self, identifier: str | None = None) -> Adapter | None:
        """Find an adapter by address or interface name.

        `None` means the default adapter. On a miss the adapter index is
        rebuilt once and the lookup repeated; adapters may have appeared
        since the last scan. Returns None if nothing matches after that.
        """
        if identifier is None and self._index.default_address is None:
            self._index.rebuild()

        using_default = identifier is None
        if identifier is None:
            identifier = self._index.default_address

        adapter = self._lookup(identifier)
        if adapter is not None:
            return adapter

        LOGGER.debug("Adapter %r not indexed, rescanning", identifier)
        self._index.rebuild()
        adapter = self._lookup(identifier)
        if adapter is None and using_default and identifier is not None:
            LOGGER.warning("Default adapter %s is no longer present", identifier)
        elif adapter is None:
            LOGGER.debug("No adapter matches %r", identifier)
        return adapter

    def _lookup(self, identifier: str | None) -> Adapter | None:
        if identifier is None:
            return None
        return self._index.by_address(identifier) or self._index.by_name(identifier)
