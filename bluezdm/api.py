"""Stable public API for building tooling on top of bluezdm.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from bluezdm.core.config import Settings, load_settings
from bluezdm.core.discovery import DiscoverySession
from bluezdm.core.errors import (
    AdapterNotFoundError,
    BluezdmError,
    ConfigLoadError,
    ConfigValidationError,
    InvalidArgumentError,
    ObjectGoneError,
    TransportCallError,
    TransportConnectError,
    TransportError,
    TransportTimeoutError,
    UsageError,
)
from bluezdm.core.manager import DeviceManager
from bluezdm.core.model import Adapter, Device
from bluezdm.transports.base import BusGateway, Capability, PropertiesChangedHandler
from bluezdm.transports.dbus import DBusGateway

__all__ = [
    "BluezdmError",
    "AdapterNotFoundError",
    "InvalidArgumentError",
    "UsageError",
    "ConfigLoadError",
    "ConfigValidationError",
    "TransportError",
    "TransportConnectError",
    "TransportCallError",
    "TransportTimeoutError",
    "ObjectGoneError",
    "Adapter",
    "Device",
    "DeviceManager",
    "DiscoverySession",
    "BusGateway",
    "Capability",
    "DBusGateway",
    "PropertiesChangedHandler",
    "Settings",
    "load_settings",
]
