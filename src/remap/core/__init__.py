"""Core remap components."""

from remap.core.store import StorageConnection, TypeTag
from remap.core.map import Map
from remap.core.registry import Driver, DriverRegistry

__all__ = ["StorageConnection", "TypeTag", "Map", "Driver", "DriverRegistry"]
