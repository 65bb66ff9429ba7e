"""remap - a JSON key-value store on pluggable storage drivers."""

from typing import Optional, Union

from remap.config import Config, RemapConfig
from remap.core.map import Map
from remap.core.registry import Driver, DriverRegistry
from remap.core.store import StorageConnection, TypeTag
from remap.drivers import register_builtin_drivers
from remap.errors import (
    ConfigurationError,
    InfrastructureError,
    InvalidTypeError,
    NotFoundError,
    RemapError,
    SerializationError,
)

try:
    from importlib.metadata import version
    __version__ = version("remap")
except Exception:
    # Package metadata is not available when running from a source checkout
    __version__ = "0.1.0"

# Global driver registry
registry = DriverRegistry()
register_builtin_drivers(registry)


def register(name: str, driver: Union[Driver, type]) -> None:
    """Register a driver on the global registry."""
    registry.register(name, driver)


def connect(driver: str, data_source: str, strict_types: bool = False) -> Map:
    """Open a map using a driver from the global registry.

    Examples:
        m = remap.connect("sqlite", "data/store.db")
        m = remap.connect("sqlite", "file:cache?mode=memory&cache=shared")
        m = remap.connect("memory", "")
    """
    return registry.open(driver, data_source, strict_types=strict_types)


def adopt(connection: StorageConnection, strict_types: bool = False) -> Map:
    """Open a map on a clone of an existing storage connection."""
    return registry.adopt(connection, strict_types=strict_types)


def connect_from_config(config: Optional[RemapConfig] = None) -> Map:
    """Open a map from a config, or from remap.toml and the environment."""
    if config is None:
        config = Config().resolve()
    return connect(config.driver, config.data_source, strict_types=config.strict_types)


__all__ = [
    "Config",
    "ConfigurationError",
    "Driver",
    "DriverRegistry",
    "InfrastructureError",
    "InvalidTypeError",
    "Map",
    "NotFoundError",
    "RemapConfig",
    "RemapError",
    "SerializationError",
    "StorageConnection",
    "TypeTag",
    "adopt",
    "connect",
    "connect_from_config",
    "register",
    "registry",
]
