"""Driver registry for remap."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Union

from remap.core.map import Map
from remap.core.store import StorageConnection
from remap.errors import ConfigurationError, InfrastructureError

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "remap.drivers"


class Driver(ABC):
    """Base class for remap storage drivers."""

    @abstractmethod
    def open(self, data_source: str) -> StorageConnection:
        """Open a storage connection.

        Args:
            data_source: Driver-specific data source string, passed through untouched
        """


class DriverRegistry:
    """Maps driver names to drivers.

    Drivers are registered once per name during startup. The first
    :meth:`open` freezes the registry; later registrations are configuration
    errors.
    """

    def __init__(self):
        self._drivers: Dict[str, Driver] = {}
        self._lock = threading.Lock()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, name: str, driver: Union[Driver, type]) -> None:
        """Register a driver instance or class under a name.

        Raises:
            ConfigurationError: If driver is None, the name is taken, or the
                registry has already been used
        """
        if driver is None:
            raise ConfigurationError("remap: Register driver is nil")

        with self._lock:
            if self._frozen:
                raise ConfigurationError(
                    f"remap: Register called for driver {name} after the registry was used"
                )
            if name in self._drivers:
                raise ConfigurationError(f"remap: Register called twice for driver {name}")
            # If it's a class, instantiate it
            if isinstance(driver, type):
                driver = driver()
            self._drivers[name] = driver

        logger.info(f"Driver {name} registered successfully")

    def get_driver(self, name: str) -> Driver:
        """Get a driver by name.

        Raises:
            ConfigurationError: If no driver has that name
        """
        with self._lock:
            driver = self._drivers.get(name)
        if driver is None:
            raise ConfigurationError(f"remap: unknown driver {name!r}")
        return driver

    def drivers(self) -> List[str]:
        """List registered driver names."""
        with self._lock:
            return sorted(self._drivers)

    def open(self, name: str, data_source: str, strict_types: bool = False) -> Map:
        """Open a map on the named driver.

        Args:
            name: Registered driver name
            data_source: Data source string handed to the driver
            strict_types: Reject object and array values, see :class:`Map`

        Raises:
            ConfigurationError: If no driver has that name
            InfrastructureError: If the driver fails to open a connection
        """
        with self._lock:
            self._frozen = True
            driver = self._drivers.get(name)
        if driver is None:
            raise ConfigurationError(f"remap: unknown driver {name!r}")

        try:
            conn = driver.open(data_source)
        except ConfigurationError:
            raise
        except Exception as e:
            raise InfrastructureError(
                f"couldn't initialize driver: {e}", operation="open"
            ) from e

        return Map(conn, strict_types=strict_types)

    def adopt(self, connection: StorageConnection, strict_types: bool = False) -> Map:
        """Open a map on a clone of an existing storage connection.

        Raises:
            InfrastructureError: If the connection cannot be cloned
        """
        try:
            conn = connection.clone()
        except ConfigurationError:
            raise
        except Exception as e:
            raise InfrastructureError(
                f"couldn't initialize driver: {e}", operation="clone"
            ) from e

        return Map(conn, strict_types=strict_types)

    def discover_drivers(self) -> None:
        """Register drivers advertised under the ``remap.drivers`` entry point group.

        Each entry point's name is the driver name and it must load a
        :class:`Driver` class or instance. Drivers that fail to import are
        logged and skipped; registration errors propagate.
        """
        from importlib.metadata import entry_points

        for entry_point in entry_points(group=ENTRY_POINT_GROUP):
            try:
                driver = entry_point.load()
            except Exception as e:
                logger.error(f"Failed to load driver {entry_point.name}: {e}")
                continue
            self.register(entry_point.name, driver)
