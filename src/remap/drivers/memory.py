"""In-process storage driver for remap.

Values live in a dictionary for the lifetime of the process. Useful for
tests and for caching data that does not need to survive a restart.
"""

import logging
import threading
from typing import Dict, Optional

from remap.core.registry import Driver
from remap.core.store import StorageConnection
from remap.errors import InfrastructureError, NotFoundError

logger = logging.getLogger(__name__)


class MemoryStore:
    """A dictionary of payloads guarded by a lock."""

    def __init__(self):
        self.values: Dict[str, Optional[str]] = {}
        self.lock = threading.Lock()


class MemoryConnection(StorageConnection):
    """Storage connection on a :class:`MemoryStore`."""

    def __init__(self, store: Optional[MemoryStore] = None):
        self._store = store if store is not None else MemoryStore()
        self._closed = False

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise InfrastructureError("connection is closed", operation=operation)

    def clone(self) -> "MemoryConnection":
        self._check_open("clone")
        return MemoryConnection(self._store)

    def set_if_not_exists(self, key: str, value: str) -> bool:
        self._check_open("set_if_not_exists")
        with self._store.lock:
            if key in self._store.values:
                logger.debug(f"Key '{key}' already exists, not set")
                return False
            self._store.values[key] = value
            return True

    def set_string(self, key: str, value: str) -> None:
        self._check_open("set_string")
        with self._store.lock:
            self._store.values[key] = value

    def del_string(self, key: str) -> None:
        self._check_open("del_string")
        with self._store.lock:
            self._store.values.pop(key, None)

    def get_string(self, key: str) -> str:
        self._check_open("get_string")
        with self._store.lock:
            if key not in self._store.values:
                raise NotFoundError(key)
            value = self._store.values[key]
        return "null" if value is None else value

    def close(self) -> None:
        self._closed = True


class MemoryDriver(Driver):
    """Opens in-process storage connections.

    ``""`` and ``":memory:"`` open a new private store. Any other data source
    names a store shared by every connection opened with that name.
    """

    def __init__(self):
        self._stores: Dict[str, MemoryStore] = {}
        self._lock = threading.Lock()

    def open(self, data_source: str) -> MemoryConnection:
        if data_source in ("", ":memory:"):
            return MemoryConnection()

        with self._lock:
            store = self._stores.get(data_source)
            if store is None:
                store = self._stores[data_source] = MemoryStore()
                logger.info(f"Created memory store '{data_source}'")
        return MemoryConnection(store)
