"""Storage connection interface shared by all remap drivers."""

from abc import ABC, abstractmethod
from enum import IntEnum


class TypeTag(IntEnum):
    """Type of the value stored under a key.

    Only STRING is written today; every JSON value is stored as its string
    representation. OBJECT and ARRAY are reserved for per-field and
    per-index storage.
    """

    STRING = 1
    OBJECT = 2
    ARRAY = 3


class StorageConnection(ABC):
    """Durable string to string storage used by :class:`remap.Map`.

    Implementations must make ``set_if_not_exists`` atomic across every
    caller sharing the underlying store.
    """

    @abstractmethod
    def clone(self) -> "StorageConnection":
        """Return a new handle on the same underlying store.

        No data is copied.

        Raises:
            InfrastructureError: If this connection is closed
        """

    @abstractmethod
    def set_if_not_exists(self, key: str, value: str) -> bool:
        """Store value under key only if key is absent.

        Returns:
            True if the key was created, False if it already existed
        """

    @abstractmethod
    def set_string(self, key: str, value: str) -> None:
        """Create or overwrite the value stored under key."""

    @abstractmethod
    def del_string(self, key: str) -> None:
        """Delete key and its value. Deleting a missing key is a no-op."""

    @abstractmethod
    def get_string(self, key: str) -> str:
        """Return the JSON text stored under key.

        Returns:
            The stored payload, or ``"null"`` if the payload is NULL

        Raises:
            NotFoundError: If the key does not exist
        """

    def close(self) -> None:
        """Release this handle."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
