"""JSON key-value map on top of a storage connection."""

import json
import logging
from functools import lru_cache
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from remap.core.store import StorageConnection
from remap.errors import InvalidTypeError, SerializationError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=128)
def _cached_adapter(type_: Any) -> TypeAdapter:
    return TypeAdapter(type_)


def _type_adapter(type_: Any) -> TypeAdapter:
    try:
        return _cached_adapter(type_)
    except TypeError:
        # Unhashable type expression
        return TypeAdapter(type_)


class Map:
    """Stores JSON values under string keys.

    Every value is serialized with :func:`json.dumps` and stored as a string.
    By default any JSON-serializable value is accepted. With
    ``strict_types=True`` values that serialize to a JSON object or array are
    rejected with :class:`InvalidTypeError`, since they cannot be set
    atomically once they are stored per field.

    Examples:
        m = remap.connect("sqlite", "data/store.db")
        m.set("cool", "beans")
        m.get("cool")  # "beans"
        m.set_if_not_exists("cool", "guy")  # False
    """

    def __init__(self, connection: StorageConnection, strict_types: bool = False):
        """Initialize the map.

        Args:
            connection: Storage connection; owned by the map from now on
            strict_types: Reject values that serialize to objects or arrays
        """
        self._conn = connection
        self.strict_types = strict_types

    @property
    def connection(self) -> StorageConnection:
        """The underlying storage connection."""
        return self._conn

    def _validate_key(self, key: Any) -> None:
        if not isinstance(key, str) or not key:
            raise ValueError("Key must be a non-empty string")

    def _marshal(self, value: Any) -> str:
        try:
            data = json.dumps(value, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"error marshalling value to JSON: {e}") from e

        if self.strict_types and data[:1] in ("{", "["):
            raise InvalidTypeError("value type cannot be set atomically")
        return data

    def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value.

        Raises:
            InvalidTypeError: If strict types are on and value is an object or array
            SerializationError: If value is not JSON serializable
            InfrastructureError: If the storage backend fails
        """
        self._validate_key(key)
        self._conn.set_string(key, self._marshal(value))

    def set_if_not_exists(self, key: str, value: Any) -> bool:
        """Store value under key only if the key does not exist.

        Returns:
            True if the key was set, False if it already existed
        """
        self._validate_key(key)
        return self._conn.set_if_not_exists(key, self._marshal(value))

    def get(self, key: str, type_: Optional[Any] = None) -> Any:
        """Get the value stored under key.

        Args:
            key: Key to retrieve
            type_: Optional type to validate and convert the value into,
                e.g. ``int``, ``list[str]`` or a pydantic model

        Returns:
            The decoded value

        Raises:
            NotFoundError: If the key does not exist
            SerializationError: If the stored value is not valid JSON or
                does not match ``type_``
        """
        self._validate_key(key)
        data = self._conn.get_string(key)

        if type_ is None:
            try:
                return json.loads(data)
            except ValueError as e:
                raise SerializationError(f"error unmarshalling response: {e}") from e

        try:
            return _type_adapter(type_).validate_json(data)
        except ValidationError as e:
            raise SerializationError(f"error unmarshalling response: {e}") from e

    def delete(self, key: str) -> None:
        """Delete key. Deleting a missing key is not an error."""
        self._validate_key(key)
        self._conn.del_string(key)
        logger.debug(f"Deleted key '{key}'")

    def close(self) -> None:
        """Close the underlying storage connection."""
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
