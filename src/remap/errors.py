"""Error types raised by remap."""

from typing import Optional


class RemapError(Exception):
    """Base class for all remap errors."""

    pass


class NotFoundError(RemapError, LookupError):
    """Raised when a key does not exist in the store."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"key '{key}' not found")


class DuplicateKeyError(RemapError):
    """Raised inside a transaction when a key name already exists.

    Never escapes a storage connection; ``set_if_not_exists`` turns it into a
    ``False`` result.
    """

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"the key name '{key}' already exists in the store")


class InvalidTypeError(RemapError, TypeError):
    """Raised when a value cannot be stored under the active type policy."""

    pass


class SerializationError(RemapError, ValueError):
    """Raised when a value cannot be marshalled to or from JSON."""

    pass


class InfrastructureError(RemapError):
    """Raised when the storage engine fails.

    Attributes:
        operation: Name of the storage operation that failed
    """

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class ConfigurationError(RemapError):
    """Raised for invalid driver registration or configuration."""

    pass
