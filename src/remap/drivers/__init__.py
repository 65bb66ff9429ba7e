"""Storage drivers shipped with remap."""

from remap.drivers.memory import MemoryConnection, MemoryDriver
from remap.drivers.sqlite import SQLiteConnection, SQLiteDriver


def register_builtin_drivers(registry) -> None:
    """Register the sqlite and memory drivers on a registry."""
    registry.register("sqlite", SQLiteDriver)
    registry.register("memory", MemoryDriver)


__all__ = [
    "MemoryConnection",
    "MemoryDriver",
    "SQLiteConnection",
    "SQLiteDriver",
    "register_builtin_drivers",
]
