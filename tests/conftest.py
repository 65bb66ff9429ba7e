"""Pytest configuration and shared fixtures."""

import shutil
import tempfile
import uuid
from pathlib import Path

import pytest

from remap.core.map import Map
from remap.drivers import MemoryDriver, SQLiteDriver


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp = tempfile.mkdtemp()
    yield Path(temp)
    shutil.rmtree(temp)


@pytest.fixture(autouse=True)
def clean_remap_env(monkeypatch):
    """Keep configuration from the environment out of tests."""
    for name in ("REMAP_CONFIG", "REMAP_DRIVER", "REMAP_DATA_SOURCE", "REMAP_STRICT_TYPES"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(params=["sqlite-file", "sqlite-memory", "memory"])
def kv(request, temp_dir):
    """A fresh map on each storage backend."""
    if request.param == "sqlite-file":
        conn = SQLiteDriver().open(str(temp_dir / "kv.db"))
    elif request.param == "sqlite-memory":
        conn = SQLiteDriver().open(f"file:{uuid.uuid4().hex}?mode=memory&cache=shared")
    else:
        conn = MemoryDriver().open("")

    m = Map(conn)
    yield m
    m.close()
