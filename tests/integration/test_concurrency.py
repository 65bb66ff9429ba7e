"""Concurrency tests for set_if_not_exists and set."""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

import remap
from remap.core.map import Map
from remap.drivers import MemoryDriver, SQLiteDriver


def race(maps, key):
    """Run set_if_not_exists on every map at once and return the results."""
    barrier = threading.Barrier(len(maps))

    def worker(index):
        barrier.wait()
        return index, maps[index].set_if_not_exists(key, f"worker-{index}")

    with ThreadPoolExecutor(max_workers=len(maps)) as executor:
        return list(executor.map(worker, range(len(maps))))


class TestSetIfNotExistsRace:
    """Exactly one of many concurrent callers creates a key."""

    WORKERS = 16

    def assert_single_winner(self, results, m, key):
        winners = [index for index, created in results if created]
        assert len(winners) == 1
        assert m.get(key) == f"worker-{winners[0]}"

    def test_shared_sqlite_map(self, temp_dir):
        m = remap.connect("sqlite", str(temp_dir / "shared.db"))
        try:
            for round_number in range(5):
                key = f"lock-{round_number}"
                results = race([m] * self.WORKERS, key)
                self.assert_single_winner(results, m, key)
        finally:
            m.close()

    def test_separate_sqlite_handles(self, temp_dir):
        """Each caller holds its own database handle on the same file."""
        db_path = str(temp_dir / "separate.db")

        # Pre-initialize the database to avoid WAL setup races
        SQLiteDriver().open(db_path).close()

        maps = [Map(SQLiteDriver(timeout=30.0).open(db_path)) for _ in range(self.WORKERS)]
        try:
            for round_number in range(3):
                key = f"lock-{round_number}"
                results = race(maps, key)
                self.assert_single_winner(results, maps[0], key)
        finally:
            for m in maps:
                m.close()

    def test_shared_cache_memory_uri(self):
        """Separate opens of one shared-cache URI race without lock errors."""
        uri = f"file:race-{uuid.uuid4().hex}?mode=memory&cache=shared"
        maps = [Map(SQLiteDriver().open(uri)) for _ in range(self.WORKERS)]
        try:
            for round_number in range(5):
                key = f"lock-{round_number}"
                results = race(maps, key)
                self.assert_single_winner(results, maps[-1], key)
        finally:
            for m in maps:
                m.close()

    def test_memory_clones(self):
        base = Map(MemoryDriver().open(""))
        maps = [remap.adopt(base.connection) for _ in range(self.WORKERS)]

        results = race(maps, "lock")
        self.assert_single_winner(results, base, "lock")


class TestConcurrentSet:
    """Concurrent overwrites each apply fully."""

    @pytest.mark.parametrize("driver", ["sqlite", "memory"])
    def test_last_write_is_one_of_the_writes(self, driver, temp_dir):
        data_source = str(temp_dir / "set.db") if driver == "sqlite" else ""
        m = remap.connect(driver, data_source)

        values = [{"writer": i, "payload": "x" * i} for i in range(20)]

        def writer(value):
            for _ in range(10):
                m.set("shared", value)

        try:
            with ThreadPoolExecutor(max_workers=len(values)) as executor:
                list(executor.map(writer, values))

            assert m.get("shared") in values
        finally:
            m.close()

    def test_shared_cache_readers_and_writers(self):
        uri = f"file:mixed-{uuid.uuid4().hex}?mode=memory&cache=shared"
        writers = [Map(SQLiteDriver().open(uri)) for _ in range(4)]
        readers = [Map(SQLiteDriver().open(uri)) for _ in range(4)]
        writers[0].set("shared", 0)

        def write(m):
            for i in range(50):
                m.set("shared", i)

        def read(m):
            return [m.get("shared") for _ in range(50)]

        try:
            with ThreadPoolExecutor(max_workers=8) as executor:
                write_futures = [executor.submit(write, m) for m in writers]
                read_futures = [executor.submit(read, m) for m in readers]
                for future in write_futures:
                    future.result()
                for future in read_futures:
                    assert all(0 <= value < 50 for value in future.result())

            assert readers[0].get("shared") == 49
        finally:
            for m in writers + readers:
                m.close()

    def test_sqlite_leaves_one_row_per_key(self, temp_dir):
        m = remap.connect("sqlite", str(temp_dir / "rows.db"))

        def writer(index):
            for i in range(10):
                m.set(f"key-{i}", index)

        try:
            with ThreadPoolExecutor(max_workers=8) as executor:
                list(executor.map(writer, range(8)))

            db = m.connection.database
            assert db.fetchone("SELECT COUNT(*) FROM remap_keys")[0] == 10
            assert db.fetchone("SELECT COUNT(*) FROM remap_values")[0] == 10
        finally:
            m.close()
