"""SQLite connection management for remap."""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

MEMORY_DATA_SOURCE = ":memory:"


class DatabaseConnection:
    """A SQLite handle shared by every storage connection cloned from it.

    The handle runs in autocommit mode; all writes go through
    :meth:`transaction`, which issues ``BEGIN IMMEDIATE`` so that competing
    writers on other handles wait for the database lock instead of failing
    midway through a read-then-write.

    A re-entrant lock serializes use of the handle between threads of this
    process. The handle is reference counted: :meth:`acquire` and
    :meth:`release` are called by each storage connection, and the
    underlying ``sqlite3.Connection`` is closed when the last one is released.
    """

    def __init__(
        self,
        data_source: Union[str, Path],
        timeout: float = 5.0,
        connection: Optional[sqlite3.Connection] = None,
    ):
        """Initialize database connection.

        Args:
            data_source: ``:memory:``, a ``file:`` URI, or a path to a database file
            timeout: Seconds to wait for a locked database before failing
            connection: Existing connection to wrap instead of opening one.
                A wrapped connection is owned by the caller and never closed here.
        """
        self.data_source = str(data_source)
        self.timeout = timeout
        self._lock = threading.RLock()
        self._ref_count = 0
        self._owns_connection = connection is None
        self._conn: Optional[sqlite3.Connection] = connection
        if self._conn is None:
            self._connect()

    @classmethod
    def from_sqlite(cls, connection: sqlite3.Connection) -> "DatabaseConnection":
        """Wrap a caller-owned connection.

        Pragmas and isolation level of the connection are left as they are.
        """
        return cls("<external>", connection=connection)

    @property
    def is_memory(self) -> bool:
        """Whether the database lives only in memory."""
        return self.data_source == MEMORY_DATA_SOURCE or "mode=memory" in self.data_source

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _connect(self) -> None:
        """Open the database and configure WAL mode."""
        if self.data_source.startswith("file:"):
            self._conn = sqlite3.connect(
                self.data_source,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
                uri=True,
            )
        else:
            if self.data_source != MEMORY_DATA_SOURCE:
                Path(self.data_source).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                self.data_source,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )

        try:
            if not self.is_memory:
                self._conn.execute("PRAGMA journal_mode = WAL")
                self._conn.execute("PRAGMA synchronous = NORMAL")
            self._conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error:
            self._conn.close()
            self._conn = None
            raise

        logger.debug(f"Opened SQLite database {self.data_source}")

    def _require_open(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("Cannot operate on a closed database.")
        return self._conn

    def execute(self, sql: str, params: Optional[tuple] = None) -> sqlite3.Cursor:
        """Execute a single SQL statement.

        Args:
            sql: SQL statement to execute
            params: Optional parameters for parameterized queries

        Returns:
            Cursor with results
        """
        with self._lock:
            conn = self._require_open()
            if params:
                return conn.execute(sql, params)
            return conn.execute(sql)

    def fetchone(self, sql: str, params: Optional[tuple] = None) -> Optional[tuple]:
        """Execute a query and fetch its first row while holding the handle lock."""
        with self._lock:
            return self.execute(sql, params).fetchone()

    @contextmanager
    def transaction(self):
        """Context manager for an immediate write transaction.

        Commits on success. Rolls back on any exception, including a failed
        commit, and re-raises it.
        """
        with self._lock:
            conn = self._require_open()
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield self
                conn.commit()
            except BaseException:
                try:
                    conn.rollback()
                except sqlite3.Error as e:
                    logger.warning(f"Rollback failed on {self.data_source}: {e}")
                raise

    def acquire(self) -> "DatabaseConnection":
        """Take a reference to this handle."""
        with self._lock:
            self._require_open()
            self._ref_count += 1
            return self

    def release(self) -> None:
        """Drop a reference; closes the handle when none remain."""
        with self._lock:
            self._ref_count = max(0, self._ref_count - 1)
            if self._ref_count == 0:
                self.close()

    def close(self) -> None:
        """Close the database connection if remap opened it."""
        with self._lock:
            if self._conn is not None:
                if self._owns_connection:
                    self._conn.close()
                    logger.debug(f"Closed SQLite database {self.data_source}")
                self._conn = None
