"""SQLite storage driver for remap."""

import logging
import sqlite3
import threading
from typing import Dict

from remap.core.connection import DatabaseConnection
from remap.core.registry import Driver
from remap.core.store import StorageConnection, TypeTag
from remap.errors import DuplicateKeyError, InfrastructureError, NotFoundError

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS remap_keys (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        type_tag INTEGER NOT NULL CHECK (type_tag IN (1, 2, 3))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS remap_values (
        id INTEGER PRIMARY KEY REFERENCES remap_keys(id) ON DELETE CASCADE,
        payload TEXT
    )
    """,
)


def _is_duplicate_key(exc: sqlite3.IntegrityError) -> bool:
    """Check whether an integrity error is the unique constraint on key names."""
    # sqlite_errorname is only available on Python 3.11+
    errorname = getattr(exc, "sqlite_errorname", None)
    if errorname is not None and errorname != "SQLITE_CONSTRAINT_UNIQUE":
        return False
    return "remap_keys.name" in str(exc)


class SQLiteConnection(StorageConnection):
    """Storage connection backed by the remap_keys/remap_values tables.

    Every clone shares one :class:`DatabaseConnection`.
    """

    def __init__(self, db: DatabaseConnection, create_schema: bool = False):
        """Initialize a storage connection.

        Args:
            db: Shared database handle; a reference is acquired for this connection
            create_schema: Create the remap tables if they are missing
        """
        self._db = db.acquire()
        self._closed = False
        if create_schema:
            try:
                self.ensure_schema()
            except InfrastructureError:
                self.close()
                raise

    @classmethod
    def from_sqlite(
        cls, connection: sqlite3.Connection, create_schema: bool = True
    ) -> "SQLiteConnection":
        """Create a storage connection on an existing ``sqlite3`` connection.

        The connection stays owned by the caller; closing the returned
        storage connection does not close it. For use from several threads
        it must have been opened with ``check_same_thread=False``.

        Every remap write starts its own ``BEGIN IMMEDIATE`` transaction, so
        the connection must not be inside a transaction while remap uses it.
        Open it with ``isolation_level=None`` (or ``autocommit=True`` on
        Python 3.12+), or commit pending writes before calling remap.
        """
        return cls(DatabaseConnection.from_sqlite(connection), create_schema=create_schema)

    @property
    def database(self) -> DatabaseConnection:
        """The shared database handle."""
        return self._db

    def ensure_schema(self) -> None:
        """Create the remap tables if they do not exist yet."""
        try:
            with self._db.transaction() as tx:
                for statement in SCHEMA:
                    tx.execute(statement)
        except sqlite3.Error as e:
            raise InfrastructureError(
                f"error creating remap schema: {e}", operation="ensure_schema"
            ) from e

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise InfrastructureError("connection is closed", operation=operation)

    def clone(self) -> "SQLiteConnection":
        self._check_open("clone")
        try:
            return SQLiteConnection(self._db)
        except sqlite3.Error as e:
            raise InfrastructureError(
                f"error cloning connection: {e}", operation="clone"
            ) from e

    def set_if_not_exists(self, key: str, value: str) -> bool:
        self._check_open("set_if_not_exists")
        try:
            with self._db.transaction() as tx:
                try:
                    cursor = tx.execute(
                        "INSERT INTO remap_keys (type_tag, name) VALUES (?, ?)",
                        (int(TypeTag.STRING), key),
                    )
                except sqlite3.IntegrityError as e:
                    if _is_duplicate_key(e):
                        raise DuplicateKeyError(key) from e
                    raise

                tx.execute(
                    """
                    INSERT INTO remap_values (id, payload) VALUES (?, ?)
                    ON CONFLICT(id) DO UPDATE SET payload = excluded.payload
                    """,
                    (cursor.lastrowid, value),
                )
        except DuplicateKeyError:
            logger.debug(f"Key '{key}' already exists, not set")
            return False
        except sqlite3.Error as e:
            raise InfrastructureError(
                f"error inserting key '{key}': {e}", operation="set_if_not_exists"
            ) from e

        return True

    def set_string(self, key: str, value: str) -> None:
        self._check_open("set_string")
        try:
            with self._db.transaction() as tx:
                row = tx.execute(
                    "SELECT id FROM remap_keys WHERE name = ?", (key,)
                ).fetchone()

                if row is not None:
                    key_id = row[0]
                    cursor = tx.execute(
                        "UPDATE remap_values SET payload = ? WHERE id = ?",
                        (value, key_id),
                    )
                    if cursor.rowcount == 0:
                        tx.execute(
                            "INSERT INTO remap_values (id, payload) VALUES (?, ?)",
                            (key_id, value),
                        )
                    return

                cursor = tx.execute(
                    "INSERT INTO remap_keys (name, type_tag) VALUES (?, ?)",
                    (key, int(TypeTag.STRING)),
                )
                tx.execute(
                    "INSERT INTO remap_values (id, payload) VALUES (?, ?)",
                    (cursor.lastrowid, value),
                )
        except sqlite3.Error as e:
            raise InfrastructureError(
                f"error setting key '{key}': {e}", operation="set_string"
            ) from e

    def del_string(self, key: str) -> None:
        self._check_open("del_string")
        try:
            with self._db.transaction() as tx:
                tx.execute(
                    "DELETE FROM remap_values WHERE id IN "
                    "(SELECT id FROM remap_keys WHERE name = ?)",
                    (key,),
                )
                tx.execute("DELETE FROM remap_keys WHERE name = ?", (key,))
        except sqlite3.Error as e:
            raise InfrastructureError(
                f"error deleting key '{key}': {e}", operation="del_string"
            ) from e

    def get_string(self, key: str) -> str:
        self._check_open("get_string")
        try:
            row = self._db.fetchone(
                """
                SELECT v.payload
                FROM remap_keys AS k
                JOIN remap_values AS v ON v.id = k.id
                WHERE k.name = ? AND k.type_tag = ?
                """,
                (key, int(TypeTag.STRING)),
            )
        except sqlite3.Error as e:
            raise InfrastructureError(
                f"error reading key '{key}': {e}", operation="get_string"
            ) from e

        if row is None:
            logger.debug(f"Key '{key}' not found")
            raise NotFoundError(key)
        if row[0] is None:
            return "null"
        return row[0]

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._db.release()


def _is_shared_memory(data_source: str) -> bool:
    """Whether a data source names an in-memory database shared through SQLite's cache."""
    return (
        data_source.startswith("file:")
        and "mode=memory" in data_source
        and "cache=shared" in data_source
    )


class SQLiteDriver(Driver):
    """Opens SQLite storage connections from a data source string.

    Shared-cache in-memory databases (``file:name?mode=memory&cache=shared``)
    get one handle per data source, shared by every connection opened on it.
    SQLite reports lock conflicts between shared-cache handles immediately
    instead of waiting out the busy timeout, so those connections are
    serialized on a single handle instead. The handles are shared across
    driver instances in the process.
    """

    _shared: Dict[str, DatabaseConnection] = {}
    _lock = threading.Lock()

    def __init__(self, timeout: float = 5.0, create_schema: bool = True):
        self.timeout = timeout
        self.create_schema = create_schema

    def _new_database(self, data_source: str) -> DatabaseConnection:
        try:
            return DatabaseConnection(data_source, timeout=self.timeout)
        except (sqlite3.Error, OSError) as e:
            raise InfrastructureError(
                f"error opening database {data_source}: {e}", operation="open"
            ) from e

    def _open_shared(self, data_source: str) -> SQLiteConnection:
        with SQLiteDriver._lock:
            db = SQLiteDriver._shared.get(data_source)
            if db is not None:
                try:
                    return SQLiteConnection(db, create_schema=self.create_schema)
                except sqlite3.ProgrammingError:
                    # Last reference was released, the handle is closed
                    pass

            db = SQLiteDriver._shared[data_source] = self._new_database(data_source)
            return SQLiteConnection(db, create_schema=self.create_schema)

    def open(self, data_source: str) -> SQLiteConnection:
        if _is_shared_memory(data_source):
            conn = self._open_shared(data_source)
        else:
            conn = SQLiteConnection(
                self._new_database(data_source), create_schema=self.create_schema
            )

        logger.info(f"Opened sqlite storage at {data_source}")
        return conn
