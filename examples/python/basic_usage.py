#!/usr/bin/env python3
"""
Basic remap usage example.

This example demonstrates:
- Opening a map on the sqlite driver
- Setting and getting values
- Creating a key only if it is absent
- Reading values back into a typed model
- Sharing an existing sqlite3 connection
"""

import sqlite3
import tempfile
from pathlib import Path

from pydantic import BaseModel

import remap
from remap.drivers import SQLiteConnection


class Settings(BaseModel):
    theme: str
    font_size: int


def main():
    with tempfile.TemporaryDirectory() as temp_dir:
        db_path = Path(temp_dir) / "example.db"

        with remap.connect("sqlite", str(db_path)) as m:
            print("Setting values...")
            m.set("greeting", "hello")
            m.set("answer", 42)
            m.set("settings", {"theme": "dark", "font_size": 12})

            print(f"greeting = {m.get('greeting')}")
            print(f"answer = {m.get('answer', int)}")
            print(f"settings = {m.get('settings', Settings)!r}")

            # Only the first caller creates the lock key
            print("\nCreating lock key...")
            print(f"first attempt: {m.set_if_not_exists('lock', 'worker-1')}")
            print(f"second attempt: {m.set_if_not_exists('lock', 'worker-2')}")
            print(f"lock owner = {m.get('lock')}")

            m.delete("lock")
            try:
                m.get("lock")
            except remap.NotFoundError:
                print("lock released")

        # Reuse a connection owned by the application
        print("\nAdopting an existing sqlite3 connection...")
        conn = sqlite3.connect(db_path, check_same_thread=False)
        with remap.adopt(SQLiteConnection.from_sqlite(conn)) as m:
            print(f"greeting = {m.get('greeting')}")
        conn.close()


if __name__ == "__main__":
    main()
