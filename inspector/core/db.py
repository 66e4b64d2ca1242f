from __future__ import annotations

import sqlite3
from pathlib import Path


class Database:
    """SQLite database helper with schema initialization.

    Each caller opens its own connection; WAL mode and a busy timeout let the
    worker threads and request handlers write concurrently.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        con = sqlite3.connect(str(self.db_path), check_same_thread=False)
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA journal_mode=WAL;")
        con.execute("PRAGMA synchronous=NORMAL;")
        con.execute("PRAGMA busy_timeout=5000;")
        return con

    def init_schema(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS jobs (
                  job_id  TEXT PRIMARY KEY,
                  image   TEXT NOT NULL,
                  path    TEXT NOT NULL,
                  status  TEXT NOT NULL,
                  result  TEXT,
                  error   TEXT,
                  created REAL NOT NULL,
                  updated REAL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS results (
                  job_id     TEXT PRIMARY KEY,
                  payload    TEXT NOT NULL,
                  created    REAL NOT NULL,
                  expires_at REAL NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS results_expires ON results(expires_at)")
            con.commit()
