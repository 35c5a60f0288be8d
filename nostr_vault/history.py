"""Append-only log of unlock and sign-in attempts (SQLite-backed).

Only the operation, flow and outcome category are recorded, never keys,
passwords or server responses.
"""

from __future__ import annotations

import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path


@dataclass
class AttemptEntry:
    """A single attempt in the log."""

    id: int
    timestamp: str
    operation: str
    flow: str
    outcome: str


class AttemptLog:
    """Attempt log manager using SQLite with an append-only table."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._init_db()

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn, conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS attempts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    operation TEXT NOT NULL,
                    flow TEXT NOT NULL,
                    outcome TEXT NOT NULL
                )
            """)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _timestamp(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def log(self, operation: str, flow: str, outcome: str) -> None:
        """Append an attempt to the log."""
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                INSERT INTO attempts (timestamp, operation, flow, outcome)
                VALUES (?, ?, ?, ?)
                """,
                (self._timestamp(), operation, flow, outcome),
            )

    def entries(self) -> list[AttemptEntry]:
        """Get all attempts in chronological order."""
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                """
                SELECT id, timestamp, operation, flow, outcome
                FROM attempts
                ORDER BY id ASC
                """
            )
            return [AttemptEntry(*row) for row in cursor.fetchall()]

    def last_failure(self) -> AttemptEntry | None:
        """Get the most recent attempt that did not succeed."""
        with closing(self._connect()) as conn:
            row = conn.execute(
                """
                SELECT id, timestamp, operation, flow, outcome
                FROM attempts
                WHERE outcome != 'ok'
                ORDER BY id DESC
                LIMIT 1
                """
            ).fetchone()
        return AttemptEntry(*row) if row else None

    def is_empty(self) -> bool:
        """Check if the log has no entries."""
        with closing(self._connect()) as conn:
            return conn.execute("SELECT 1 FROM attempts LIMIT 1").fetchone() is None
