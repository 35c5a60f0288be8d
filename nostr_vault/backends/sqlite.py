"""SQLite backend for the key vault."""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path

from ..schema import RECORD_ID, EncryptedKeyRecord
from .base import RecordNotFoundError, StorageUnavailableError, VaultStore

logger = logging.getLogger(__name__)

STORE_VERSION = 2


class SQLiteVaultStore(VaultStore):
    """SQLite-based vault storage backend.

    The store version lives in ``PRAGMA user_version`` and is upgraded on
    every open. Version 1 databases used an incompatible ``keys`` layout,
    which is dropped and recreated.
    """

    name = "sqlite"

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)

    def _upgrade(self, conn: sqlite3.Connection) -> None:
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version == STORE_VERSION:
            return
        if version > STORE_VERSION:
            raise StorageUnavailableError(
                f"Vault store version {version} is newer than supported ({STORE_VERSION})"
            )

        logger.info("Upgrading vault store from version %d to %d", version, STORE_VERSION)
        with conn:
            if version == 1:
                conn.execute("DROP TABLE IF EXISTS keys")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS keys (
                    id TEXT PRIMARY KEY,
                    salt BLOB NOT NULL,
                    iv BLOB NOT NULL,
                    encrypted BLOB NOT NULL,
                    schema_version INTEGER NOT NULL
                )
                """
            )
            conn.execute(f"PRAGMA user_version = {STORE_VERSION}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open, upgrade and always close a connection."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailableError(f"Cannot open vault at {self.db_path}: {e}") from e

        with closing(conn):
            try:
                self._upgrade(conn)
            except sqlite3.Error as e:
                raise StorageUnavailableError(f"Cannot upgrade vault at {self.db_path}: {e}") from e
            yield conn

    def version(self) -> int:
        """Return the store version after opening (and upgrading) it."""
        with self._connect() as conn:
            return conn.execute("PRAGMA user_version").fetchone()[0]

    def load(self) -> EncryptedKeyRecord:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT salt, iv, encrypted, schema_version FROM keys WHERE id = ?",
                (RECORD_ID,),
            ).fetchone()
        if row is None:
            raise RecordNotFoundError()
        return EncryptedKeyRecord(
            salt=bytes(row[0]),
            iv=bytes(row[1]),
            encrypted=bytes(row[2]),
            schema_version=row[3],
        )

    def save(self, record: EncryptedKeyRecord) -> None:
        with self._connect() as conn, conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO keys (id, salt, iv, encrypted, schema_version)
                VALUES (?, ?, ?, ?, ?)
                """,
                (record.id, record.salt, record.iv, record.encrypted, record.schema_version),
            )

    def delete(self) -> bool:
        with self._connect() as conn, conn:
            cursor = conn.execute("DELETE FROM keys WHERE id = ?", (RECORD_ID,))
            return cursor.rowcount > 0
