"""Local store — one versioned SQLite database holding one keyed collection.

Every public operation opens its own connection, runs exactly one
transaction and closes the connection again, whether the transaction commits
or aborts. Nothing is held open between operations, so callers that need
ordering must await one operation before issuing the next.

Lifecycle of a single operation::

    CLOSED -> OPENING -> (UPGRADING) -> OPEN -> TRANSACTION_ACTIVE
           -> COMMITTED | ABORTED -> CLOSED

The collection is created only while upgrading, i.e. when the database's
``user_version`` is below the configured version.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TypeVar

from sheetvault import DEFAULT_DATASET_KEY
from sheetvault.errors import (
    KeyConflictError,
    MissingCollectionError,
    StorageOpenError,
    StorageTransactionError,
    StorageUpgradeError,
)
from sheetvault.io import dumps_payload, loads_payload
from sheetvault.models import RowRecord, StoreConfig, StoredRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SIDE_FILE_SUFFIXES = ("-journal", "-wal", "-shm")


class ConnectionPhase(str, Enum):
    CLOSED = "closed"
    OPENING = "opening"
    UPGRADING = "upgrading"
    OPEN = "open"
    TRANSACTION_ACTIVE = "transaction_active"
    COMMITTED = "committed"
    ABORTED = "aborted"


def create_collection(conn: sqlite3.Connection, collection: str) -> bool:
    """Create *collection* if absent; return True when it was created."""
    exists = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (collection,)
    ).fetchone()
    if exists:
        return False
    conn.execute(f'CREATE TABLE "{collection}" (id TEXT PRIMARY KEY NOT NULL, value TEXT NOT NULL)')
    return True


class Transaction:
    """Record operations bound to one open transaction.

    Instances are handed to the unit of work passed to
    :meth:`LocalStore.run_transaction` and must not outlive it.
    """

    def __init__(self, conn: sqlite3.Connection, collection: str, *, readonly: bool) -> None:
        self._conn = conn
        self._table = f'"{collection}"'
        self.readonly = readonly

    def _check_writable(self, op: str) -> None:
        if self.readonly:
            raise StorageTransactionError(
                f"ReadOnlyError: cannot {op} inside a read-only transaction"
            )

    def get(self, key: str) -> StoredRecord | None:
        row = self._conn.execute(
            f"SELECT value FROM {self._table} WHERE id = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        return StoredRecord.from_dict(loads_payload(row[0]))

    def all(self, prefix: str | None = None) -> list[StoredRecord]:
        if prefix:
            cursor = self._conn.execute(
                f"SELECT value FROM {self._table} WHERE substr(id, 1, ?) = ? ORDER BY id",
                (len(prefix), prefix),
            )
        else:
            cursor = self._conn.execute(f"SELECT value FROM {self._table} ORDER BY id")
        return [StoredRecord.from_dict(loads_payload(value)) for (value,) in cursor]

    def put(self, record: StoredRecord) -> None:
        self._check_writable("put")
        self._conn.execute(
            f"INSERT OR REPLACE INTO {self._table} (id, value) VALUES (?, ?)",
            (record.id, dumps_payload(record.to_dict())),
        )

    def add(self, record: StoredRecord) -> None:
        self._check_writable("add")
        try:
            self._conn.execute(
                f"INSERT INTO {self._table} (id, value) VALUES (?, ?)",
                (record.id, dumps_payload(record.to_dict())),
            )
        except sqlite3.IntegrityError as exc:
            raise KeyConflictError(record.id) from exc

    def delete(self, key: str) -> bool:
        self._check_writable("delete")
        cursor = self._conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (key,))
        return cursor.rowcount > 0

    def clear(self) -> None:
        self._check_writable("clear")
        self._conn.execute(f"DELETE FROM {self._table}")


class LocalStore:
    """Async façade over the local database described by a :class:`StoreConfig`."""

    def __init__(self, config: StoreConfig | None = None) -> None:
        self.config = config or StoreConfig()
        self._phase = ConnectionPhase.CLOSED

    @property
    def phase(self) -> ConnectionPhase:
        return self._phase

    @property
    def path(self) -> Path:
        return self.config.path

    def _set_phase(self, phase: ConnectionPhase) -> None:
        logger.debug("%s: %s -> %s", self.path.name, self._phase.value, phase.value)
        self._phase = phase

    # ── Connection lifecycle ────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        self._set_phase(ConnectionPhase.OPENING)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
        except (OSError, sqlite3.Error) as exc:
            self._set_phase(ConnectionPhase.CLOSED)
            raise StorageOpenError(f"Database error: {exc}") from exc

        try:
            current = int(conn.execute("PRAGMA user_version").fetchone()[0])
            if current > self.config.version:
                raise StorageOpenError(
                    f"VersionError: database {self.path} is at version {current}, "
                    f"newer than the requested version {self.config.version}"
                )
            if current < self.config.version:
                self._upgrade(conn, current)
            if not self._has_collection(conn):
                raise MissingCollectionError(
                    f'Object store "{self.config.collection}" not found. '
                    "Database might need to be reset."
                )
        except sqlite3.Error as exc:
            conn.close()
            self._set_phase(ConnectionPhase.CLOSED)
            raise StorageOpenError(f"Database error: {exc}") from exc
        except (StorageOpenError, StorageUpgradeError):
            conn.close()
            self._set_phase(ConnectionPhase.CLOSED)
            raise

        self._set_phase(ConnectionPhase.OPEN)
        return conn

    def _upgrade(self, conn: sqlite3.Connection, old_version: int) -> None:
        self._set_phase(ConnectionPhase.UPGRADING)
        logger.info(
            "Database upgrade needed (%d -> %d) - creating object store",
            old_version,
            self.config.version,
        )
        try:
            conn.execute("BEGIN IMMEDIATE")
            if create_collection(conn, self.config.collection):
                logger.info('Object store "%s" created', self.config.collection)
            conn.execute(f"PRAGMA user_version = {int(self.config.version)}")
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StorageUpgradeError(f"Database upgrade failed: {exc}") from exc

    def _has_collection(self, conn: sqlite3.Connection) -> bool:
        row = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (self.config.collection,),
        ).fetchone()
        return row is not None

    def _execute(self, work: Callable[[Transaction], T], readonly: bool) -> T:
        conn = self._connect()
        try:
            conn.execute("BEGIN" if readonly else "BEGIN IMMEDIATE")
            self._set_phase(ConnectionPhase.TRANSACTION_ACTIVE)
            try:
                result = work(Transaction(conn, self.config.collection, readonly=readonly))
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                self._set_phase(ConnectionPhase.ABORTED)
                raise
            self._set_phase(ConnectionPhase.COMMITTED)
            return result
        except sqlite3.Error as exc:
            raise StorageTransactionError(f"Transaction error: {exc}") from exc
        finally:
            conn.close()
            self._set_phase(ConnectionPhase.CLOSED)

    def _reset(self) -> None:
        for target in [self.path, *(Path(f"{self.path}{s}") for s in _SIDE_FILE_SUFFIXES)]:
            try:
                target.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Error deleting %s: %s; initializing anyway", target, exc)
        logger.info("Database %s deleted. Creating new database...", self.path)
        conn = self._connect()
        conn.close()
        self._set_phase(ConnectionPhase.CLOSED)

    def _ensure_schema(self) -> None:
        conn = self._connect()
        conn.close()
        self._set_phase(ConnectionPhase.CLOSED)

    # ── Public API ──────────────────────────────────────────────

    async def reset(self) -> None:
        """Delete the database and recreate it with an empty collection."""
        await asyncio.to_thread(self._reset)

    async def ensure_schema(self) -> None:
        """Open (upgrading when needed) and verify the collection exists."""
        await asyncio.to_thread(self._ensure_schema)

    async def run_transaction(
        self, work: Callable[[Transaction], T], *, readonly: bool = False
    ) -> T:
        """Run *work* inside one transaction; commit on success, roll back on error."""
        return await asyncio.to_thread(self._execute, work, readonly)

    async def get(self, key: str) -> StoredRecord | None:
        return await self.run_transaction(lambda tx: tx.get(key), readonly=True)

    async def records(self, prefix: str | None = None) -> list[StoredRecord]:
        """Return every record (or those whose key starts with *prefix*) in key order."""
        return await self.run_transaction(lambda tx: tx.all(prefix), readonly=True)

    async def read_all(self, key: str = DEFAULT_DATASET_KEY) -> list[RowRecord]:
        """Return the row sequence stored under *key*, or ``[]`` when there is none."""
        record = await self.get(key)
        if record is None or not isinstance(record.data, list):
            return []
        return record.rows

    async def put(self, record: StoredRecord) -> None:
        await self.run_transaction(lambda tx: tx.put(record))

    async def add(self, record: StoredRecord) -> None:
        await self.run_transaction(lambda tx: tx.add(record))

    async def delete(self, key: str) -> bool:
        return await self.run_transaction(lambda tx: tx.delete(key))

    async def clear(self) -> None:
        await self.run_transaction(lambda tx: tx.clear())
