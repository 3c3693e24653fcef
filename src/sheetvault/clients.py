"""Client directory — the individually keyed rows of the ``Clients`` sheet."""

from __future__ import annotations

import logging

from sheetvault.errors import RecordNotFoundError
from sheetvault.models import CLIENT_KEY_PREFIX, CellValue, StoredRecord
from sheetvault.store import LocalStore, Transaction

logger = logging.getLogger(__name__)


def _client_number(record: StoredRecord) -> int:
    suffix = record.id[len(CLIENT_KEY_PREFIX):]
    return int(suffix) if suffix.isdigit() else 0


class ClientDirectory:
    def __init__(self, store: LocalStore) -> None:
        self.store = store

    async def entries(self) -> list[StoredRecord]:
        """Return client records ordered by their numeric key suffix."""
        records = await self.store.records(prefix=CLIENT_KEY_PREFIX)
        return sorted((r for r in records if r.is_client), key=_client_number)

    async def get(self, key: str) -> StoredRecord:
        record = await self.store.get(key)
        if record is None or not record.is_client:
            raise RecordNotFoundError(key)
        return record

    async def update(self, key: str, changes: dict[str, CellValue]) -> StoredRecord:
        """Merge *changes* into one client's row and store it with ``put``."""

        def _apply(tx: Transaction) -> StoredRecord:
            record = tx.get(key)
            if record is None or not record.is_client:
                raise RecordNotFoundError(key)
            row = dict(record.data) if isinstance(record.data, dict) else {}
            row.update(changes)
            record.data = row
            tx.put(record)
            return record

        record = await self.store.run_transaction(_apply)
        logger.info("Updated client %s (%s)", key, ", ".join(changes) or "no fields")
        return record

    async def delete(self, key: str) -> None:
        def _remove(tx: Transaction) -> None:
            record = tx.get(key)
            if record is None or not record.is_client:
                raise RecordNotFoundError(key)
            tx.delete(key)

        await self.store.run_transaction(_remove)
        logger.info("Deleted client %s", key)
