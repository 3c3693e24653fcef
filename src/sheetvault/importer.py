"""Import pipeline — spreadsheet file into the local store in one transaction."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from sheetvault import CLIENTS_SHEET
from sheetvault.codec import decode_table
from sheetvault.errors import SheetVaultError
from sheetvault.io import detect_format, read_input_bytes
from sheetvault.models import Dataset, ImportResult, OperationStatus, StoredRecord
from sheetvault.store import LocalStore, Transaction
from sheetvault.utils import sha256_bytes, utcnow_iso

logger = logging.getLogger(__name__)


def write_dataset(tx: Transaction, sheets: Dataset, timestamp: str) -> int:
    """Replace the collection's contents with *sheets*; return the client count.

    Rows of the ``Clients`` sheet become ``client_<n>`` records, every other
    sheet becomes one ``sheet_<name>`` record. Uses ``add`` so that a
    duplicate key aborts the whole transaction.
    """
    tx.clear()
    clients = sheets.get(CLIENTS_SHEET, [])
    for index, row in enumerate(clients, start=1):
        tx.add(StoredRecord.client(index, row))
    for name, rows in sheets.items():
        if name == CLIENTS_SHEET:
            continue
        tx.add(StoredRecord.sheet(name, rows, timestamp))
    return len(clients)


class ImportPipeline:
    """Reset the store, decode a file and persist its sheets.

    ``status`` follows idle → loading → success(sheet count) | error(message);
    ``sheets`` keeps the last successfully imported dataset for display.
    """

    def __init__(self, store: LocalStore, *, delimiter: str = ",") -> None:
        self.store = store
        self.delimiter = delimiter
        self.status = OperationStatus()
        self.sheets: Dataset = {}

    async def import_file(self, path: Path) -> ImportResult:
        path = Path(path)
        self.status = OperationStatus.loading()
        try:
            # a fresh schema guards against leftovers of an earlier session
            await self.store.reset()
            data = await asyncio.to_thread(read_input_bytes, path)
            sheets = decode_table(
                data,
                detect_format(path),
                sheet_name=path.stem or "Sheet1",
                delimiter=self.delimiter,
            )
            timestamp = utcnow_iso()
            client_count = await self.store.run_transaction(
                lambda tx: write_dataset(tx, sheets, timestamp)
            )
        except SheetVaultError as exc:
            logger.error("Error importing %s: %s", path, exc)
            self.status = OperationStatus.failed(str(exc))
            raise
        except Exception as exc:
            logger.exception("Unexpected error importing %s", path)
            self.status = OperationStatus.failed(f"Unexpected error: {exc}")
            raise

        self.sheets = sheets
        result = ImportResult(
            source=str(path),
            sha256=sha256_bytes(data),
            timestamp=timestamp,
            sheet_names=list(sheets),
            client_count=client_count,
        )
        logger.info("Imported %d sheets from %s", result.sheet_count, path)
        self.status = OperationStatus.succeeded(
            f"Data imported successfully! {result.sheet_count} sheets found.",
            sheet_count=result.sheet_count,
        )
        return result
