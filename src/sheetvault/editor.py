"""Editable view of the default dataset.

The view loads the dataset record into memory, lets callers change single
cells there, and writes the whole sequence back on ``save``. A save always
overwrites the stored record in full, so the last save wins.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path

from sheetvault import DEFAULT_DATASET_KEY
from sheetvault.codec import decode_delimited
from sheetvault.errors import SheetVaultError, ViewStateError
from sheetvault.io import read_input_bytes
from sheetvault.models import CellValue, OperationStatus, RowRecord, StoredRecord
from sheetvault.store import LocalStore
from sheetvault.utils import utcnow_iso

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"
    ERROR = "error"


class DatasetView:
    def __init__(self, store: LocalStore, *, key: str = DEFAULT_DATASET_KEY) -> None:
        self.store = store
        self.key = key
        self.state = ViewState.IDLE
        self.rows: list[RowRecord] = []
        self.error: str | None = None
        self.status = OperationStatus()
        self._loaded = False

    @property
    def columns(self) -> list[str]:
        return list(self.rows[0].keys()) if self.rows else []

    def _fail(self, exc: Exception) -> None:
        self.state = ViewState.ERROR
        self.error = str(exc)
        self.status = OperationStatus.failed(str(exc))

    async def load(self) -> list[RowRecord]:
        """Replace the in-memory rows with the stored dataset."""
        self.state = ViewState.LOADING
        self.error = None
        self.status = OperationStatus.loading()
        try:
            rows = await self.store.read_all(self.key)
        except SheetVaultError as exc:
            logger.error("Error loading data: %s", exc)
            self._fail(exc)
            raise
        except Exception as exc:
            logger.exception("Unexpected error loading %s", self.key)
            self._fail(exc)
            raise
        self.rows = [dict(row) for row in rows]
        self._loaded = True
        self.state = ViewState.READY
        self.status = OperationStatus()
        return self.rows

    def edit_cell(self, row_index: int, column: str, value: CellValue) -> None:
        """Set one cell of the in-memory copy; nothing is persisted until ``save``."""
        if self.state is not ViewState.READY:
            raise ViewStateError(f"Cannot edit cells while the view is {self.state.value}")
        if not 0 <= row_index < len(self.rows):
            raise IndexError(f"Row {row_index} out of range (0..{len(self.rows) - 1})")
        if not column:
            raise ValueError("column name must not be empty")
        self.rows[row_index][column] = value

    async def save(self) -> None:
        """Overwrite the stored dataset with the full in-memory sequence."""
        if not self._loaded or self.state in (ViewState.LOADING, ViewState.SAVING):
            raise ViewStateError(f"Cannot save while the view is {self.state.value}")
        await self._write(self.rows)

    async def import_csv(self, path: Path, *, delimiter: str = ",") -> list[RowRecord]:
        """Parse a CSV file, show it in the view and save it as the dataset."""
        self.state = ViewState.LOADING
        self.status = OperationStatus.loading()
        try:
            data = await asyncio.to_thread(read_input_bytes, Path(path))
            sheets = decode_delimited(data, delimiter=delimiter, sheet_name=self.key)
        except Exception as exc:
            self._fail(exc)
            raise
        self.rows = [dict(row) for row in sheets.get(self.key, [])]
        self._loaded = True
        await self._write(self.rows)
        return self.rows

    async def _write(self, rows: list[RowRecord]) -> None:
        self.state = ViewState.SAVING
        self.status = OperationStatus.loading()
        record = StoredRecord.default_dataset(rows, utcnow_iso(), key=self.key)
        try:
            await self.store.put(record)
        except SheetVaultError as exc:
            logger.error("Error saving data: %s", exc)
            self._fail(exc)
            raise
        except Exception as exc:
            logger.exception("Unexpected error saving %s", self.key)
            self._fail(exc)
            raise
        logger.info("Saved %d rows under %s", len(rows), self.key)
        self.error = None
        self.state = ViewState.READY
        self.status = OperationStatus.succeeded("Data saved successfully!")
