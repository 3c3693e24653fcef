"""Export pipeline — default dataset from the store into an XLSX file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from sheetvault import DEFAULT_DATASET_KEY
from sheetvault.codec import encode_records
from sheetvault.errors import EmptyExportError, SheetVaultError
from sheetvault.io import ensure_xlsx_suffix, write_bytes_atomic
from sheetvault.models import OperationStatus
from sheetvault.store import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_NAME = "exported_data.xlsx"


class ExportPipeline:
    def __init__(self, store: LocalStore, *, key: str = DEFAULT_DATASET_KEY) -> None:
        self.store = store
        self.key = key
        self.status = OperationStatus()

    async def export_dataset(
        self, file_name: str = DEFAULT_EXPORT_NAME, out_dir: Path = Path(".")
    ) -> Path:
        """Write the persisted dataset to ``out_dir/<file_name>.xlsx`` and return the path.

        Raises
        ------
        EmptyExportError
            If nothing is stored under the dataset key; no file is written.
        """
        self.status = OperationStatus.loading()
        try:
            target = Path(out_dir) / ensure_xlsx_suffix(file_name)
            rows = await self.store.read_all(self.key)
            if not rows:
                raise EmptyExportError("No data available to export")
            payload = encode_records(rows)
            await asyncio.to_thread(write_bytes_atomic, target, payload)
        except ValueError as exc:
            self.status = OperationStatus.failed(str(exc))
            raise
        except SheetVaultError as exc:
            logger.error("Error exporting data: %s", exc)
            self.status = OperationStatus.failed(str(exc))
            raise
        except OSError as exc:
            message = f"Failed to export to Excel: {exc}"
            self.status = OperationStatus.failed(message)
            raise SheetVaultError(message) from exc
        except Exception as exc:
            logger.exception("Unexpected error exporting %s", self.key)
            self.status = OperationStatus.failed(f"Unexpected error: {exc}")
            raise

        logger.info("Exported %d rows to %s", len(rows), target)
        self.status = OperationStatus.succeeded("Data exported successfully!")
        return target
