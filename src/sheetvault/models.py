"""Data models shared by the codec, the store and the pipelines."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from numbers import Integral
from pathlib import Path
from typing import Any, Union

from sheetvault import CLIENTS_SHEET, DEFAULT_DATASET_KEY

CellValue = Union[str, int, float, bool]
"""A single cell; blank cells are always the empty string."""

RowRecord = dict[str, CellValue]
"""One row keyed by column name; insertion order is the column order."""

Dataset = dict[str, list[RowRecord]]
"""Sheets of one decoded file, keyed by sheet name in file order."""

CLIENT_KEY_PREFIX = "client_"
SHEET_KEY_PREFIX = "sheet_"
CLIENT_TYPE = "client"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def client_key(index: int) -> str:
    """Return the store key of the *index*-th (1-based) client row."""
    if isinstance(index, bool) or not isinstance(index, Integral) or index < 1:
        raise ValueError("client index must be a positive integer")
    return f"{CLIENT_KEY_PREFIX}{index}"


def sheet_key(name: str) -> str:
    return f"{SHEET_KEY_PREFIX}{name}"


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{field_name} must be a non-empty string")
    return value


# ── Stored records ──────────────────────────────────────────────


@dataclass
class StoredRecord:
    """One document in the store's collection, addressed by ``id``.

    ``data`` holds a single row record for client records and a list of row
    records for sheet records and the default dataset.
    """

    id: str
    data: Any = None
    type: str | None = None
    sheet_name: str | None = None
    timestamp: str | None = None

    def __post_init__(self) -> None:
        self.id = _require_text(self.id, "id")

    @classmethod
    def client(cls, index: int, row: RowRecord) -> StoredRecord:
        return cls(id=client_key(index), type=CLIENT_TYPE, data=dict(row))

    @classmethod
    def sheet(cls, name: str, rows: list[RowRecord], timestamp: str) -> StoredRecord:
        return cls(
            id=sheet_key(name),
            sheet_name=name,
            data=[dict(row) for row in rows],
            timestamp=timestamp,
        )

    @classmethod
    def default_dataset(
        cls, rows: list[RowRecord], timestamp: str, *, key: str = DEFAULT_DATASET_KEY
    ) -> StoredRecord:
        return cls(
            id=key,
            data=[dict(row) for row in rows],
            timestamp=timestamp,
        )

    @property
    def is_client(self) -> bool:
        return self.type == CLIENT_TYPE

    @property
    def rows(self) -> list[RowRecord]:
        """Row view of ``data``: a one-element list for client records."""
        if isinstance(self.data, list):
            return [row for row in self.data if isinstance(row, dict)]
        if isinstance(self.data, dict):
            return [self.data]
        return []

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "data": self.data}
        if self.type is not None:
            payload["type"] = self.type
        if self.sheet_name is not None:
            payload["sheetName"] = self.sheet_name
        if self.timestamp is not None:
            payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> StoredRecord:
        if not isinstance(payload, dict):
            raise TypeError("stored record payload must be a mapping")
        return cls(
            id=payload.get("id", ""),
            data=payload.get("data"),
            type=payload.get("type"),
            sheet_name=payload.get("sheetName"),
            timestamp=payload.get("timestamp"),
        )


# ── Operation status ────────────────────────────────────────────


class StatusKind(str, Enum):
    idle = "idle"
    loading = "loading"
    error = "error"
    success = "success"


@dataclass(frozen=True)
class OperationStatus:
    """Observable outcome of the latest import/export/save operation."""

    kind: StatusKind = StatusKind.idle
    message: str = ""
    sheet_count: int | None = None

    @classmethod
    def loading(cls) -> OperationStatus:
        return cls(kind=StatusKind.loading)

    @classmethod
    def failed(cls, message: str) -> OperationStatus:
        return cls(kind=StatusKind.error, message=message)

    @classmethod
    def succeeded(cls, message: str = "", sheet_count: int | None = None) -> OperationStatus:
        return cls(kind=StatusKind.success, message=message, sheet_count=sheet_count)

    @property
    def is_loading(self) -> bool:
        return self.kind is StatusKind.loading

    @property
    def is_error(self) -> bool:
        return self.kind is StatusKind.error

    @property
    def is_success(self) -> bool:
        return self.kind is StatusKind.success


@dataclass
class ImportResult:
    """Summary of one successful import, used for display and logging."""

    source: str = ""
    sha256: str = ""
    timestamp: str = ""
    sheet_names: list[str] = field(default_factory=list)
    client_count: int = 0

    @property
    def sheet_count(self) -> int:
        return len(self.sheet_names)

    @property
    def has_clients(self) -> bool:
        return CLIENTS_SHEET in self.sheet_names


# ── Configuration ───────────────────────────────────────────────


@dataclass(frozen=True)
class StoreConfig:
    """Where the local database lives and which collection/version it uses."""

    path: Path = Path("ExcelDataDB.sqlite3")
    collection: str = DEFAULT_DATASET_KEY
    version: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))
        if not isinstance(self.collection, str) or not _IDENTIFIER_RE.fullmatch(self.collection):
            raise ValueError(f"collection must be a plain identifier, got {self.collection!r}")
        if isinstance(self.version, bool) or not isinstance(self.version, Integral):
            raise TypeError("version must be an integer")
        if self.version < 1:
            raise ValueError("version must be >= 1")
