"""I/O helpers — read input files, detect formats, write outputs, JSON payloads."""

from __future__ import annotations

import json
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Literal

from sheetvault import XLSX_SUFFIX
from sheetvault.errors import DecodeError, FileReadError

FileFormat = Literal["csv", "xlsx", "xls"]

_FORMATS_BY_SUFFIX: dict[str, FileFormat] = {
    ".csv": "csv",
    ".xlsx": "xlsx",
    ".xlsm": "xlsx",
    ".xltx": "xlsx",
    ".xltm": "xlsx",
    ".xls": "xls",
}

# ── Reading ─────────────────────────────────────────────────────


def detect_format(path: Path) -> FileFormat:
    """Return the tabular format implied by the extension of *path*.

    Raises
    ------
    DecodeError
        If the extension is not a supported spreadsheet type.
    """
    suffix = Path(path).suffix.lower()
    try:
        return _FORMATS_BY_SUFFIX[suffix]
    except KeyError:
        raise DecodeError(
            f"Unsupported file type: {suffix!r}. Use .csv, .xlsx, or .xls"
        ) from None


def read_input_bytes(path: Path) -> bytes:
    """Read the whole of *path* as bytes.

    Raises
    ------
    FileReadError
        If *path* is missing, is a directory, or cannot be read.
    """
    path = Path(path)
    if not path.exists():
        raise FileReadError(f"Input file not found: {path}")
    if path.is_dir():
        raise FileReadError(f"Input path is a directory, not a file: {path}")
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FileReadError(f"Failed to read the file {path}: {exc}") from exc


# ── Writing ─────────────────────────────────────────────────────


def ensure_xlsx_suffix(file_name: str) -> str:
    """Append ``.xlsx`` to *file_name* unless it already ends with it."""
    name = file_name.strip()
    if not name:
        raise ValueError("file name must not be empty")
    if not name.endswith(XLSX_SUFFIX):
        name += XLSX_SUFFIX
    return name


def write_bytes_atomic(path: Path, payload: bytes) -> Path:
    """Write *payload* to *path* through a temporary sibling file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_bytes(payload)
    tmp_path.replace(path)
    return path


# ── JSON payloads ───────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps_payload(data: Any) -> str:
    """Serialize *data* to compact JSON, keeping mapping key order."""
    return json.dumps(data, ensure_ascii=False, default=_json_default)


def loads_payload(text: str) -> Any:
    return json.loads(text)
