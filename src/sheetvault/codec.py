"""Tabular codec — spreadsheet bytes to row records and back."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time
from io import BytesIO, StringIO
from typing import Any

import pandas as pd
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from sheetvault.errors import DecodeError, EmptyExportError
from sheetvault.io import FileFormat
from sheetvault.models import CellValue, Dataset, RowRecord

logger = logging.getLogger(__name__)

CSV_ENCODINGS = ("utf-8-sig", "utf-8", "latin-1")

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

_AUTO_WIDTH_SAMPLE_ROWS = 300

# ── Cell normalisation ──────────────────────────────────────────


def normalize_cell(value: Any) -> CellValue:
    """Map a raw decoded cell onto a :data:`CellValue`.

    ``None``, NaN and ``pd.NA`` become ``""``; numpy scalars become Python
    scalars; dates and times become ISO-8601 strings.
    """
    if value is None:
        return ""
    if isinstance(value, (str, bool)):
        return value
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (int, float)):
        return value
    item = getattr(value, "item", None)
    if callable(item):
        converted = item()
        if converted is not value:
            return normalize_cell(converted)
    return str(value)


def is_blank_cell(value: Any) -> bool:
    return normalize_cell(value) == ""


def header_name(value: Any, index: int) -> str:
    """Return the column name for a header cell, ``Column<index>`` when blank."""
    text = str(normalize_cell(value)).strip()
    return text or f"Column{index}"


def records_from_rows(
    rows: Sequence[Sequence[Any]], *, trim_values: bool = False
) -> list[RowRecord]:
    """Zip the first row (headers) against every following row by position."""
    if not rows:
        return []
    headers = [header_name(cell, idx) for idx, cell in enumerate(rows[0])]
    records: list[RowRecord] = []
    for row in rows[1:]:
        record: RowRecord = {}
        for idx, name in enumerate(headers):
            value = normalize_cell(row[idx]) if idx < len(row) else ""
            if trim_values and isinstance(value, str):
                value = value.strip()
            record[name] = value
        records.append(record)
    return records


# ── Decoding ────────────────────────────────────────────────────


def _decode_text(data: bytes) -> str:
    last_exc: UnicodeDecodeError | None = None
    for encoding in CSV_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as exc:
            last_exc = exc
    raise DecodeError(
        f"Could not decode delimited file (tried {', '.join(CSV_ENCODINGS)})"
    ) from last_exc


def decode_delimited(
    data: bytes, *, delimiter: str = ",", sheet_name: str = "Sheet1"
) -> Dataset:
    """Decode delimited text into a single-sheet dataset.

    The first non-empty line holds the headers; every following non-empty
    line is one row. Lines are split literally on *delimiter* (quotes are
    ordinary characters), fields beyond the header width are dropped and
    short rows are padded. Headers and values are trimmed.
    """
    if not data.strip():
        return {}

    text = _decode_text(data)
    header_line = next((line for line in text.splitlines() if line.strip()), "")
    width = len(header_line.split(delimiter))
    try:
        frame = pd.read_csv(
            StringIO(text),
            header=None,
            dtype="string",
            sep=delimiter,
            engine="python",
            quoting=csv.QUOTE_NONE,
            keep_default_na=False,
            na_filter=False,
            skip_blank_lines=True,
            on_bad_lines=lambda fields: fields[:width],
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as exc:
        raise DecodeError(f"Failed to parse delimited file: {exc}") from exc

    rows = [list(row) for row in frame.itertuples(index=False, name=None)]
    records = records_from_rows(rows, trim_values=True)
    if not records:
        logger.info("Skipping sheet without data rows: %s", sheet_name)
        return {}
    return {sheet_name: records}


def decode_workbook(data: bytes, *, engine: str = "openpyxl") -> Dataset:
    """Decode every sheet of a workbook, in file order.

    Entirely blank rows are dropped before the header row is chosen; sheets
    with no data rows left are omitted from the result.
    """
    try:
        workbook = pd.ExcelFile(BytesIO(data), engine=engine)
    except ImportError as exc:
        raise DecodeError(
            f"Reading this workbook requires the {engine!r} package "
            f"(pip install {engine}) or conversion to .xlsx"
        ) from exc
    except Exception as exc:
        raise DecodeError(f"Failed to parse Excel file: {exc}") from exc

    sheets: Dataset = {}
    with workbook:
        for name in workbook.sheet_names:
            try:
                frame = workbook.parse(name, header=None, dtype=object, keep_default_na=False)
            except Exception as exc:
                raise DecodeError(f"Failed to parse sheet {name!r}: {exc}") from exc
            rows = [
                list(row)
                for row in frame.itertuples(index=False, name=None)
                if not all(is_blank_cell(cell) for cell in row)
            ]
            records = records_from_rows(rows)
            if not records:
                logger.info("Skipping empty sheet: %s", name)
                continue
            sheets[str(name)] = records
    return sheets


def decode_table(
    data: bytes,
    fmt: FileFormat,
    *,
    sheet_name: str = "Sheet1",
    delimiter: str = ",",
) -> Dataset:
    """Decode *data* of format *fmt* into an ordered sheet-name → rows map."""
    if fmt == "csv":
        return decode_delimited(data, delimiter=delimiter, sheet_name=sheet_name)
    if fmt == "xlsx":
        return decode_workbook(data, engine="openpyxl")
    if fmt == "xls":
        return decode_workbook(data, engine="xlrd")
    raise DecodeError(f"Unsupported format: {fmt!r}")


# ── Encoding ────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            width = max(width, len(str(row[0].value or "")))
        ws.column_dimensions[letter].width = min(width + 4, 30)


def _write_cell(ws: Worksheet, row: int, column: int, value: Any) -> None:
    value = normalize_cell(value)
    if value == "":
        return
    if isinstance(value, str):
        value = ILLEGAL_CHARACTERS_RE.sub("", value)
    cell = ws.cell(row=row, column=column, value=value)
    if isinstance(value, str) and value.startswith("="):
        # keep the text literal instead of letting openpyxl store a formula
        cell.data_type = "s"


def encode_records(
    records: Sequence[RowRecord],
    *,
    columns: Iterable[str] | None = None,
    sheet_title: str = "Sheet1",
) -> bytes:
    """Serialize *records* into a single-sheet XLSX workbook.

    Column order comes from *columns* or, by default, from the key order of
    the first record. Keys missing from a record yield blank cells.

    Raises
    ------
    EmptyExportError
        If *records* is empty.
    """
    if not records:
        raise EmptyExportError("No data available to export")
    col_names = list(columns) if columns is not None else list(records[0].keys())

    wb = Workbook()
    ws = wb.active
    if ws is None:
        ws = wb.create_sheet()
    ws.title = sheet_title

    for c_idx, name in enumerate(col_names, 1):
        _write_cell(ws, 1, c_idx, name)
    for r_idx, record in enumerate(records, 2):
        for c_idx, name in enumerate(col_names, 1):
            _write_cell(ws, r_idx, c_idx, record.get(name, ""))

    _style_header(ws, len(col_names))
    ws.freeze_panes = "A2"
    ws.auto_filter.ref = ws.dimensions
    _auto_width(ws)

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
