from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from openpyxl import Workbook

from sheetvault.models import StoreConfig
from sheetvault.store import LocalStore

WorkbookFactory = Callable[[str, dict[str, list[list[object]]]], Path]


@pytest.fixture
def store(tmp_path: Path) -> LocalStore:
    return LocalStore(StoreConfig(path=tmp_path / "store.sqlite3"))


@pytest.fixture
def make_workbook(tmp_path: Path) -> WorkbookFactory:
    """Write an XLSX file with one worksheet per entry, rows appended in order."""

    def _make(name: str, sheets: dict[str, list[list[object]]]) -> Path:
        wb = Workbook()
        default = wb.active
        if default is not None:
            wb.remove(default)
        for title, rows in sheets.items():
            ws = wb.create_sheet(title=title)
            for row in rows:
                ws.append(row)
        path = tmp_path / name
        wb.save(path)
        return path

    return _make
