"""Import pipeline tests: record layout, status transitions and rollback."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

import sheetvault.importer as importer_mod
import sheetvault.models as models_mod
from sheetvault.errors import DecodeError, FileReadError, KeyConflictError
from sheetvault.importer import ImportPipeline
from sheetvault.models import StatusKind, StoredRecord
from sheetvault.store import LocalStore


def _clients_and_orders(make_workbook) -> Path:  # type: ignore[no-untyped-def]
    return make_workbook(
        "clients.xlsx",
        {
            "Clients": [["eesnimi", "perenimi", "isikukood"], ["John", "Doe", "123"]],
            "Orders": [["id", "qty"], [1, 2], [2, 5]],
        },
    )


def test_import_splits_clients_and_sheets(store: LocalStore, make_workbook) -> None:  # type: ignore[no-untyped-def]
    pipeline = ImportPipeline(store)

    result = asyncio.run(pipeline.import_file(_clients_and_orders(make_workbook)))

    records = asyncio.run(store.records())
    assert [r.id for r in records] == ["client_1", "sheet_Orders"]
    client, orders = records
    assert client.type == "client"
    assert client.data == {"eesnimi": "John", "perenimi": "Doe", "isikukood": "123"}
    assert orders.sheet_name == "Orders"
    assert orders.data == [{"id": 1, "qty": 2}, {"id": 2, "qty": 5}]
    assert orders.timestamp == result.timestamp
    assert asyncio.run(store.get("excelData")) is None

    assert result.sheet_names == ["Clients", "Orders"]
    assert result.client_count == 1
    assert result.has_clients
    assert len(result.sha256) == 64
    assert pipeline.status.kind is StatusKind.success
    assert pipeline.status.sheet_count == 2
    assert pipeline.status.message == "Data imported successfully! 2 sheets found."


def test_import_replaces_previous_contents(store: LocalStore, make_workbook) -> None:  # type: ignore[no-untyped-def]
    asyncio.run(store.put(StoredRecord(id="excelData", data=[{"old": "row"}])))
    asyncio.run(store.put(StoredRecord(id="sheet_Stale", data=[])))

    asyncio.run(ImportPipeline(store).import_file(_clients_and_orders(make_workbook)))

    assert [r.id for r in asyncio.run(store.records())] == ["client_1", "sheet_Orders"]


def test_import_of_blank_workbook_stores_nothing(store: LocalStore, make_workbook) -> None:  # type: ignore[no-untyped-def]
    path = make_workbook("blank.xlsx", {"Empty": [], "Spaces": [[None, None]]})
    pipeline = ImportPipeline(store)

    result = asyncio.run(pipeline.import_file(path))

    assert result.sheet_count == 0
    assert pipeline.status.sheet_count == 0
    assert asyncio.run(store.records()) == []


def test_import_csv_uses_file_stem_as_sheet_name(store: LocalStore, tmp_path: Path) -> None:
    path = tmp_path / "people.csv"
    path.write_text("name;age\nAlice;30\n")

    asyncio.run(ImportPipeline(store, delimiter=";").import_file(path))

    record = asyncio.run(store.get("sheet_people"))
    assert record is not None
    assert record.data == [{"name": "Alice", "age": "30"}]


def test_import_csv_with_trailing_delimiters_keeps_every_row(
    store: LocalStore, tmp_path: Path
) -> None:
    path = tmp_path / "ragged.csv"
    path.write_text("name,age\nAlice,30,\nBob,\n")
    pipeline = ImportPipeline(store)

    asyncio.run(pipeline.import_file(path))

    record = asyncio.run(store.get("sheet_ragged"))
    assert record is not None
    assert record.data == [{"name": "Alice", "age": "30"}, {"name": "Bob", "age": ""}]
    assert pipeline.status.is_success


def test_decode_failure_sets_error_status_and_leaves_store_empty(
    store: LocalStore, tmp_path: Path
) -> None:
    asyncio.run(store.put(StoredRecord(id="sheet_Old", data=[])))
    bad = tmp_path / "broken.xlsx"
    bad.write_bytes(b"not a workbook")
    pipeline = ImportPipeline(store)

    with pytest.raises(DecodeError):
        asyncio.run(pipeline.import_file(bad))

    assert pipeline.status.is_error
    assert "Failed to parse Excel file" in pipeline.status.message
    assert asyncio.run(store.records()) == []
    assert pipeline.sheets == {}


def test_missing_input_file_is_reported(store: LocalStore, tmp_path: Path) -> None:
    pipeline = ImportPipeline(store)

    with pytest.raises(FileReadError, match="not found"):
        asyncio.run(pipeline.import_file(tmp_path / "nope.csv"))

    assert pipeline.status.is_error


def test_unsupported_extension_is_rejected(store: LocalStore, tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("a,b\n1,2\n")

    with pytest.raises(DecodeError, match="Unsupported file type"):
        asyncio.run(ImportPipeline(store).import_file(path))


def test_duplicate_key_rolls_back_whole_import(
    monkeypatch: pytest.MonkeyPatch, store: LocalStore, make_workbook  # type: ignore[no-untyped-def]
) -> None:
    path = make_workbook("dupes.xlsx", {"A": [["x"], [1]], "B": [["y"], [2]]})
    monkeypatch.setattr(models_mod, "sheet_key", lambda _name: "sheet_same")
    pipeline = ImportPipeline(store)

    with pytest.raises(KeyConflictError, match="sheet_same"):
        asyncio.run(pipeline.import_file(path))

    assert pipeline.status.is_error
    assert asyncio.run(store.records()) == []


def test_unexpected_failure_still_ends_in_error_status(
    monkeypatch: pytest.MonkeyPatch, store: LocalStore, tmp_path: Path
) -> None:
    path = tmp_path / "people.csv"
    path.write_text("name\nAlice\n")

    def _explode(*_args: object, **_kwargs: object) -> None:
        raise RuntimeError("decoder crashed")

    monkeypatch.setattr(importer_mod, "decode_table", _explode)
    pipeline = ImportPipeline(store)

    with pytest.raises(RuntimeError, match="decoder crashed"):
        asyncio.run(pipeline.import_file(path))

    assert pipeline.status.is_error
    assert pipeline.status.message == "Unexpected error: decoder crashed"
