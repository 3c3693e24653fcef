from __future__ import annotations

from pathlib import Path

import pytest

from sheetvault.models import (
    ImportResult,
    OperationStatus,
    StatusKind,
    StoreConfig,
    StoredRecord,
    client_key,
    sheet_key,
)


def test_client_key_is_one_based() -> None:
    assert client_key(1) == "client_1"
    assert client_key(12) == "client_12"
    with pytest.raises(ValueError):
        client_key(0)
    with pytest.raises(ValueError):
        client_key(True)  # type: ignore[arg-type]


def test_sheet_key_prefixes_name() -> None:
    assert sheet_key("Orders") == "sheet_Orders"


def test_client_record_shape() -> None:
    record = StoredRecord.client(1, {"eesnimi": "John"})

    assert record.to_dict() == {"id": "client_1", "data": {"eesnimi": "John"}, "type": "client"}
    assert record.is_client
    assert record.rows == [{"eesnimi": "John"}]


def test_sheet_record_round_trips_through_dict() -> None:
    record = StoredRecord.sheet("Orders", [{"id": 1}], "2024-01-01T00:00:00+00:00")

    payload = record.to_dict()
    restored = StoredRecord.from_dict(payload)

    assert payload["sheetName"] == "Orders"
    assert restored == record
    assert not restored.is_client


def test_record_rows_copies_input_rows() -> None:
    rows = [{"a": "1"}]
    record = StoredRecord.default_dataset(rows, "ts")

    rows[0]["a"] = "changed"

    assert record.data == [{"a": "1"}]
    assert record.id == "excelData"


def test_dataset_record_can_use_another_key() -> None:
    record = StoredRecord.default_dataset([{"a": 1}], "ts", key="sheet_Orders")

    assert record.id == "sheet_Orders"
    assert record.type is None and record.sheet_name is None


def test_record_requires_non_empty_id() -> None:
    with pytest.raises(ValueError, match="id"):
        StoredRecord(id="")
    with pytest.raises(TypeError):
        StoredRecord.from_dict(["not", "a", "mapping"])  # type: ignore[arg-type]


def test_record_rows_ignores_scalar_data() -> None:
    assert StoredRecord(id="x", data="text").rows == []


def test_operation_status_helpers() -> None:
    assert OperationStatus().kind is StatusKind.idle
    assert OperationStatus.loading().is_loading
    failed = OperationStatus.failed("boom")
    assert failed.is_error and failed.message == "boom"
    done = OperationStatus.succeeded("ok", sheet_count=0)
    assert done.is_success and done.sheet_count == 0


def test_import_result_counts_sheets() -> None:
    result = ImportResult(sheet_names=["Clients", "Orders"], client_count=3)

    assert result.sheet_count == 2
    assert result.has_clients


def test_store_config_validates_fields(tmp_path: Path) -> None:
    config = StoreConfig(path=str(tmp_path / "db.sqlite3"))  # type: ignore[arg-type]
    assert isinstance(config.path, Path)

    with pytest.raises(ValueError, match="collection"):
        StoreConfig(collection='bad"name')
    with pytest.raises(ValueError, match="version"):
        StoreConfig(version=0)
    with pytest.raises(TypeError, match="version"):
        StoreConfig(version=1.5)  # type: ignore[arg-type]
