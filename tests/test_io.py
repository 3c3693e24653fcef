from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import numpy as np
import pytest

from sheetvault.errors import DecodeError, FileReadError
from sheetvault.io import (
    detect_format,
    dumps_payload,
    ensure_xlsx_suffix,
    loads_payload,
    read_input_bytes,
    write_bytes_atomic,
)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("data.csv", "csv"),
        ("DATA.CSV", "csv"),
        ("book.xlsx", "xlsx"),
        ("macro.xlsm", "xlsx"),
        ("legacy.xls", "xls"),
    ],
)
def test_detect_format_by_suffix(name: str, expected: str) -> None:
    assert detect_format(Path(name)) == expected


def test_detect_format_rejects_unknown_suffix() -> None:
    with pytest.raises(DecodeError, match="Unsupported file type"):
        detect_format(Path("notes.txt"))


def test_read_input_bytes_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileReadError, match="not found"):
        read_input_bytes(tmp_path / "nope.csv")


def test_read_input_bytes_rejects_directory(tmp_path: Path) -> None:
    folder = tmp_path / "fake.csv"
    folder.mkdir()

    with pytest.raises(FileReadError, match="not a file"):
        read_input_bytes(folder)


def test_read_input_bytes_returns_contents(tmp_path: Path) -> None:
    path = tmp_path / "a.csv"
    path.write_bytes(b"a,b\n1,2\n")

    assert read_input_bytes(path) == b"a,b\n1,2\n"


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("report", "report.xlsx"),
        ("report.xlsx", "report.xlsx"),
        ("  spaced  ", "spaced.xlsx"),
        ("report.csv", "report.csv.xlsx"),
    ],
)
def test_ensure_xlsx_suffix(name: str, expected: str) -> None:
    assert ensure_xlsx_suffix(name) == expected


def test_ensure_xlsx_suffix_rejects_blank_name() -> None:
    with pytest.raises(ValueError, match="empty"):
        ensure_xlsx_suffix("   ")


def test_write_bytes_atomic_creates_parents_and_leaves_no_tmp(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "out.xlsx"

    out = write_bytes_atomic(target, b"payload")

    assert out == target
    assert target.read_bytes() == b"payload"
    assert not (target.parent / "out.xlsx.tmp").exists()


def test_payload_round_trip_keeps_key_order_and_serializes_dates() -> None:
    data = {"z": 1, "a": datetime(2024, 1, 2, 3, 4, 5), "d": date(2024, 5, 6), "n": np.int64(3)}

    text = dumps_payload(data)
    restored = loads_payload(text)

    assert list(restored) == ["z", "a", "d", "n"]
    assert restored["a"] == "2024-01-02T03:04:05"
    assert restored["d"] == "2024-05-06"
    assert restored["n"] == 3


def test_dumps_payload_rejects_unknown_objects() -> None:
    class Unknown:
        pass

    with pytest.raises(TypeError, match="not JSON serializable"):
        dumps_payload({"x": Unknown()})
