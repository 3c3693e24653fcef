"""CLI entry point for sheetvault."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from sheetvault import DEFAULT_DATASET_KEY, __version__
from sheetvault.clients import ClientDirectory
from sheetvault.editor import DatasetView
from sheetvault.errors import SheetVaultError
from sheetvault.exporter import DEFAULT_EXPORT_NAME, ExportPipeline
from sheetvault.importer import ImportPipeline
from sheetvault.logs import setup_logging
from sheetvault.models import RowRecord, StoreConfig, StoredRecord
from sheetvault.store import LocalStore

app = typer.Typer(
    name="sheetvault",
    help="sheetvault — Import spreadsheets into a local store, edit them, export them again.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

T = TypeVar("T")

DEFAULT_DB_PATH = Path("ExcelDataDB.sqlite3")
MAX_PREVIEW_ROWS = 50


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


def _db_option() -> Any:
    return typer.Option(
        DEFAULT_DB_PATH, "--db",
        envvar="SHEETVAULT_DB",
        help="Path of the local database file.",
    )


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sheetvault v{__version__}")
        raise typer.Exit()


def _store(db: Path) -> LocalStore:
    return LocalStore(StoreConfig(path=db))


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive *coro* to completion, mapping failures onto exit codes."""
    try:
        return asyncio.run(coro)
    except SheetVaultError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)
    except (ValueError, IndexError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)
    except Exception as exc:
        _err(f"Unexpected internal error: {exc}")
        raise typer.Exit(code=1)


def _parse_field_assignments(raw: list[str] | None, *, option: str) -> dict[str, str]:
    """Parse ``COLUMN=VALUE`` pairs; later pairs override earlier ones."""
    assignments: dict[str, str] = {}
    for item in raw or []:
        if "=" not in item:
            raise ValueError(f"Invalid {option} value: {item!r}  (expected COLUMN=VALUE)")
        column, value = item.split("=", 1)
        column = column.strip()
        if not column:
            raise ValueError(f"{option} entries must have a non-empty column name")
        assignments[column] = value
    return assignments


def _parse_cell_edits(raw: list[str] | None) -> list[tuple[int, str, str]]:
    """Parse ``ROW:COLUMN=VALUE`` edits with 1-based row numbers."""
    edits: list[tuple[int, str, str]] = []
    for item in raw or []:
        target, sep, value = item.partition("=")
        row_text, colon, column = target.partition(":")
        if not sep or not colon:
            raise ValueError(f"Invalid --set value: {item!r}  (expected ROW:COLUMN=VALUE)")
        try:
            row = int(row_text)
        except ValueError:
            raise ValueError(f"Invalid row number in --set: {row_text!r}") from None
        if row < 1:
            raise ValueError(f"Row numbers start at 1, got {row}")
        column = column.strip()
        if not column:
            raise ValueError("--set entries must have a non-empty column name")
        edits.append((row - 1, column, value))
    return edits


def _rows_table(
    title: str,
    rows: list[RowRecord],
    *,
    labels: list[str] | None = None,
    limit: int = MAX_PREVIEW_ROWS,
) -> RichTable:
    columns: list[str] = []
    for row in rows:
        for name in row:
            if name not in columns:
                columns.append(name)
    tbl = RichTable(title=title, show_lines=False)
    tbl.add_column("#" if labels is None else "Key", style="dim", justify="right")
    for name in columns:
        tbl.add_column(name)
    for idx, row in enumerate(rows[:limit], start=1):
        label = str(idx) if labels is None else labels[idx - 1]
        tbl.add_row(label, *(str(row.get(name, "")) for name in columns))
    if len(rows) > limit:
        tbl.caption = f"{len(rows) - limit} more rows not shown"
    return tbl


def _records_table(records: list[StoredRecord]) -> RichTable:
    tbl = RichTable(title="Stored records", show_lines=False)
    tbl.add_column("Key", style="bold")
    tbl.add_column("Type")
    tbl.add_column("Rows", justify="right")
    tbl.add_column("Timestamp")
    for record in records:
        kind = record.type or ("sheet" if record.sheet_name is not None else "dataset")
        tbl.add_row(record.id, kind, str(len(record.rows)), record.timestamp or "")
    return tbl


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log store and pipeline activity to stderr.",
    ),
) -> None:
    """sheetvault CLI."""
    setup_logging(verbose)


# ── import / export ──────────────────────────────────────────────


@app.command("import")
def import_(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to CSV, XLSX or XLS file.",
    ),
    db: Path = _db_option(),
    delimiter: str = typer.Option(",", "--delimiter", "-d", help="Delimiter for CSV input."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress informational output."),
) -> None:
    """Reset the store and import every sheet of a spreadsheet file."""
    echo = _printer(quiet)
    pipeline = ImportPipeline(_store(db), delimiter=delimiter)
    if not quiet:
        console.print(Panel(
            f"[bold]sheetvault[/bold] v{__version__}\nInput: {input_file}\nStore: {db}",
            title="Import", border_style="blue",
        ))

    result = _run(pipeline.import_file(input_file))

    echo(f"[green]Done[/green] — {pipeline.status.message}")
    if result.has_clients:
        echo(f"  {result.client_count} client records stored")
    for name in result.sheet_names:
        echo(_rows_table(name, pipeline.sheets[name], limit=10))


@app.command("export")
def export(
    name: str = typer.Option(DEFAULT_EXPORT_NAME, "--name", "-n", help="Output file name."),
    out_dir: Path = typer.Option(Path("."), "--out-dir", "-o", help="Output directory."),
    db: Path = _db_option(),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress informational output."),
) -> None:
    """Export the default dataset to an XLSX workbook."""
    echo = _printer(quiet)
    pipeline = ExportPipeline(_store(db))
    path = _run(pipeline.export_dataset(name, out_dir))
    echo(f"[green]Done[/green] — {pipeline.status.message}")
    echo(f"  Workbook -> {path}")


# ── default dataset ──────────────────────────────────────────────


@app.command("load-csv")
def load_csv(
    input_file: Path = typer.Option(..., "--input", "-i", help="Path to a CSV file."),
    db: Path = _db_option(),
    delimiter: str = typer.Option(",", "--delimiter", "-d", help="CSV delimiter."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress informational output."),
) -> None:
    """Replace the default dataset with the rows of a CSV file."""
    echo = _printer(quiet)
    view = DatasetView(_store(db))
    rows = _run(view.import_csv(input_file, delimiter=delimiter))
    echo(f"[green]Done[/green] — {len(rows)} rows saved as {DEFAULT_DATASET_KEY}")


@app.command("edit")
def edit(
    cell_edits: list[str] = typer.Option(
        ..., "--set", "-s",
        help="Cell edit ROW:COLUMN=VALUE (1-based row). Repeatable.",
    ),
    db: Path = _db_option(),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress informational output."),
) -> None:
    """Change cells of the default dataset and save it back."""
    echo = _printer(quiet)
    try:
        edits = _parse_cell_edits(cell_edits)
    except ValueError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    view = DatasetView(_store(db))

    async def _edit() -> int:
        await view.load()
        for row_index, column, value in edits:
            view.edit_cell(row_index, column, value)
        await view.save()
        return len(edits)

    count = _run(_edit())
    echo(f"[green]Done[/green] — {count} cell(s) updated, {len(view.rows)} rows saved")


@app.command("show")
def show(
    key: str | None = typer.Option(None, "--key", "-k", help="Show the rows stored under KEY."),
    db: Path = _db_option(),
) -> None:
    """List stored records, or render one record's rows."""
    store = _store(db)
    if key is None:
        records = _run(store.records())
        if not records:
            console.print("[yellow]![/yellow] The store is empty.")
            return
        console.print(_records_table(records))
        return

    record = _run(store.get(key))
    if record is None:
        _err(f"No record stored under key {key!r}")
        raise typer.Exit(code=2)
    console.print(_rows_table(key, record.rows))


# ── clients ──────────────────────────────────────────────────────


@app.command("clients")
def clients(db: Path = _db_option()) -> None:
    """List the client records of the last import."""
    records = _run(ClientDirectory(_store(db)).entries())
    if not records:
        console.print("[yellow]![/yellow] No client records stored.")
        return
    tbl = _rows_table(
        "Clients",
        [row for record in records for row in record.rows],
        labels=[record.id for record in records],
    )
    console.print(tbl)


@app.command("client-set")
def client_set(
    key: str = typer.Argument(..., help="Client key, e.g. client_1."),
    fields: list[str] = typer.Option(
        ..., "--field", "-f",
        help="Field change COLUMN=VALUE. Repeatable.",
    ),
    db: Path = _db_option(),
) -> None:
    """Update fields of one client record."""
    try:
        changes = _parse_field_assignments(fields, option="--field")
    except ValueError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)
    record = _run(ClientDirectory(_store(db)).update(key, changes))
    console.print(f"[green]Done[/green] — {record.id} updated")


@app.command("client-delete")
def client_delete(
    key: str = typer.Argument(..., help="Client key, e.g. client_1."),
    db: Path = _db_option(),
) -> None:
    """Delete one client record."""
    _run(ClientDirectory(_store(db)).delete(key))
    console.print(f"[green]Done[/green] — {key} deleted")


@app.command("reset")
def reset(db: Path = _db_option()) -> None:
    """Delete and recreate the local database."""
    _run(_store(db).reset())
    console.print(f"[green]Done[/green] — {db} reset")
