"""sheetvault — Import spreadsheets into a local store, edit them, export them again."""

__version__ = "0.2.0"

DEFAULT_DATASET_KEY = "excelData"
"""Key of the singleton default dataset record used by the editor and exporter."""

CLIENTS_SHEET = "Clients"
"""Sheet whose rows are stored as individually keyed client records."""

XLSX_SUFFIX = ".xlsx"
