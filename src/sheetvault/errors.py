"""Error hierarchy surfaced to the CLI and to pipeline status flags."""

from __future__ import annotations


class SheetVaultError(Exception):
    """Base class for every failure an operation reports to its caller."""


class StorageError(SheetVaultError):
    pass


class StorageOpenError(StorageError):
    """The database could not be opened (I/O, corrupt file, newer version)."""


class MissingCollectionError(StorageOpenError):
    """The database opened but the configured collection does not exist."""


class StorageUpgradeError(StorageError):
    pass


class StorageTransactionError(StorageError):
    pass


class KeyConflictError(StorageTransactionError):
    """``add`` was called for a key that is already stored."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Key already exists in the store: {key!r}")
        self.key = key


class DecodeError(SheetVaultError):
    pass


class EmptyExportError(SheetVaultError):
    pass


class FileReadError(SheetVaultError):
    pass


class RecordNotFoundError(SheetVaultError):
    def __init__(self, key: str) -> None:
        super().__init__(f"No record stored under key {key!r}")
        self.key = key


class ViewStateError(SheetVaultError):
    """An editor operation was attempted in a state that does not allow it."""
