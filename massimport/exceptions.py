"""massimport exceptions."""


class MassImportError(Exception):
    """Base exception for import errors."""
    pass


class InputError(MassImportError):
    """Raised when the parsed history file cannot be read or validated."""
    pass


class StorageError(MassImportError):
    """Raised when a store read or write fails."""
    pass


class StoreWriteError(StorageError):
    """Raised when a single-row insert or update fails."""

    def __init__(self, table: str, message: str):
        super().__init__(f"{table}: {message}")
        self.table = table


class UniqueConflictError(StoreWriteError):
    """Raised when an insert collides with an existing natural key."""
    pass


class FatalImportError(MassImportError):
    """Raised when the program skeleton cannot be created; aborts the run."""
    pass
