"""Error taxonomy for metarekordfixer.

Every error raised by the package derives from :class:`MrfError` so callers at
the CLI boundary can catch one type. Connection errors are classified so the
user sees what actually went wrong with the library file.

:class:`OperationCancelled` is not an :class:`MrfError`; ``except MrfError``
does not catch a cancelled batch.
"""

from __future__ import annotations
from typing import Any


class MrfError(Exception):
    """Base exception for all metarekordfixer errors."""

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ConfigError(MrfError):
    """Settings file could not be read or written."""


# --- Database connection ---------------------------------------------------

class DatabaseError(MrfError):
    """Base class for database access problems."""


class DatabaseNoPathError(DatabaseError):
    def __init__(self) -> None:
        super().__init__("Database path is not configured")


class DatabaseFileMissingError(DatabaseError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Database file does not exist: {path}")
        self.path = path


class DatabaseZeroLengthError(DatabaseError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Database file is empty: {path}")
        self.path = path


class DatabaseFormatError(DatabaseError):
    """File is not a database, or the key does not decrypt it."""

    def __init__(self, path: str, detail: str = "") -> None:
        msg = f"File is not a valid Rekordbox database: {path}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)
        self.path = path


class DatabaseTablesMissingError(DatabaseError):
    def __init__(self, path: str, missing: Any = ()) -> None:
        names = ", ".join(missing) if missing else "unknown"
        super().__init__(f"Database is missing expected tables ({names}): {path}")
        self.path = path
        self.missing = list(missing)


class DatabaseConnectError(DatabaseError):
    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Could not open database {path}: {detail}")
        self.path = path


class DatabaseNotConnectedError(DatabaseError):
    def __init__(self) -> None:
        super().__init__("Database is not connected")


class DatabaseFinalizedError(DatabaseError):
    """Raised when a finalized manager is asked to reconnect."""

    def __init__(self) -> None:
        super().__init__("Database manager was finalized; create a new instance")


class TransactionError(DatabaseError):
    """Begin/commit/rollback called in the wrong state."""


class QueryError(DatabaseError):
    """A statement failed inside the database engine."""

    def __init__(self, sql: str, detail: str) -> None:
        super().__init__(f"Query failed: {detail}")
        self.sql = sql
        self.detail = detail


class TracksNotFoundError(DatabaseError):
    def __init__(self, where: str) -> None:
        super().__init__(f"No tracks found in database for {where}")
        self.where = where


# --- Files -----------------------------------------------------------------

class FolderNotFoundError(MrfError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Folder does not exist: {path}")
        self.path = path


class DirectoryNotReadableError(MrfError):
    def __init__(self, path: str, detail: str = "") -> None:
        msg = f"No read access to folder: {path}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)
        self.path = path


class NoFilesError(MrfError):
    def __init__(self, folder: str, extensions: Any = ()) -> None:
        exts = ", ".join(extensions) if extensions else "any"
        super().__init__(f"No files with extensions [{exts}] found in {folder}")
        self.folder = folder
        self.extensions = list(extensions)


class MetadataReadError(MrfError):
    def __init__(self, path: str, detail: str = "") -> None:
        msg = f"Could not read metadata from {path}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.path = path


# --- Validation ------------------------------------------------------------

class ValidationError(MrfError):
    """First violated preflight rule."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


# --- Cancellation ----------------------------------------------------------

class OperationCancelled(Exception):
    """Batch stopped by the user; ``summary`` holds the partial counts."""

    def __init__(self, summary: Any = None) -> None:
        super().__init__("Operation cancelled")
        self.summary = summary


__all__ = [
    "MrfError",
    "ConfigError",
    "DatabaseError",
    "DatabaseNoPathError",
    "DatabaseFileMissingError",
    "DatabaseZeroLengthError",
    "DatabaseFormatError",
    "DatabaseTablesMissingError",
    "DatabaseConnectError",
    "DatabaseNotConnectedError",
    "DatabaseFinalizedError",
    "TransactionError",
    "QueryError",
    "TracksNotFoundError",
    "FolderNotFoundError",
    "DirectoryNotReadableError",
    "NoFilesError",
    "MetadataReadError",
    "ValidationError",
    "OperationCancelled",
]
