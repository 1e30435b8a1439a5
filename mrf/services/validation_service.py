"""Preflight validation run before any operation that writes to the library.

:meth:`Validator.validate` checks, in order:

1. the module's fields that are triggered by the action
2. database path, directory write access and (optionally) a test connection
3. the module's input folder (readable, contains matching files)
4. creates a timestamped database backup

The first failing rule raises :class:`~mrf.errors.ValidationError` (or a
classified database/file error); nothing is collected.
"""

from __future__ import annotations
import logging
import os
from datetime import datetime
from typing import Optional

import click

from ..config_types import DatabaseRequirements, FieldCfg, ModuleCfg
from ..db.manager import DatabaseManager
from ..errors import (
    DirectoryNotReadableError,
    FolderNotFoundError,
    MrfError,
    NoFilesError,
    ValidationError,
)
from .reconcile_service import DEFAULT_EXTENSIONS
from ..utils.fs import (
    directory_exists,
    file_exists,
    get_files_in_folder,
    is_dir_writable,
    parse_extensions_csv,
)
from ..utils.logging_helpers import ErrorContext, ErrorReporter, Severity

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"

_REQUIRED_MESSAGES = {
    "folder": "Please select a folder",
    "playlist": "Please select a playlist",
    "date": "Please enter a valid date (YYYY-MM-DD)",
}


def is_valid_date_format(value: str) -> bool:
    try:
        datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return False
    return True


def _empty(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class Validator:
    """Preflight checks for one module and one database manager.

    The database manager is finalized by the backup step; the caller starts
    the actual operation on ``dbm.clone()``.
    """

    def __init__(
        self,
        module_name: str,
        module_cfg: ModuleCfg,
        dbm: Optional[DatabaseManager],
        requirements: DatabaseRequirements,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.module_name = module_name
        self.module_cfg = module_cfg
        self.dbm = dbm
        self.requirements = requirements
        self.reporter = reporter or ErrorReporter()
        self.backup_path: Optional[str] = None

    def _fail(self, exc: MrfError, operation: str) -> MrfError:
        self.reporter.report(
            ErrorContext(self.module_name, operation, Severity.CRITICAL, recoverable=False),
            exc.message,
        )
        return exc

    def validate(self, action: str) -> None:
        logger.info(f"Validating {click.style(self.module_name, fg='cyan')} for action '{action}'")
        self.validate_fields(action)

        if not self.requirements.needs_database:
            return
        self.validate_database()
        self.validate_input_files()
        self.backup_database()

    # --- fields ----------------------------------------------------------

    def validate_fields(self, action: str) -> None:
        for f in self.module_cfg.fields:
            if not f.triggered_by(action):
                continue
            if not self.module_cfg.is_active(f):
                logger.debug(f"Skipping inactive field {f.key}")
                continue
            self._validate_field(f)

    def _validate_field(self, f: FieldCfg) -> None:
        value = f.value

        if f.field_type == "date" and not _empty(value) and not is_valid_date_format(value.strip()):
            raise self._fail(ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", f.key),
                             "validate_fields")

        if f.required and _empty(value):
            msg = _REQUIRED_MESSAGES.get(f.field_type, f"Field '{f.key}' is required")
            raise self._fail(ValidationError(msg, f.key), "validate_fields")

        if _empty(value):
            return
        value = value.strip()

        vtype = (f.validation_type or "none").strip()
        if vtype == "exists":
            exists = directory_exists(value) if f.field_type == "folder" else file_exists(value)
            if not exists:
                kind = "Folder" if f.field_type == "folder" else "File"
                raise self._fail(
                    ValidationError(f"{kind} does not exist: {os.path.basename(value) or value}", f.key),
                    "validate_fields")
        elif vtype == "exists | write":
            if not directory_exists(value):
                raise self._fail(
                    ValidationError(f"Folder does not exist: {os.path.basename(value) or value}", f.key),
                    "validate_fields")
            try:
                is_dir_writable(value)
            except OSError as e:
                raise self._fail(ValidationError(f"No write access to folder {value}: {e}", f.key),
                                 "validate_fields") from e
        elif vtype == "valid_date":
            if not is_valid_date_format(value):
                raise self._fail(ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", f.key),
                                 "validate_fields")
        elif vtype == "filled":
            pass  # non-empty already established above

    # --- database --------------------------------------------------------

    def validate_database(self) -> None:
        dbm = self.dbm
        path = dbm.database_path if dbm is not None else ""
        if _empty(path):
            raise self._fail(ValidationError("Database path is not set", "databasePath"), "validate_db_path")
        if not file_exists(path):
            raise self._fail(ValidationError(f"Database file does not exist: {path}", "databasePath"),
                             "validate_db_file")
        if os.path.getsize(path) == 0:
            raise self._fail(ValidationError(f"Database file is empty: {path}", "databasePath"),
                             "validate_db_file")

        db_dir = os.path.dirname(os.path.abspath(path))
        try:
            is_dir_writable(db_dir)
        except (OSError, FolderNotFoundError) as e:
            raise self._fail(ValidationError(f"No write access to database folder {db_dir}: {e}", "databasePath"),
                             "validate_db_access") from e

        if not self.requirements.needs_immediate_access:
            probe = dbm.clone()
            try:
                probe.connect()
            except MrfError as e:
                raise self._fail(e, "validate_db_connection")
            finally:
                probe.finalize()

    # --- input files -----------------------------------------------------

    def _source_folder(self) -> str:
        cfg = self.module_cfg
        for key in ("sourceFolder", "folder"):
            f = cfg.get_field(key)
            if f is not None and cfg.is_active(f):
                return f.value.strip()
        for f in cfg.fields:
            if f.field_type == "folder" and cfg.is_active(f):
                return f.value.strip()
        return ""

    def validate_input_files(self) -> None:
        folder = self._source_folder()
        if not folder:
            return
        recursive = self.module_cfg.get_bool("recursive")
        extensions = parse_extensions_csv(self.module_cfg.get("extensions"))
        if not extensions and self.module_cfg.get_field("extensions") is not None:
            # same fallback as the metadata sync
            extensions = list(DEFAULT_EXTENSIONS)
        try:
            files, skipped = get_files_in_folder(folder, extensions, recursive)
        except (DirectoryNotReadableError, FolderNotFoundError) as e:
            raise self._fail(e, "validate_input_files")
        for d in skipped:
            logger.warning(f"Folder {d}: no read access, skipped")
        if extensions and not files:
            raise self._fail(NoFilesError(folder, extensions), "validate_input_files")

    # --- backup ----------------------------------------------------------

    def backup_database(self) -> str:
        try:
            self.backup_path = self.dbm.backup_database()
        except (MrfError, OSError) as e:
            msg = getattr(e, "message", None) or str(e)
            raise self._fail(ValidationError(f"Database backup failed: {msg}", "databasePath"),
                             "backup_database") from e
        return self.backup_path


__all__ = ["Validator", "is_valid_date_format"]
