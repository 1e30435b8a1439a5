"""Connection manager for the encrypted Rekordbox library database.

One :class:`DatabaseManager` owns one SQLCipher connection. All public methods
take the same re-entrant lock, so a background worker can run statements while
another thread reads :attr:`DatabaseManager.state`.

A manager is meant for one logical operation: once :meth:`finalize` has run the
instance refuses to reconnect. Use :meth:`clone` for the next operation.
"""

from __future__ import annotations
import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

import click
from sqlcipher3 import dbapi2 as sqlcipher

from ..errors import (
    DatabaseConnectError,
    DatabaseFileMissingError,
    DatabaseFinalizedError,
    DatabaseFormatError,
    DatabaseNoPathError,
    DatabaseNotConnectedError,
    DatabaseTablesMissingError,
    DatabaseZeroLengthError,
    MrfError,
    QueryError,
    TransactionError,
)
from ..utils.fs import copy_file
from ..utils.logging_helpers import ErrorReporter, Severity

logger = logging.getLogger(__name__)

# Public key shipped with every Rekordbox 6/7 install (also used by pyrekordbox).
DEFAULT_DB_KEY = "402fd482c38817c35ffa8ffb8c7d93143b749e7d315df7a81732a1ff43608497"
KEY_ENV_VAR = "MRF_DB_KEY"

CIPHER_PRAGMAS = (
    "PRAGMA cipher_compatibility = 3",
    "PRAGMA cipher_page_size = 4096",
)
DURABILITY_PRAGMAS = (
    "PRAGMA journal_mode = DELETE",
    "PRAGMA synchronous = FULL",
)
REQUIRED_TABLES = (
    "djmdContent",
    "djmdArtist",
    "djmdAlbum",
    "djmdPlaylist",
    "djmdSongPlaylist",
    "djmdCue",
    "agentRegistry",
)
BACKUP_NAME_FORMAT = "master_backup_%Y-%m-%d@%H_%M_%S.db"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    FINALIZED = "finalized"


def resolve_key(key: str | None = None) -> str:
    return key or os.environ.get(KEY_ENV_VAR) or DEFAULT_DB_KEY


def open_cipher_connection(path: str | Path, key: str, driver: Any = None):
    """Open ``path`` with SQLCipher and apply the key and cipher settings.

    Nothing is read from the file here; SQLCipher only validates the key on
    the first real statement. Shared by :class:`DatabaseManager` and the test
    fixture that builds encrypted databases.
    """
    drv = driver or sqlcipher
    conn = drv.connect(str(path), isolation_level=None, check_same_thread=False)
    quoted = key.replace("'", "''")
    conn.execute(f"PRAGMA key = '{quoted}'")
    for stmt in CIPHER_PRAGMAS:
        conn.execute(stmt)
    return conn


def _classify_open_error(path: str, exc: Exception) -> MrfError:
    msg = str(exc)
    lower = msg.lower()
    if "file is not a database" in lower or "file is encrypted" in lower:
        return DatabaseFormatError(path, msg)
    if "no such table" in lower:
        return DatabaseTablesMissingError(path, ())
    return DatabaseConnectError(path, msg)


class DatabaseManager:
    def __init__(
        self,
        path: str | Path | None,
        key: str | None = None,
        driver: Any = None,
        reporter: ErrorReporter | None = None,
    ):
        self._path = str(path) if path else ""
        self._key = resolve_key(key)
        self._driver = driver or sqlcipher
        self._reporter = reporter
        self._lock = threading.RLock()
        self._conn = None
        self._state = ConnectionState.DISCONNECTED

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.finalize()

    def __repr__(self) -> str:
        return f"DatabaseManager(path={self._path!r}, state={self._state.value})"

    # --- state -----------------------------------------------------------

    @property
    def database_path(self) -> str:
        return self._path

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def in_transaction(self) -> bool:
        with self._lock:
            return self._conn is not None and bool(self._conn.in_transaction)

    def clone(self) -> "DatabaseManager":
        """Fresh, disconnected manager for the same file and key."""
        return DatabaseManager(self._path, key=self._key, driver=self._driver, reporter=self._reporter)

    # --- connection ------------------------------------------------------

    def _check_file(self) -> None:
        if not self._path:
            raise DatabaseNoPathError()
        try:
            size = os.stat(self._path).st_size
        except OSError:
            raise DatabaseFileMissingError(self._path)
        if size == 0:
            raise DatabaseZeroLengthError(self._path)

    def connect(self) -> None:
        """Open the encrypted database; no-op when already connected.

        Raises one of the classified :mod:`mrf.errors` database errors when
        the path, the file, the key or the schema is wrong.
        """
        with self._lock:
            if self._state is ConnectionState.CONNECTED:
                return
            if self._state is ConnectionState.FINALIZED:
                raise DatabaseFinalizedError()
            try:
                self._check_file()
                conn = self._open()
            except MrfError as e:
                self._report(e, "connect")
                raise
            self._conn = conn
            self._state = ConnectionState.CONNECTED
            logger.debug(f"Connected to {click.style(self._path, fg='yellow')}")

    def _open(self):
        try:
            conn = open_cipher_connection(self._path, self._key, self._driver)
        except self._driver.Error as e:
            raise _classify_open_error(self._path, e) from e
        try:
            conn.row_factory = self._driver.Row
            rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
            present = {r[0] for r in rows}
            missing = [t for t in REQUIRED_TABLES if t not in present]
            if missing:
                raise DatabaseTablesMissingError(self._path, missing)
            for stmt in DURABILITY_PRAGMAS:
                conn.execute(stmt).fetchall()
        except self._driver.Error as e:
            conn.close()
            raise _classify_open_error(self._path, e) from e
        except MrfError:
            conn.close()
            raise
        return conn

    def ensure_connected(self, lazy: bool = False) -> None:
        """Connect if needed; with ``lazy`` only check, never open."""
        with self._lock:
            if self._state is ConnectionState.CONNECTED:
                return
            if lazy:
                raise DatabaseNotConnectedError()
            self.connect()

    # --- statements ------------------------------------------------------

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a mutating statement and return the affected row count."""
        with self._lock:
            self.ensure_connected()
            try:
                cur = self._conn.execute(sql, tuple(params))
            except self._driver.Error as e:
                raise QueryError(sql, str(e)) from e
            return cur.rowcount

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Any]:
        with self._lock:
            self.ensure_connected()
            try:
                return self._conn.execute(sql, tuple(params)).fetchall()
            except self._driver.Error as e:
                raise QueryError(sql, str(e)) from e

    def query_row(self, sql: str, params: Sequence[Any] = ()) -> Optional[Any]:
        with self._lock:
            self.ensure_connected()
            try:
                return self._conn.execute(sql, tuple(params)).fetchone()
            except self._driver.Error as e:
                raise QueryError(sql, str(e)) from e

    def table_exists(self, name: str) -> bool:
        row = self.query_row(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
        )
        return row is not None

    # --- transactions ----------------------------------------------------

    def begin_transaction(self) -> None:
        with self._lock:
            self.ensure_connected()
            if self._conn.in_transaction:
                raise TransactionError("Transaction already in progress")
            self._conn.execute("BEGIN")

    def commit_transaction(self) -> None:
        with self._lock:
            if self._conn is None or not self._conn.in_transaction:
                raise TransactionError("No transaction in progress")
            self._conn.execute("COMMIT")

    def rollback_transaction(self) -> None:
        with self._lock:
            if self._conn is None or not self._conn.in_transaction:
                raise TransactionError("No transaction in progress")
            self._conn.execute("ROLLBACK")

    @contextmanager
    def transaction(self) -> Iterator["DatabaseManager"]:
        """Commit on success, roll back on any exception (then re-raise)."""
        with self._lock:
            self.begin_transaction()
            try:
                yield self
            except BaseException:
                self.rollback_transaction()
                raise
            self.commit_transaction()

    # --- lifecycle -------------------------------------------------------

    def backup_database(self) -> str:
        """Finalize, then copy the database next to itself with a timestamp.

        A second backup within the same second gets a ``_1``, ``_2``... suffix
        instead of replacing the first.

        Returns:
            Path of the backup file
        """
        with self._lock:
            if not self._path:
                raise DatabaseNoPathError()
            if not os.path.isfile(self._path):
                raise DatabaseFileMissingError(self._path)
            self.finalize()
            src = Path(self._path)
            dest = src.parent / datetime.now().strftime(BACKUP_NAME_FORMAT)
            n = 1
            base = dest
            while dest.exists():
                dest = base.with_name(f"{base.stem}_{n}{base.suffix}")
                n += 1
            copy_file(src, dest)
            logger.info(f"Database backup created: {click.style(str(dest), fg='yellow')}")
            return str(dest)

    def finalize(self) -> None:
        """Roll back, checkpoint, optimize and close. Safe to call repeatedly."""
        with self._lock:
            if self._state is ConnectionState.FINALIZED:
                return
            conn = self._conn
            self._conn = None
            self._state = ConnectionState.FINALIZED
            if conn is None:
                return
            if conn.in_transaction:
                logger.warning("Rolling back unfinished transaction before closing database")
                try:
                    conn.execute("ROLLBACK")
                except self._driver.Error as e:
                    logger.warning(f"Rollback failed: {e}")
            for stmt in ("PRAGMA wal_checkpoint(FULL)", "PRAGMA optimize"):
                try:
                    conn.execute(stmt).fetchall()
                except self._driver.Error as e:
                    logger.warning(f"{stmt} failed: {e}")
            conn.close()
            logger.debug("Database connection finalized")

    close = finalize

    def _report(self, exc: MrfError, operation: str) -> None:
        if self._reporter is not None:
            self._reporter.report_exception(exc, "database", operation, Severity.ERROR)


__all__ = [
    "DatabaseManager",
    "ConnectionState",
    "DEFAULT_DB_KEY",
    "REQUIRED_TABLES",
    "open_cipher_connection",
    "resolve_key",
]
