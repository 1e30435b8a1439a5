"""Tests for DatabaseManager connection lifecycle, transactions and backup."""

from __future__ import annotations
import os
from datetime import datetime
from pathlib import Path

import pytest

from mrf.db import manager as manager_module
from mrf.db.manager import (
    DEFAULT_DB_KEY,
    ConnectionState,
    DatabaseManager,
    open_cipher_connection,
    resolve_key,
)
from mrf.errors import (
    DatabaseFileMissingError,
    DatabaseFinalizedError,
    DatabaseFormatError,
    DatabaseNoPathError,
    DatabaseNotConnectedError,
    DatabaseTablesMissingError,
    DatabaseZeroLengthError,
    QueryError,
    TransactionError,
)
from mrf.utils.logging_helpers import ErrorReporter


class TestConnectErrors:

    def test_no_path(self):
        with pytest.raises(DatabaseNoPathError):
            DatabaseManager("").connect()

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(DatabaseFileMissingError):
            DatabaseManager(tmp_path / "master.db").connect()

    def test_zero_length_file(self, tmp_path: Path):
        db = tmp_path / "master.db"
        db.write_bytes(b"")
        with pytest.raises(DatabaseZeroLengthError):
            DatabaseManager(db).connect()

    def test_garbage_file_is_format_error(self, tmp_path: Path):
        db = tmp_path / "master.db"
        db.write_bytes(os.urandom(8192))
        with pytest.raises(DatabaseFormatError):
            DatabaseManager(db).connect()

    def test_wrong_key_is_format_error(self, rb):
        with pytest.raises(DatabaseFormatError):
            DatabaseManager(rb.path, key="0" * 64).connect()

    def test_missing_tables(self, tmp_path: Path):
        db = tmp_path / "master.db"
        conn = open_cipher_connection(db, DEFAULT_DB_KEY)
        conn.execute("CREATE TABLE djmdContent (ID VARCHAR(255) PRIMARY KEY)")
        conn.close()
        with pytest.raises(DatabaseTablesMissingError) as exc:
            DatabaseManager(db).connect()
        assert "djmdArtist" in exc.value.missing
        assert "djmdContent" not in exc.value.missing

    def test_errors_are_reported(self, tmp_path: Path):
        reporter = ErrorReporter()
        with pytest.raises(DatabaseFileMissingError):
            DatabaseManager(tmp_path / "nope.db", reporter=reporter).connect()
        assert reporter.has_errors()
        assert reporter.records[0].context.operation == "connect"


class TestLifecycle:

    def test_connect_sets_durability_pragmas(self, rb):
        dbm = rb.manager()
        dbm.connect()
        assert dbm.state is ConnectionState.CONNECTED
        assert dbm.query_row("PRAGMA journal_mode")[0].lower() == "delete"
        # FULL == 2
        assert int(dbm.query_row("PRAGMA synchronous")[0]) == 2
        dbm.finalize()

    def test_connect_is_idempotent(self, rb):
        dbm = rb.manager()
        dbm.connect()
        dbm.connect()
        assert dbm.is_connected
        dbm.finalize()

    def test_lazy_ensure_connected_does_not_open(self, rb):
        dbm = rb.manager()
        with pytest.raises(DatabaseNotConnectedError):
            dbm.ensure_connected(lazy=True)
        assert dbm.state is ConnectionState.DISCONNECTED

    def test_statements_connect_on_demand(self, rb):
        dbm = rb.manager()
        assert dbm.table_exists("djmdContent")
        assert not dbm.table_exists("djmdNothing")
        assert dbm.is_connected
        dbm.finalize()

    def test_finalize_is_idempotent_and_blocks_reconnect(self, rb):
        dbm = rb.manager()
        dbm.connect()
        dbm.finalize()
        dbm.finalize()
        assert dbm.state is ConnectionState.FINALIZED
        with pytest.raises(DatabaseFinalizedError):
            dbm.connect()

    def test_clone_starts_fresh(self, rb):
        dbm = rb.manager()
        dbm.connect()
        dbm.finalize()
        other = dbm.clone()
        assert other.state is ConnectionState.DISCONNECTED
        assert other.database_path == dbm.database_path
        other.connect()
        other.finalize()

    def test_context_manager_finalizes(self, rb):
        with rb.manager() as dbm:
            dbm.connect()
        assert dbm.state is ConnectionState.FINALIZED

    def test_query_error_wraps_engine_error(self, rb):
        with rb.manager() as dbm:
            with pytest.raises(QueryError):
                dbm.query("SELECT nope FROM djmdContent")


class TestTransactions:

    def test_commit(self, rb):
        with rb.manager() as dbm:
            with dbm.transaction():
                dbm.execute("INSERT INTO djmdArtist (ID, Name) VALUES ('1', 'A')")
        assert rb.fetch("SELECT Name FROM djmdArtist") == [("A",)]

    def test_rollback_on_exception(self, rb):
        with rb.manager() as dbm:
            with pytest.raises(RuntimeError):
                with dbm.transaction():
                    dbm.execute("INSERT INTO djmdArtist (ID, Name) VALUES ('1', 'A')")
                    raise RuntimeError("boom")
            assert not dbm.in_transaction
        assert rb.fetch("SELECT Name FROM djmdArtist") == []

    def test_nested_begin_rejected(self, rb):
        with rb.manager() as dbm:
            dbm.begin_transaction()
            with pytest.raises(TransactionError):
                dbm.begin_transaction()
            dbm.rollback_transaction()

    def test_commit_without_transaction(self, rb):
        with rb.manager() as dbm:
            dbm.connect()
            with pytest.raises(TransactionError):
                dbm.commit_transaction()

    def test_finalize_rolls_back_open_transaction(self, rb):
        dbm = rb.manager()
        dbm.begin_transaction()
        dbm.execute("INSERT INTO djmdArtist (ID, Name) VALUES ('1', 'A')")
        dbm.finalize()
        assert rb.fetch("SELECT Name FROM djmdArtist") == []


class TestBackup:

    def test_backup_during_open_transaction(self, rb):
        dbm = rb.manager()
        dbm.begin_transaction()
        dbm.execute("INSERT INTO djmdArtist (ID, Name) VALUES ('1', 'Uncommitted')")

        dest = Path(dbm.backup_database())

        assert dbm.state is ConnectionState.FINALIZED
        assert dest.parent == rb.path.parent
        assert dest.name.startswith("master_backup_")
        assert dest.read_bytes() == rb.path.read_bytes()
        assert not Path(str(rb.path) + "-journal").exists()
        assert rb.fetch("SELECT Name FROM djmdArtist") == []

    def test_backup_is_readable_with_same_key(self, rb):
        rb.add_artist("7", "Backed Up")
        dest = rb.manager().backup_database()
        conn = open_cipher_connection(dest, DEFAULT_DB_KEY)
        try:
            assert conn.execute("SELECT Name FROM djmdArtist").fetchall()[0][0] == "Backed Up"
        finally:
            conn.close()

    def test_backup_missing_file(self, tmp_path: Path):
        with pytest.raises(DatabaseFileMissingError):
            DatabaseManager(tmp_path / "master.db").backup_database()


def test_resolve_key_precedence(monkeypatch):
    monkeypatch.delenv("MRF_DB_KEY", raising=False)
    assert resolve_key() == DEFAULT_DB_KEY
    monkeypatch.setenv("MRF_DB_KEY", "from-env")
    assert resolve_key() == "from-env"
    assert resolve_key("explicit") == "explicit"


class _FrozenClock:
    @staticmethod
    def now():
        return datetime(2024, 5, 1, 12, 0, 0)


def test_backups_in_the_same_second_are_kept(rb, monkeypatch):
    monkeypatch.setattr(manager_module, "datetime", _FrozenClock)
    first = Path(rb.manager().backup_database())
    second = Path(rb.manager().backup_database())
    third = Path(rb.manager().backup_database())

    assert first.name == "master_backup_2024-05-01@12_00_00.db"
    assert second.name == "master_backup_2024-05-01@12_00_00_1.db"
    assert third.name == "master_backup_2024-05-01@12_00_00_2.db"
    assert len(list(rb.path.parent.glob("master_backup_*.db"))) == 3
