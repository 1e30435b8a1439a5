"""Preflight validation: fields, database checks, input files and backup."""

from __future__ import annotations
import os
from pathlib import Path

import pytest

from mrf.config_types import MODULE_REQUIREMENTS, DatabaseRequirements, default_module_config
from mrf.db.manager import ConnectionState, DatabaseManager
from mrf.errors import DatabaseFormatError, NoFilesError, ValidationError
from mrf.services.validation_service import Validator, is_valid_date_format
from mrf.utils.logging_helpers import ErrorReporter, Severity


def _validator(module: str, cfg, dbm, reporter=None) -> Validator:
    return Validator(module, cfg, dbm, MODULE_REQUIREMENTS[module], reporter)


@pytest.fixture
def flac_folder(tmp_path: Path) -> Path:
    folder = tmp_path / "flac"
    folder.mkdir()
    (folder / "a.flac").write_bytes(b"x")
    return folder


def test_is_valid_date_format():
    assert is_valid_date_format("2024-02-29")
    assert not is_valid_date_format("2023-02-29")
    assert not is_valid_date_format("24-1-1")


class TestFields:

    def test_required_folder_fails_before_database_access(self, tmp_path: Path):
        cfg = default_module_config("flacfixer")
        reporter = ErrorReporter()
        dbm = DatabaseManager(tmp_path / "does-not-exist.db")
        with pytest.raises(ValidationError) as exc:
            _validator("flacfixer", cfg, dbm, reporter).validate("start")
        assert exc.value.message == "Please select a folder"
        assert exc.value.field == "sourceFolder"
        assert dbm.state is ConnectionState.DISCONNECTED
        assert reporter.records[0].context.severity is Severity.CRITICAL

    def test_untriggered_action_skips_field(self):
        cfg = default_module_config("flacfixer")
        reqs = DatabaseRequirements(needs_database=False)
        Validator("flacfixer", cfg, None, reqs).validate("preview")

    def test_invalid_date(self, tmp_path: Path):
        cfg = default_module_config("datesmaster")
        cfg.set("customDate", "2024-13-01")
        cfg.set("customDateFolders", str(tmp_path))
        with pytest.raises(ValidationError) as exc:
            _validator("datesmaster", cfg, None).validate_fields("start")
        assert exc.value.field == "customDate"

    def test_present_invalid_date_fails_even_when_not_required(self):
        cfg = default_module_config("datesmaster")
        cfg.get_field("customDate").required = False
        cfg.get_field("customDateFolders").required = False
        cfg.set("customDate", "yesterday")
        with pytest.raises(ValidationError):
            _validator("datesmaster", cfg, None).validate_fields("start")

    def test_inactive_dependent_field_is_skipped(self, tmp_path: Path):
        cfg = default_module_config("datesmaster")
        cfg.set("customDate", "2024-01-31")
        cfg.set("customDateFolders", str(tmp_path))
        cfg.set("excludedFolders", str(tmp_path / "missing"))
        _validator("datesmaster", cfg, None).validate_fields("start")

        cfg.set("excludeFoldersEnabled", True)
        with pytest.raises(ValidationError) as exc:
            _validator("datesmaster", cfg, None).validate_fields("start")
        assert exc.value.field == "excludedFolders"

    def test_missing_folder(self, tmp_path: Path):
        cfg = default_module_config("flacfixer")
        cfg.set("sourceFolder", str(tmp_path / "gone"))
        with pytest.raises(ValidationError) as exc:
            _validator("flacfixer", cfg, None).validate_fields("start")
        assert "does not exist" in exc.value.message

    def test_target_folder_must_exist_and_be_writable(self, tmp_path: Path):
        cfg = default_module_config("dataduplicator")
        cfg.set("sourceFolder", str(tmp_path))
        cfg.set("targetFolder", str(tmp_path / "missing"))
        with pytest.raises(ValidationError) as exc:
            _validator("dataduplicator", cfg, None).validate_fields("start")
        assert exc.value.field == "targetFolder"

        cfg.set("targetFolder", str(tmp_path))
        _validator("dataduplicator", cfg, None).validate_fields("start")

    def test_playlist_required_when_selected(self, tmp_path: Path):
        cfg = default_module_config("dataduplicator")
        cfg.set("sourceType", "playlist")
        cfg.set("targetFolder", str(tmp_path))
        with pytest.raises(ValidationError) as exc:
            _validator("dataduplicator", cfg, None).validate_fields("start")
        assert exc.value.message == "Please select a playlist"


class TestDatabase:

    def test_full_pass_creates_backup(self, rb, flac_folder: Path):
        cfg = default_module_config("flacfixer")
        cfg.set("sourceFolder", str(flac_folder))
        dbm = rb.manager()
        validator = _validator("flacfixer", cfg, dbm)

        validator.validate("start")

        assert validator.backup_path
        backup = Path(validator.backup_path)
        assert backup.exists()
        assert backup.read_bytes() == rb.path.read_bytes()
        assert dbm.state is ConnectionState.FINALIZED
        # the caller continues on a clone
        clone = dbm.clone()
        clone.connect()
        clone.finalize()

    def test_database_path_not_set(self, flac_folder: Path):
        cfg = default_module_config("flacfixer")
        cfg.set("sourceFolder", str(flac_folder))
        with pytest.raises(ValidationError) as exc:
            _validator("flacfixer", cfg, DatabaseManager("")).validate("start")
        assert exc.value.message == "Database path is not set"

    def test_database_file_empty(self, tmp_path: Path, flac_folder: Path):
        db = tmp_path / "master.db"
        db.write_bytes(b"")
        cfg = default_module_config("flacfixer")
        cfg.set("sourceFolder", str(flac_folder))
        with pytest.raises(ValidationError) as exc:
            _validator("flacfixer", cfg, DatabaseManager(db)).validate("start")
        assert "empty" in exc.value.message

    def test_probe_connection_classifies_errors(self, tmp_path: Path, flac_folder: Path):
        db = tmp_path / "master.db"
        db.write_bytes(os.urandom(4096))
        cfg = default_module_config("flacfixer")
        cfg.set("sourceFolder", str(flac_folder))
        with pytest.raises(DatabaseFormatError):
            _validator("flacfixer", cfg, DatabaseManager(db)).validate("start")
        assert not list(tmp_path.glob("master_backup_*.db"))

    def test_immediate_access_modules_skip_probe(self, tmp_path: Path):
        db = tmp_path / "master.db"
        db.write_bytes(os.urandom(4096))
        source = tmp_path / "src"
        source.mkdir()
        cfg = default_module_config("dataduplicator")
        cfg.set("sourceFolder", str(source))
        cfg.set("targetFolder", str(tmp_path))
        validator = _validator("dataduplicator", cfg, DatabaseManager(db))
        validator.validate("start")
        assert Path(validator.backup_path).exists()


class TestInputFiles:

    def test_no_matching_files(self, rb, tmp_path: Path):
        folder = tmp_path / "mp3s"
        folder.mkdir()
        (folder / "a.mp3").write_bytes(b"x")
        cfg = default_module_config("flacfixer")
        cfg.set("sourceFolder", str(folder))
        with pytest.raises(NoFilesError):
            _validator("flacfixer", cfg, rb.manager()).validate("start")
        assert not list(rb.path.parent.glob("master_backup_*.db"))

    def test_recursive_flag_is_honoured(self, rb, tmp_path: Path):
        folder = tmp_path / "lib"
        (folder / "sub").mkdir(parents=True)
        (folder / "sub" / "a.flac").write_bytes(b"x")
        cfg = default_module_config("flacfixer")
        cfg.set("sourceFolder", str(folder))
        with pytest.raises(NoFilesError):
            _validator("flacfixer", cfg, rb.manager()).validate_input_files()
        cfg.set("recursive", True)
        _validator("flacfixer", cfg, rb.manager()).validate_input_files()


def test_empty_extensions_fall_back_to_flac(rb, tmp_path: Path):
    folder = tmp_path / "mp3s"
    folder.mkdir()
    (folder / "a.mp3").write_bytes(b"x")
    cfg = default_module_config("flacfixer")
    cfg.set("sourceFolder", str(folder))
    cfg.set("extensions", "")
    with pytest.raises(NoFilesError) as exc:
        _validator("flacfixer", cfg, rb.manager()).validate_input_files()
    assert exc.value.extensions == [".flac"]
