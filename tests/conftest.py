"""Pytest fixtures for test configuration.

``rb`` builds a small encrypted Rekordbox-shaped database (same key and cipher
settings as the real manager) and offers helpers to seed and inspect it.
``fake_tags`` replaces ``mutagen.File`` so no real audio files are needed.
"""
from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from mrf.db.manager import DEFAULT_DB_KEY, DatabaseManager, open_cipher_connection
from mrf.utils.fs import to_db_path


def pytest_sessionstart(session):  # type: ignore[no-untyped-def]
    # Never pick up a developer's real key or settings during tests
    os.environ.pop('MRF_DB_KEY', None)
    for k in [k for k in os.environ if k.startswith('MRF__')]:
        os.environ.pop(k, None)


CUE_DDL_COLUMNS = """
    ID VARCHAR(255) PRIMARY KEY, ContentID VARCHAR(255), InMsec INTEGER, InFrame INTEGER,
    InMpegFrame INTEGER, InMpegAbs INTEGER, OutMsec INTEGER, OutFrame INTEGER,
    OutMpegFrame INTEGER, OutMpegAbs INTEGER, Kind INTEGER, Color INTEGER,
    ColorTableIndex INTEGER, ActiveLoop INTEGER, Comment VARCHAR(255), BeatLoopSize INTEGER,
    CueMicrosec INTEGER, InPointSeekInfo VARCHAR(255), OutPointSeekInfo VARCHAR(255),
    ContentUUID VARCHAR(255), UUID VARCHAR(255), rb_data_status INTEGER DEFAULT 0,
    rb_local_data_status INTEGER DEFAULT 0, rb_local_deleted TINYINT(1) DEFAULT 0,
    rb_local_synced TINYINT(1) DEFAULT 0
"""

SCHEMA = [
    "CREATE TABLE djmdContent (ID VARCHAR(255) PRIMARY KEY, FolderPath VARCHAR(255), FileNameL VARCHAR(255), "
    "StockDate VARCHAR(255), DateCreated VARCHAR(255), ColorID VARCHAR(255), DJPlayCount INTEGER, "
    "AlbumID VARCHAR(255), OrgArtistID VARCHAR(255), ReleaseDate VARCHAR(255), Subtitle VARCHAR(255), "
    "rb_local_usn BIGINT)",
    "CREATE TABLE djmdArtist (ID VARCHAR(255) PRIMARY KEY, Name VARCHAR(255), rb_local_usn BIGINT, "
    "created_at TEXT, updated_at TEXT)",
    "CREATE TABLE djmdAlbum (ID VARCHAR(255) PRIMARY KEY, Name VARCHAR(255), AlbumArtistID VARCHAR(255), "
    "rb_local_usn BIGINT, updated_at TEXT)",
    "CREATE TABLE djmdPlaylist (ID VARCHAR(255) PRIMARY KEY, Seq INTEGER, Name VARCHAR(255), ParentID VARCHAR(255))",
    "CREATE TABLE djmdSongPlaylist (ID VARCHAR(255) PRIMARY KEY, PlaylistID VARCHAR(255), "
    "ContentID VARCHAR(255), TrackNo INTEGER)",
    f"CREATE TABLE djmdCue ({CUE_DDL_COLUMNS})",
    "CREATE TABLE agentRegistry (registry_id VARCHAR(255) PRIMARY KEY, int_1 INTEGER)",
    "INSERT INTO agentRegistry (registry_id, int_1) VALUES ('localUpdateCount', 100)",
]


class RekordboxFixture:
    """Seed and inspect an encrypted test library."""

    def __init__(self, path: Path):
        self.path = path
        conn = open_cipher_connection(path, DEFAULT_DB_KEY)
        try:
            for stmt in SCHEMA:
                conn.execute(stmt)
        finally:
            conn.close()

    def _run(self, sql: str, params: tuple = ()) -> List[tuple]:
        conn = open_cipher_connection(self.path, DEFAULT_DB_KEY)
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [tuple(r) for r in rows]

    def manager(self) -> DatabaseManager:
        return DatabaseManager(self.path)

    def add_track(self, track_id: str, file_path: Any, album_id: Optional[str] = None,
                  play_count: Optional[int] = None, stock_date: Optional[str] = None) -> None:
        db_path = to_db_path(file_path)
        self._run(
            "INSERT INTO djmdContent (ID, FolderPath, FileNameL, StockDate, DJPlayCount, AlbumID, rb_local_usn) "
            "VALUES (?, ?, ?, ?, ?, ?, 0)",
            (track_id, db_path, db_path.rsplit('/', 1)[-1], stock_date, play_count, album_id),
        )

    def add_album(self, album_id: str, name: str = "Album") -> None:
        self._run("INSERT INTO djmdAlbum (ID, Name, rb_local_usn) VALUES (?, ?, 0)", (album_id, name))

    def add_artist(self, artist_id: str, name: str) -> None:
        self._run("INSERT INTO djmdArtist (ID, Name, rb_local_usn) VALUES (?, ?, 0)", (artist_id, name))

    def add_playlist(self, playlist_id: str, name: str, seq: int, parent_id: str = "root") -> None:
        self._run("INSERT INTO djmdPlaylist (ID, Seq, Name, ParentID) VALUES (?, ?, ?, ?)",
                  (playlist_id, seq, name, parent_id))

    def add_to_playlist(self, entry_id: str, playlist_id: str, track_id: str, track_no: int = 1) -> None:
        self._run("INSERT INTO djmdSongPlaylist (ID, PlaylistID, ContentID, TrackNo) VALUES (?, ?, ?, ?)",
                  (entry_id, playlist_id, track_id, track_no))

    def add_cue(self, cue_id: str, track_id: str, in_msec: int, kind: int = 1, comment: str = "") -> None:
        self._run("INSERT INTO djmdCue (ID, ContentID, InMsec, Kind, Comment) VALUES (?, ?, ?, ?, ?)",
                  (cue_id, track_id, in_msec, kind, comment))

    def fetch(self, sql: str, params: tuple = ()) -> List[tuple]:
        return self._run(sql, params)

    def fetch_one(self, sql: str, params: tuple = ()) -> Optional[tuple]:
        rows = self._run(sql, params)
        return rows[0] if rows else None

    def usn(self) -> int:
        return int(self.fetch_one("SELECT int_1 FROM agentRegistry WHERE registry_id='localUpdateCount'")[0])

    def track(self, track_id: str) -> Dict[str, Any]:
        cols = ("ID", "AlbumID", "OrgArtistID", "ReleaseDate", "Subtitle", "rb_local_usn")
        row = self.fetch_one(f"SELECT {', '.join(cols)} FROM djmdContent WHERE ID = ?", (track_id,))
        return dict(zip(cols, row)) if row else {}


@pytest.fixture
def rb(tmp_path: Path) -> RekordboxFixture:
    db_dir = tmp_path / "rekordbox"
    db_dir.mkdir()
    return RekordboxFixture(db_dir / "master.db")


class FakeAudio:
    def __init__(self, tags: Dict[str, Any]):
        self.tags = tags


@pytest.fixture
def fake_tags(monkeypatch):
    """Map file name -> tag dict; files not in the map read as unrecognised."""
    import mutagen

    registry: Dict[str, Dict[str, Any]] = {}

    def fake_file(path):
        tags = registry.get(Path(path).name)
        return None if tags is None else FakeAudio(tags)

    monkeypatch.setattr(mutagen, 'File', fake_file)
    return registry


@pytest.fixture
def test_config(tmp_path: Path) -> Dict[str, Any]:
    """Minimal runtime configuration dict isolated to tmp_path."""
    return {
        'log_level': 'DEBUG',
        'settings_file': str(tmp_path / 'settings.conf'),
        'database': {'path': None, 'key': None},
    }
