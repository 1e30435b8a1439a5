"""Read-only queries over the Rekordbox schema."""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from ..errors import TracksNotFoundError
from ..utils.fs import to_db_path
from .manager import DatabaseManager
from .models import PlaylistItem, TrackItem

logger = logging.getLogger(__name__)

_TRACK_COLUMNS = "c.ID, c.FolderPath, c.FileNameL, c.StockDate, c.DateCreated, c.ColorID, c.DJPlayCount"

# Parents sort by their own Seq; children follow their parent ordered by Seq.
_PLAYLISTS_SQL = """
    SELECT
        p1.ID,
        p1.Name,
        p1.ParentID,
        CASE WHEN p2.Name IS NOT NULL THEN p2.Name || ' > ' || p1.Name ELSE p1.Name END AS Path
    FROM djmdPlaylist p1
    LEFT JOIN djmdPlaylist p2 ON p1.ParentID = p2.ID
    ORDER BY
        CASE WHEN p2.ID IS NULL THEN p1.Seq ELSE p2.Seq END,
        CASE WHEN p2.ID IS NULL THEN 0 ELSE p1.Seq + 1 END
"""

CUE_COLUMNS = (
    "ID", "ContentID", "InMsec", "InFrame", "InMpegFrame", "InMpegAbs",
    "OutMsec", "OutFrame", "OutMpegFrame", "OutMpegAbs", "Kind", "Color",
    "ColorTableIndex", "ActiveLoop", "Comment", "BeatLoopSize", "CueMicrosec",
    "InPointSeekInfo", "OutPointSeekInfo", "ContentUUID", "UUID",
    "rb_data_status", "rb_local_data_status", "rb_local_deleted", "rb_local_synced",
)


def get_playlists(dbm: DatabaseManager) -> List[PlaylistItem]:
    return [PlaylistItem.from_row(r) for r in dbm.query(_PLAYLISTS_SQL)]


def get_tracks_by_folder(dbm: DatabaseManager, folder: str, allow_empty: bool = False) -> List[TrackItem]:
    """Tracks whose stored path starts with ``folder`` (database form, trailing slash).

    The prefix comparison is exact and case-sensitive, so ``_`` and ``%`` in
    folder names are matched literally.

    Raises:
        TracksNotFoundError: nothing matched and ``allow_empty`` is False
    """
    prefix = to_db_path(folder, trailing_slash=True)
    rows = dbm.query(
        f"SELECT {_TRACK_COLUMNS} FROM djmdContent c "
        "WHERE substr(c.FolderPath, 1, length(?)) = ? "
        "ORDER BY c.FileNameL",
        (prefix, prefix),
    )
    tracks = [TrackItem.from_row(r) for r in rows]
    logger.debug(f"{len(tracks)} tracks under {prefix}")
    if not tracks and not allow_empty:
        raise TracksNotFoundError(f"folder {prefix}")
    return tracks


def get_tracks_by_playlist(dbm: DatabaseManager, playlist_id: str) -> List[TrackItem]:
    rows = dbm.query(
        f"SELECT {_TRACK_COLUMNS} FROM djmdContent c "
        "JOIN djmdSongPlaylist sp ON c.ID = sp.ContentID "
        "WHERE sp.PlaylistID = ? "
        "ORDER BY c.FileNameL",
        (playlist_id,),
    )
    return [TrackItem.from_row(r) for r in rows]


def get_track_hot_cues(dbm: DatabaseManager, track_id: str) -> List[Dict[str, Any]]:
    """All cue rows of a track as column->value dicts (full djmdCue column set)."""
    cols = ", ".join(CUE_COLUMNS)
    rows = dbm.query(f"SELECT {cols} FROM djmdCue WHERE ContentID = ?", (track_id,))
    return [dict(zip(CUE_COLUMNS, tuple(r))) for r in rows]


def get_album_id_for_track(dbm: DatabaseManager, track_id: str) -> str:
    """AlbumID of a track, or ``""`` when the track has no album reference."""
    row = dbm.query_row("SELECT AlbumID FROM djmdContent WHERE ID = ?", (track_id,))
    if row is None or row[0] is None:
        return ""
    return str(row[0])


def get_track_id_by_path(dbm: DatabaseManager, path: str) -> Optional[str]:
    row = dbm.query_row("SELECT ID FROM djmdContent WHERE FolderPath = ?", (to_db_path(path),))
    return None if row is None else str(row[0])


__all__ = [
    "CUE_COLUMNS",
    "get_playlists",
    "get_tracks_by_folder",
    "get_tracks_by_playlist",
    "get_track_hot_cues",
    "get_album_id_for_track",
    "get_track_id_by_path",
]
