"""Write helpers: USN allocation, id allocation, artist resolution, row updates.

All functions here assume a single writer per database file. The USN increment
and the max-id allocation are two statements each, and ``add_or_get_artist``
looks up before it inserts; concurrent writers could interleave between those
steps. One batch at a time per :class:`DatabaseManager` keeps this safe.
"""

from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict

import click

from ..errors import QueryError
from .manager import DatabaseManager

logger = logging.getLogger(__name__)

USN_REGISTRY_ID = "localUpdateCount"

# Columns update_track_fields may touch.
TRACK_WRITABLE_COLUMNS = ("ReleaseDate", "Subtitle", "OrgArtistID", "StockDate", "DateCreated", "ColorID")


def rb_timestamp(now: datetime | None = None) -> str:
    """Timestamp in the format Rekordbox writes, e.g. ``2024-05-01 12:00:00.123 +00:00``."""
    now = now or datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%d %H:%M:%S.") + f"{now.microsecond // 1000:03d} +00:00"


def get_next_id(dbm: DatabaseManager, table: str) -> str:
    """Next numeric identifier for ``table`` as a string (max(ID) + 1)."""
    row = dbm.query_row(f"SELECT COALESCE(MAX(CAST(ID AS INTEGER)), 0) FROM {table}")
    current = int(row[0]) if row is not None and row[0] is not None else 0
    return str(current + 1)


def get_next_usn(dbm: DatabaseManager) -> int:
    """Increment the library's update counter and return the new value.

    Precondition: single writer. The increment and the read-back are separate
    statements.
    """
    affected = dbm.execute(
        "UPDATE agentRegistry SET int_1 = int_1 + 1 WHERE registry_id = ?",
        (USN_REGISTRY_ID,),
    )
    if affected == 0:
        raise QueryError("UPDATE agentRegistry", f"registry row '{USN_REGISTRY_ID}' not found")
    row = dbm.query_row("SELECT int_1 FROM agentRegistry WHERE registry_id = ?", (USN_REGISTRY_ID,))
    usn = int(row[0])
    logger.debug(f"Allocated USN {click.style(str(usn), fg='cyan')}")
    return usn


def add_or_get_artist(dbm: DatabaseManager, name: str, usn: int) -> str:
    """Return the id of artist ``name`` (case-insensitive), creating it if needed.

    An empty name returns ``""`` without touching the database.
    """
    name = (name or "").strip()
    if not name:
        return ""
    row = dbm.query_row("SELECT ID FROM djmdArtist WHERE Name = ? COLLATE NOCASE", (name,))
    if row is not None:
        return str(row[0])

    artist_id = get_next_id(dbm, "djmdArtist")
    ts = rb_timestamp()
    dbm.execute(
        "INSERT INTO djmdArtist (ID, Name, rb_local_usn, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (artist_id, name, usn, ts, ts),
    )
    logger.debug(f"Created artist {click.style(name, fg='green')} (id {artist_id})")
    return artist_id


def update_album_artist(dbm: DatabaseManager, album_id: str, artist_id: str, usn: int) -> int:
    return dbm.execute(
        "UPDATE djmdAlbum SET AlbumArtistID = ?, rb_local_usn = ?, updated_at = ? WHERE ID = ?",
        (artist_id, usn, rb_timestamp(), album_id),
    )


def update_track_original_artist(dbm: DatabaseManager, track_id: str, artist_id: str, usn: int) -> int:
    return dbm.execute(
        "UPDATE djmdContent SET OrgArtistID = ?, rb_local_usn = ? WHERE ID = ?",
        (artist_id, usn, track_id),
    )


def update_track_fields(dbm: DatabaseManager, track_id: str, fields: Dict[str, Any], usn: int) -> int:
    """Set several djmdContent columns in one statement, stamped with ``usn``.

    Column names are checked against :data:`TRACK_WRITABLE_COLUMNS`; the
    values are bound as parameters. An empty ``fields`` is a no-op.
    """
    if not fields:
        return 0
    unknown = [c for c in fields if c not in TRACK_WRITABLE_COLUMNS]
    if unknown:
        raise ValueError(f"Columns not writable: {', '.join(unknown)}")
    assignments = ", ".join(f"{col} = ?" for col in fields)
    params = list(fields.values()) + [usn, track_id]
    return dbm.execute(
        f"UPDATE djmdContent SET {assignments}, rb_local_usn = ? WHERE ID = ?",
        params,
    )


__all__ = [
    "rb_timestamp",
    "get_next_id",
    "get_next_usn",
    "add_or_get_artist",
    "update_album_artist",
    "update_track_original_artist",
    "update_track_fields",
]
