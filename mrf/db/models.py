"""Typed rows read from the Rekordbox schema.

``None`` always means the column was NULL, so an absent value stays
distinguishable from a stored ``0`` or ``""``.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any


def _opt_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


@dataclass
class TrackItem:
    """A row from djmdContent."""
    id: str
    folder_path: str
    file_name: str
    stock_date: Optional[str] = None
    date_created: Optional[str] = None
    color_id: Optional[str] = None
    play_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row) -> TrackItem:
        return cls(
            id=str(row['ID']),
            folder_path=row['FolderPath'] or "",
            file_name=row['FileNameL'] or "",
            stock_date=_opt_str(row['StockDate']),
            date_created=_opt_str(row['DateCreated']),
            color_id=_opt_str(row['ColorID']),
            play_count=_opt_int(row['DJPlayCount']),
        )


@dataclass
class PlaylistItem:
    """A row from djmdPlaylist with its display path.

    ``path`` is ``"Parent > Child"`` for nested playlists, else the bare name.
    """
    id: str
    name: str
    parent_id: Optional[str]
    path: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def is_root(self) -> bool:
        return not self.parent_id or self.parent_id == "root"

    @classmethod
    def from_row(cls, row) -> PlaylistItem:
        return cls(
            id=str(row['ID']),
            name=row['Name'] or "",
            parent_id=_opt_str(row['ParentID']),
            path=row['Path'] or "",
        )


__all__ = ["TrackItem", "PlaylistItem"]
