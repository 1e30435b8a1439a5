from .manager import DatabaseManager, ConnectionState, open_cipher_connection
from .models import TrackItem, PlaylistItem

__all__ = [
    "DatabaseManager",
    "ConnectionState",
    "open_cipher_connection",
    "TrackItem",
    "PlaylistItem",
]
