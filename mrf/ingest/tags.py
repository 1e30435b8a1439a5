"""Read the tag subset the metadata sync writes back to the database."""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Union

import mutagen

from ..errors import MetadataReadError

logger = logging.getLogger(__name__)

# Canonical key -> candidate keys (Vorbis comments first, then ID3 frames, then MP4 atoms).
TAG_CANDIDATES = [
    ("ALBUM", ["album", "TALB", "\xa9alb"]),
    ("ALBUMARTIST", ["albumartist", "album artist", "TPE2", "aART"]),
    ("ORIGARTIST", ["origartist", "originalartist", "TOPE"]),
    ("RELEASEDATE", ["releasedate", "TDRL"]),
    ("SUBTITLE", ["subtitle", "TIT3"]),
]


def extract_tags(audio) -> Dict[str, str]:
    """Map an opened mutagen file to canonical keys; missing tags are left out."""
    tags: Dict[str, str] = {}
    if not audio:
        return tags
    if getattr(audio, "tags", None):
        for field, keys in TAG_CANDIDATES:
            for k in keys:
                if k in audio.tags:
                    val: Any = audio.tags.get(k)
                    if isinstance(val, list):
                        val = val[0] if val else ""
                    tags[field] = str(val).strip()
                    break
    return tags


def read_metadata(path: Union[str, Path]) -> Dict[str, str]:
    """Open ``path`` with mutagen and return its canonical tags.

    Raises:
        MetadataReadError: file is not a recognised audio file or cannot be parsed
    """
    try:
        audio = mutagen.File(str(path))
    except (mutagen.MutagenError, OSError) as e:
        raise MetadataReadError(str(path), str(e)) from e
    if audio is None:
        raise MetadataReadError(str(path), "unsupported or unrecognised format")
    return extract_tags(audio)


__all__ = ["TAG_CANDIDATES", "extract_tags", "read_metadata"]
