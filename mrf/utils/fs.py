from __future__ import annotations
import logging
import os
import posixpath
import shutil
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple, Union

from ..errors import DirectoryNotReadableError, FolderNotFoundError

logger = logging.getLogger(__name__)

WRITE_PROBE_NAME = ".write_test"

PathLike = Union[str, Path]


def to_db_path(path: PathLike, trailing_slash: bool = False) -> str:
    """Convert a filesystem path to the form Rekordbox stores in ``FolderPath``.

    - Strips surrounding whitespace
    - Converts backslashes to forward slashes
    - Collapses duplicate separators and ``.`` segments
    - Optionally ensures a single trailing slash (for prefix matching)

    The result is stable under repeated application.

    Example:
        >>> to_db_path("C:\\\\Music\\\\House\\\\", trailing_slash=True)
        'C:/Music/House/'
    """
    text = str(path).strip()
    if not text:
        return ""
    text = posixpath.normpath(text.replace("\\", "/"))
    if trailing_slash and not text.endswith("/"):
        text += "/"
    return text


def directory_exists(path: PathLike) -> bool:
    return bool(str(path)) and os.path.isdir(path)


def file_exists(path: PathLike) -> bool:
    return bool(str(path)) and os.path.isfile(path)


def is_dir_writable(path: PathLike) -> None:
    """Probe write access by creating and removing a temp file.

    Raises:
        FolderNotFoundError: directory does not exist
        OSError: probe file could not be created or removed
    """
    if not directory_exists(path):
        raise FolderNotFoundError(str(path))
    probe = Path(path) / WRITE_PROBE_NAME
    with open(probe, "wb"):
        pass
    probe.unlink()


def copy_file(source: PathLike, dest: PathLike) -> None:
    """Byte-for-byte copy, creating the destination directory if needed."""
    src = Path(source)
    if not src.parent.is_dir():
        raise FolderNotFoundError(str(src.parent))
    dst = Path(dest)
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dst)


def parse_extensions_csv(value: str | None) -> List[str]:
    """Split ``"flac, MP3;.wav|aiff"`` into ``['.flac', '.mp3', '.wav', '.aiff']``."""
    if not value or not value.strip():
        return []
    for sep in (",", ";", "|"):
        value = value.replace(sep, " ")
    result: List[str] = []
    for part in value.split():
        ext = part.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        if ext not in result:
            result.append(ext)
    return result


def _matches(name: str, exts: Sequence[str]) -> bool:
    lower = name.lower()
    return any(lower.endswith(e) for e in exts)


def get_files_in_folder(
    folder: PathLike,
    extensions: Iterable[str],
    recursive: bool = True,
) -> Tuple[List[str], List[str]]:
    """List files under ``folder`` whose names end with one of ``extensions``.

    Directory order is lexical and depth-first, so repeated runs visit files in
    the same order. Subdirectories that cannot be listed are skipped and
    returned in the second list instead of aborting the walk.

    Raises:
        FolderNotFoundError: root folder does not exist
        DirectoryNotReadableError: root folder cannot be listed
    """
    root = str(folder)
    if not directory_exists(root):
        raise FolderNotFoundError(root)
    try:
        with os.scandir(root):
            pass
    except OSError as e:
        raise DirectoryNotReadableError(root, str(e)) from e

    exts = [e.lower() for e in extensions]
    files: List[str] = []
    skipped: List[str] = []

    if not recursive:
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda d: d.name)
        for entry in entries:
            try:
                if entry.is_file() and _matches(entry.name, exts):
                    files.append(entry.path)
            except OSError as e:
                logger.debug(f"Skipping unreadable entry {entry.path}: {e}")
        return files, skipped

    def _on_error(err: OSError) -> None:
        name = err.filename or ""
        if name and os.path.normpath(name) != os.path.normpath(root):
            logger.warning(f"Skipping unreadable directory: {name}")
            skipped.append(str(name))

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames.sort()
        for name in sorted(filenames):
            if _matches(name, exts):
                files.append(os.path.join(dirpath, name))
    return files, skipped


__all__ = [
    "to_db_path",
    "directory_exists",
    "file_exists",
    "is_dir_writable",
    "copy_file",
    "parse_extensions_csv",
    "get_files_in_folder",
]
