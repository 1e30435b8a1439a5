"""Metadata sync service: write file tags back into the Rekordbox database.

One call to :func:`process_folder_metadata` is one batch:

1. list the audio files under a folder
2. index the database tracks under that folder by path
3. allocate a single USN for the batch
4. for each file, apply the tags that are present and count the outcome

Per-file problems never abort the batch; they end up in the
:class:`ProcessSummary` counters. Cancellation is checked between files and
raises :class:`~mrf.errors.OperationCancelled` carrying the partial summary.
"""

from __future__ import annotations
import logging
import os
import threading
import time
from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional, Sequence

import click

from ..db.accessors import get_album_id_for_track, get_tracks_by_folder
from ..db.manager import DatabaseManager
from ..db.services import (
    add_or_get_artist,
    get_next_usn,
    update_album_artist,
    update_track_fields,
    update_track_original_artist,
)
from ..errors import DatabaseError, MetadataReadError, NoFilesError, OperationCancelled
from ..ingest import tags as tag_reader
from ..utils.fs import get_files_in_folder, to_db_path
from ..utils.logging_helpers import ErrorContext, ErrorReporter, Severity, log_progress

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".flac",)
PROGRESS_LOG_INTERVAL = 100

FilesFoundCallback = Callable[[int], None]
ProgressCallback = Callable[[float, int, int], None]


class CancelToken:
    """Cooperative cancellation flag shared between the caller and a batch."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class ProcessSummary:
    """Outcome counters of one batch."""

    total: int = 0
    updated: int = 0
    no_change: int = 0
    skipped_zero: int = 0
    metadata_errs: int = 0
    db_misses: int = 0
    db_update_errs: int = 0
    skipped_dirs: int = 0
    usn: Optional[int] = None
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return (self.updated + self.no_change + self.skipped_zero + self.metadata_errs
                + self.db_misses + self.db_update_errs)

    def to_dict(self):
        return asdict(self)


@dataclass
class FileOutcome:
    changed: bool
    updated_fields: List[str]
    not_updated_fields: List[str]


def _is_cancelled(cancel: Optional[CancelToken]) -> bool:
    return cancel is not None and cancel.cancelled


def apply_file_tags(
    dbm: DatabaseManager,
    track_id: str,
    metadata: Dict[str, str],
    usn: int,
) -> FileOutcome:
    """Write the present tags of one file onto its track.

    Album artist only lands when the track already references an album; the
    album row is never created here. Release date and subtitle are written in
    one statement whenever their keys are present, even if empty.

    Raises:
        DatabaseError: any failing statement (the caller counts it)
    """
    changed = False
    updated: List[str] = []
    not_updated: List[str] = []

    album_artist = metadata.get("ALBUMARTIST", "")
    if album_artist:
        artist_id = add_or_get_artist(dbm, album_artist, usn)
        album_id = get_album_id_for_track(dbm, track_id)
        if album_id:
            update_album_artist(dbm, album_id, artist_id, usn)
            changed = True
            updated.append("ALBUMARTIST")
        else:
            not_updated.append("ALBUMARTIST")
    else:
        not_updated.append("ALBUMARTIST")

    orig_artist = metadata.get("ORIGARTIST", "")
    if orig_artist:
        artist_id = add_or_get_artist(dbm, orig_artist, usn)
        update_track_original_artist(dbm, track_id, artist_id, usn)
        changed = True
        updated.append("ORIGARTIST")
    else:
        not_updated.append("ORIGARTIST")

    fields: Dict[str, str] = {}
    for tag, column in (("RELEASEDATE", "ReleaseDate"), ("SUBTITLE", "Subtitle")):
        if tag in metadata:
            fields[column] = metadata[tag]
            updated.append(tag)
        else:
            not_updated.append(tag)
    if fields:
        update_track_fields(dbm, track_id, fields, usn)
        changed = True

    return FileOutcome(changed=changed, updated_fields=updated, not_updated_fields=not_updated)


def _process_file(
    dbm: DatabaseManager,
    path: str,
    index: Dict[str, str],
    usn: int,
    reporter: Optional[ErrorReporter],
) -> str:
    """Handle one file and return the name of the summary counter to bump."""
    name = os.path.basename(path)

    def _report(message: str, severity: Severity = Severity.WARNING) -> None:
        if reporter is not None:
            reporter.report(ErrorContext("metadatasync", "process_file", severity, True), f"{name}: {message}")

    try:
        size = os.stat(path).st_size
    except OSError as e:
        logger.error(f"File {name}: cannot stat ({e})")
        _report(f"cannot stat: {e}", Severity.ERROR)
        return "metadata_errs"
    if size == 0:
        logger.error(f"File {name}: zero bytes, skipped")
        _report("zero bytes", Severity.ERROR)
        return "skipped_zero"

    track_id = index.get(to_db_path(path))
    if track_id is None:
        logger.warning(f"File {name}: {click.style('not found in database', fg='magenta')}")
        _report("not found in database")
        return "db_misses"

    try:
        metadata = tag_reader.read_metadata(path)
    except MetadataReadError as e:
        logger.warning(f"File {name}: {e.message}")
        _report(e.message)
        return "metadata_errs"

    try:
        outcome = apply_file_tags(dbm, track_id, metadata, usn)
    except DatabaseError as e:
        logger.error(f"File {name}, id {track_id}: {click.style('database update failed', fg='red')} ({e.message})")
        _report(f"database update failed: {e.message}", Severity.ERROR)
        return "db_update_errs"

    logger.debug(
        f"File {name}, id {track_id}, updated: {', '.join(outcome.updated_fields) or '-'}, "
        f"not updated: {', '.join(outcome.not_updated_fields) or '-'}"
    )
    return "updated" if outcome.changed else "no_change"


def process_folder_metadata(
    dbm: DatabaseManager,
    folder: str,
    recursive: bool = True,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
    cancel: Optional[CancelToken] = None,
    on_files_found: Optional[FilesFoundCallback] = None,
    on_progress: Optional[ProgressCallback] = None,
    reporter: Optional[ErrorReporter] = None,
) -> ProcessSummary:
    """Sync ALBUMARTIST, ORIGARTIST, RELEASEDATE and SUBTITLE tags of a folder.

    Args:
        dbm: Connected (or connectable) manager; the batch is its only writer
        folder: Folder on disk holding the audio files
        recursive: Descend into subfolders
        extensions: File extensions to include (lowercase, dot-prefixed)
        cancel: Checked before the index is built and before every file
        on_files_found: Called once with the number of files found
        on_progress: Called after each file with (fraction, updated, total)
        reporter: Receives one record per failed file

    Returns:
        ProcessSummary with the outcome counters

    Raises:
        FolderNotFoundError / DirectoryNotReadableError: root folder unusable
        NoFilesError: no matching files
        OperationCancelled: cancelled; ``.summary`` has the partial counts
        DatabaseError: the index query or the USN allocation failed
    """
    start = time.time()
    # FolderPath values in the library are absolute
    folder = os.path.abspath(folder)
    files, skipped_dirs = get_files_in_folder(folder, extensions, recursive)
    if on_files_found is not None:
        on_files_found(len(files))
    if not files:
        raise NoFilesError(folder, extensions)

    summary = ProcessSummary(total=len(files), skipped_dirs=len(skipped_dirs))
    if _is_cancelled(cancel):
        summary.cancelled = True
        raise OperationCancelled(summary)

    tracks = get_tracks_by_folder(dbm, folder, allow_empty=True)
    index: Dict[str, str] = {to_db_path(t.folder_path): t.id for t in tracks}
    logger.info(
        f"Found {click.style(str(len(files)), fg='cyan')} files, "
        f"{click.style(str(len(index)), fg='cyan')} tracks in database under {folder}"
    )

    usn = get_next_usn(dbm)
    summary.usn = usn

    for i, path in enumerate(files):
        if _is_cancelled(cancel):
            summary.cancelled = True
            summary.duration_seconds = time.time() - start
            logger.info(f"Metadata sync cancelled after {i}/{summary.total} files")
            raise OperationCancelled(summary)

        outcome = _process_file(dbm, path, index, usn, reporter)
        setattr(summary, outcome, getattr(summary, outcome) + 1)

        if on_progress is not None:
            on_progress((i + 1) / summary.total, summary.updated, summary.total)
        if (i + 1) % PROGRESS_LOG_INTERVAL == 0:
            log_progress(i + 1, summary.total, updated=summary.updated,
                         errors=summary.metadata_errs + summary.db_update_errs,
                         elapsed_seconds=time.time() - start)

    if on_progress is not None:
        on_progress(1.0, summary.updated, summary.total)
    summary.duration_seconds = time.time() - start
    return summary


__all__ = [
    "CancelToken",
    "ProcessSummary",
    "FileOutcome",
    "apply_file_tags",
    "process_folder_metadata",
]
