"""Read-only library commands and manual backup."""

from __future__ import annotations
import json as _json
import logging

import click

from .helpers import cli, get_db
from ..db.accessors import get_playlists, get_track_hot_cues, get_tracks_by_folder, get_tracks_by_playlist
from ..errors import MrfError
from ..utils.output import success, info, section_header, count_badge

logger = logging.getLogger(__name__)


@cli.command()
@click.pass_context
def backup(ctx: click.Context):
    """Copy master.db to a timestamped backup next to it."""
    try:
        dest = get_db(ctx.obj).backup_database()
    except MrfError as e:
        raise click.ClickException(e.message)
    click.echo(success(f"Backup created: {click.style(dest, fg='yellow')}"))


@cli.command()
@click.pass_context
def playlists(ctx: click.Context):
    """List playlists in Rekordbox order (parents before their children)."""
    try:
        with get_db(ctx.obj) as dbm:
            items = get_playlists(dbm)
    except MrfError as e:
        raise click.ClickException(e.message)
    click.echo(section_header(f"Playlists ({len(items)})"))
    for p in items:
        click.echo(f"  {click.style(p.id, fg='bright_black'):>12}  {p.path}")


@cli.command()
@click.option('--folder', type=str, default=None, help='Folder prefix (as on disk)')
@click.option('--playlist', 'playlist_id', type=str, default=None, help='Playlist ID')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON instead of a table')
@click.pass_context
def tracks(ctx: click.Context, folder: str | None, playlist_id: str | None, as_json: bool):
    """List tracks stored under a folder or contained in a playlist."""
    if bool(folder) == bool(playlist_id):
        raise click.UsageError("Specify exactly one of --folder or --playlist")
    try:
        with get_db(ctx.obj) as dbm:
            if folder:
                items = get_tracks_by_folder(dbm, folder)
            else:
                items = get_tracks_by_playlist(dbm, playlist_id)
    except MrfError as e:
        raise click.ClickException(e.message)
    if as_json:
        click.echo(_json.dumps([t.to_dict() for t in items], indent=2))
        return
    click.echo(section_header(count_badge(len(items), "tracks")))
    for t in items:
        plays = "-" if t.play_count is None else str(t.play_count)
        click.echo(info(f"{t.id:>10}  {t.folder_path}  (plays: {plays})"))


@cli.command()
@click.argument('track_id')
@click.pass_context
def cues(ctx: click.Context, track_id: str):
    """Show hot cues and memory cues of a track."""
    try:
        with get_db(ctx.obj) as dbm:
            rows = get_track_hot_cues(dbm, track_id)
    except MrfError as e:
        raise click.ClickException(e.message)
    if not rows:
        click.echo(info(f"No cues for track {track_id}"))
        return
    for row in rows:
        label = row.get("Comment") or ""
        click.echo(info(f"kind={row['Kind']} in={row['InMsec']}ms {label}".rstrip()))


__all__ = ["backup", "playlists", "tracks", "cues"]
