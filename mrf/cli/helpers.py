from __future__ import annotations
import click
from ..config import load_config
from ..version import __version__

# Import shared utilities (also usable outside the CLI)
from .shared import get_db, get_config_manager


@click.group()
@click.version_option(version=__version__, prog_name="metarekordfixer")
@click.option('--settings-file', type=click.Path(dir_okay=False), default=None,
              help='Settings file to use (default: ~/MetaRekordFixer/settings.conf)')
@click.option('--db', 'db_path', type=click.Path(dir_okay=False), default=None,
              help='Rekordbox master.db to use (overrides the settings file)')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default=None, help='Logging level (overrides MRF__LOG_LEVEL)')
@click.pass_context
def cli(ctx: click.Context, settings_file: str | None, db_path: str | None, log_level: str | None):
    """Fix Rekordbox library metadata from the tags in your audio files.

    \b
    TYPICAL WORKFLOW:
      mrf set-db ~/Library/Pioneer/rekordbox/master.db
      mrf validate flacfixer --folder ~/Music/FLAC
      mrf sync-metadata --folder ~/Music/FLAC --recursive

    \b
    Inspecting the library:
      mrf playlists              # Playlist tree
      mrf tracks --folder PATH   # Tracks stored under a folder
      mrf cues TRACK_ID          # Hot cues of a track

    \b
    Every command that writes to the database validates first and creates
    a timestamped backup next to master.db. Close Rekordbox before running.
    """
    if isinstance(ctx.obj, dict):
        cfg = ctx.obj
    else:
        overrides = {}
        if log_level:
            overrides['log_level'] = log_level
        cfg = load_config(overrides)
    if settings_file:
        cfg['settings_file'] = settings_file
    if db_path:
        cfg.setdefault('database', {})['path'] = db_path
    ctx.obj = cfg


__all__ = ["cli", "get_db", "get_config_manager"]
