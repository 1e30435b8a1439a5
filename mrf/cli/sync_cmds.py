"""Validation and metadata sync commands."""

from __future__ import annotations
import logging
import os
import threading
from typing import Any, Dict

import click

from .helpers import cli, get_db, get_config_manager
from ..config_types import MODULE_REQUIREMENTS, module_names
from ..errors import MrfError, OperationCancelled
from ..services.reconcile_service import DEFAULT_EXTENSIONS, CancelToken, process_folder_metadata
from ..services.validation_service import Validator
from ..utils.fs import parse_extensions_csv
from ..utils.logging_helpers import ErrorReporter, format_summary
from ..utils.output import success, warning, info, file_path

logger = logging.getLogger(__name__)

SYNC_MODULE = "flacfixer"


@cli.command()
@click.argument('module', type=click.Choice(module_names()))
@click.option('--action', default='start', show_default=True, help='Action whose fields are validated')
@click.option('--folder', type=str, default=None, help='Override sourceFolder/folder for this run')
@click.pass_context
def validate(ctx: click.Context, module: str, action: str, folder: str | None):
    """Run preflight checks for MODULE (fields, database, backup)."""
    cfg = ctx.obj
    mgr = get_config_manager(cfg)
    module_cfg = mgr.get_module_config(module)
    if folder:
        key = "sourceFolder" if module_cfg.get_field("sourceFolder") else "folder"
        module_cfg.set(key, os.path.abspath(os.path.expanduser(folder)))
    validator = Validator(module, module_cfg, get_db(cfg, mgr), MODULE_REQUIREMENTS[module])
    try:
        validator.validate(action)
    except MrfError as e:
        raise click.ClickException(e.message)
    click.echo(success(f"{module}: validation passed"))
    if validator.backup_path:
        click.echo(file_path(validator.backup_path, label="Backup"))


def _run_in_worker(target, cancel: CancelToken) -> Dict[str, Any]:
    """Run ``target`` on a worker thread; Ctrl+C sets ``cancel`` and waits for it."""
    result: Dict[str, Any] = {}

    def _work():
        try:
            result["value"] = target()
        except BaseException as e:  # re-raised on the calling thread
            result["error"] = e

    worker = threading.Thread(target=_work, name="mrf-metadata-sync", daemon=True)
    worker.start()
    while worker.is_alive():
        try:
            worker.join(timeout=0.2)
        except KeyboardInterrupt:
            click.echo(warning("Stopping after the current file..."), err=True)
            cancel.cancel()
    return result


@cli.command(name="sync-metadata")
@click.option('--folder', type=str, default=None, help='Folder with audio files (default: saved sourceFolder)')
@click.option('--recursive/--no-recursive', default=None, help='Include subfolders (default: saved setting)')
@click.option('--extensions', type=str, default=None, help='Extensions to include, e.g. "flac,mp3"')
@click.option('--save', is_flag=True, help='Remember --folder/--recursive/--extensions in the settings file')
@click.pass_context
def sync_metadata(ctx: click.Context, folder: str | None, recursive: bool | None,
                  extensions: str | None, save: bool):
    """Write ALBUMARTIST, ORIGARTIST, RELEASEDATE and SUBTITLE tags into Rekordbox.

    Validates settings, backs up master.db, then updates every track under
    the folder whose file is found in the database. Press Ctrl+C to stop
    after the current file.
    """
    cfg = ctx.obj
    mgr = get_config_manager(cfg)
    module_cfg = mgr.get_module_config(SYNC_MODULE)
    if folder:
        module_cfg.set("sourceFolder", os.path.abspath(os.path.expanduser(folder)))
    if recursive is not None:
        module_cfg.set("recursive", recursive)
    if extensions:
        module_cfg.set("extensions", extensions)
    if save:
        try:
            mgr.save_module_config(SYNC_MODULE, module_cfg)
        except MrfError as e:
            raise click.ClickException(e.message)

    reporter = ErrorReporter()
    dbm = get_db(cfg, mgr, reporter)
    validator = Validator(SYNC_MODULE, module_cfg, dbm, MODULE_REQUIREMENTS[SYNC_MODULE], reporter)
    try:
        validator.validate("start")
    except MrfError as e:
        raise click.ClickException(e.message)
    click.echo(file_path(validator.backup_path, label="Backup"))

    source = module_cfg.get("sourceFolder").strip()
    exts = parse_extensions_csv(module_cfg.get("extensions")) or list(DEFAULT_EXTENSIONS)
    cancel = CancelToken()
    worker_dbm = dbm.clone()

    def _target():
        try:
            return process_folder_metadata(
                worker_dbm,
                source,
                recursive=module_cfg.get_bool("recursive"),
                extensions=exts,
                cancel=cancel,
                on_files_found=lambda n: click.echo(info(f"{n} files found")),
                reporter=reporter,
            )
        finally:
            worker_dbm.finalize()

    outcome = _run_in_worker(_target, cancel)
    err = outcome.get("error")
    if isinstance(err, OperationCancelled):
        partial = err.summary
        if partial is not None:
            click.echo(format_summary(partial, item_name="Stopped"))
        click.echo(warning("Metadata sync stopped by user"))
        ctx.exit(1)
    if isinstance(err, MrfError):
        raise click.ClickException(err.message)
    if err is not None:
        raise err

    summary = outcome["value"]
    click.echo(format_summary(summary))
    if summary.usn is not None:
        click.echo(info(f"USN {summary.usn}, {summary.total} files"))


__all__ = ["validate", "sync_metadata"]
