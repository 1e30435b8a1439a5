"""Configuration display and update commands."""

from __future__ import annotations
import json as _json
from pathlib import Path

import click

from .helpers import cli, get_config_manager
from ..errors import ConfigError
from ..utils.output import success


@cli.command(name="config")
@click.option("--section", "-s", type=click.Choice(["global", "modules", "runtime"]), default=None,
              help="Only show one section of the configuration.")
@click.option("--module", "-m", default=None, help="Only show one module's fields.")
@click.pass_context
def show_config(ctx: click.Context, section: str | None, module: str | None):
    """Show the settings file (and runtime options) as JSON."""
    cfg = ctx.obj
    mgr = get_config_manager(cfg)
    data = mgr.config.to_dict()
    runtime = {k: v for k, v in cfg.items() if k != "database"}
    runtime["database"] = {
        "path": (cfg.get("database") or {}).get("path"),
        "key": "*** redacted ***" if (cfg.get("database") or {}).get("key") else None,
    }
    data["runtime"] = runtime
    if module:
        if module not in data["modules"]:
            raise click.UsageError(f"Unknown module '{module}'. Available: {', '.join(sorted(data['modules']))}")
        data = {module: data["modules"][module]}
    elif section:
        data = {section: data[section]}
    click.echo(_json.dumps(data, indent=2, sort_keys=True))


@cli.command(name="set-db")
@click.argument("path", type=click.Path(dir_okay=False))
@click.pass_context
def set_db(ctx: click.Context, path: str):
    """Remember PATH as the Rekordbox master.db in the settings file."""
    mgr = get_config_manager(ctx.obj)
    try:
        mgr.set_database_path(str(Path(path).expanduser()))
    except ConfigError as e:
        raise click.ClickException(e.message)
    click.echo(success(f"Database path saved to {mgr.path}"))


__all__ = ["show_config", "set_db"]
