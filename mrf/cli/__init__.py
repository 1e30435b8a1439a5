"""CLI package bootstrap.

Defines root group (`cli`) in helpers and imports submodules so their
decorators register commands.
"""
from mrf.cli.helpers import cli  # root group
from mrf.cli import db_cmds  # noqa: F401
from mrf.cli import sync_cmds  # noqa: F401
from mrf.cli import config_cmds  # noqa: F401

__all__ = ["cli"]
