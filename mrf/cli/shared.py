"""Shared utilities for CLI commands.

Kept free of click so other front ends can build managers the same way.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import ConfigManager
from ..db import DatabaseManager
from ..utils.logging_helpers import ErrorReporter


def get_config_manager(cfg: Dict[str, Any]) -> ConfigManager:
    """Settings-file manager for the path in ``cfg['settings_file']``."""
    return ConfigManager(Path(cfg["settings_file"]))


def resolve_db_path(cfg: Dict[str, Any], config_mgr: Optional[ConfigManager] = None) -> str:
    """Database path from runtime config, else from the settings file."""
    path = (cfg.get("database") or {}).get("path")
    if path:
        return str(path)
    mgr = config_mgr or get_config_manager(cfg)
    return mgr.global_config.database_path


def get_db(
    cfg: Dict[str, Any],
    config_mgr: Optional[ConfigManager] = None,
    reporter: Optional[ErrorReporter] = None,
) -> DatabaseManager:
    """Get a (not yet connected) database manager from config.

    Args:
        cfg: Runtime configuration dictionary
        config_mgr: Settings-file manager, created from ``cfg`` when omitted
        reporter: Error reporter handed to the manager

    Returns:
        DatabaseManager instance
    """
    return DatabaseManager(
        resolve_db_path(cfg, config_mgr),
        key=(cfg.get("database") or {}).get("key"),
        reporter=reporter,
    )
