from __future__ import annotations
import os
import json
import logging
import threading
from typing import Any, Dict
from pathlib import Path
import copy

from .config_types import AppConfig, GlobalConfig, ModuleCfg, default_module_config
from .errors import ConfigError

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "settings.conf"

_DEFAULTS: Dict[str, Any] = {
    "log_level": "INFO",
    "settings_file": str(Path.home() / "MetaRekordFixer" / SETTINGS_FILE_NAME),
    "database": {
        "path": None,  # falls back to globals.databasePath of the settings file
        "key": None,   # falls back to MRF_DB_KEY, then the public Rekordbox key
    },
}


def deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Merge dict b into a (shallow copies) returning new dict.
    Nested dicts are merged recursively; other values override.
    """
    result = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = deep_merge(result[k], v)  # type: ignore[arg-type]
        else:
            result[k] = v
    return result


def _load_dotenv(path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    if not path.exists():
        return values
    for line in path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, val = line.split('=', 1)
        key = key.strip()
        val = val.strip()
        if (val.startswith('"') and val.endswith('"')) or (val.startswith("'") and val.endswith("'")):
            if len(val) >= 2:
                val = val[1:-1]
        if key:
            values[key] = val
    return values


def load_config(overrides: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Load runtime configuration merging defaults <- .env <- environment <- overrides.

    Environment keys use the ``MRF__SECTION__KEY`` form, e.g.
    ``MRF__DATABASE__PATH=/Users/me/Library/Pioneer/rekordbox/master.db``.
    During test runs (detected via PYTEST_CURRENT_TEST) .env loading is skipped
    unless MRF_ENABLE_DOTENV=1 is set.

    This is the process-level config (log level, where the settings file
    lives, database overrides). Per-module fields live in the settings file
    managed by :class:`ConfigManager`.
    """
    dotenv_values: Dict[str, str] = {}
    if os.environ.get('MRF_ENABLE_DOTENV') or not os.environ.get('PYTEST_CURRENT_TEST'):
        dotenv_values = _load_dotenv(Path('.env'))
    cfg: Dict[str, Any] = copy.deepcopy(_DEFAULTS)

    prefix = "MRF__"
    # Merge .env and real environment (real env wins)
    combined = {**{k: v for k, v in dotenv_values.items() if k.startswith(prefix)},
                **{k: v for k, v in os.environ.items() if k.startswith(prefix)}}
    for raw_key, value in combined.items():
        path_parts = raw_key[len(prefix):].split("__")
        cursor: Dict[str, Any] = cfg
        for part in path_parts[:-1]:
            cursor = cursor.setdefault(part.lower(), {})  # type: ignore[assignment]
        leaf = path_parts[-1].lower()
        # Paths and keys stay strings ("0123" must not become an int)
        cursor[leaf] = value if leaf in ("path", "key", "settings_file") else coerce_scalar(value)
    if overrides:
        cfg = deep_merge(cfg, overrides)

    _configure_logging(cfg.get('log_level', 'INFO'))

    return cfg


def _configure_logging(level_str: str) -> None:
    """Configure Python logging based on configured level."""
    level_str = str(level_str).upper()
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL,
    }
    level = level_map.get(level_str, logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(message)s',
        force=True
    )


def coerce_scalar(value: str) -> Any:
    txt = value.strip()
    if (txt.startswith('[') and txt.endswith(']')) or (txt.startswith('{') and txt.endswith('}')):
        try:
            return json.loads(txt)
        except json.JSONDecodeError:
            pass  # fall through to scalar heuristics
    lower = txt.lower()
    if lower in {"true", "yes"}:
        return True
    if lower in {"false", "no"}:
        return False
    if txt.isdigit() or (txt.startswith("-") and txt[1:].isdigit()):
        return int(txt)
    try:
        return float(txt)
    except ValueError:
        return txt


class ConfigManager:
    """Reads and writes the JSON settings file.

    Field definitions (type, validation, dependencies) are owned by
    :mod:`mrf.config_types`; only each field's ``value`` is taken from disk.
    A missing or unreadable file falls back to defaults and is logged. A
    malformed file is left untouched until the next explicit :meth:`save`.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._cfg = AppConfig()
        self.load_error: str | None = None
        self.load()

    def load(self) -> AppConfig:
        with self._lock:
            self.load_error = None
            if not self.path.exists():
                logger.info(f"Settings file not found, using defaults: {self.path}")
                self._cfg = AppConfig()
                return self._cfg
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                if not isinstance(data, dict):
                    raise ValueError("top-level JSON value is not an object")
                self._cfg = AppConfig.from_dict(data)
            except (OSError, ValueError) as e:
                # json.JSONDecodeError is a ValueError
                self.load_error = str(e)
                logger.warning(f"Could not read settings file {self.path}: {e}; using defaults")
                self._cfg = AppConfig()
            return self._cfg

    def save(self) -> None:
        """Write the settings file atomically.

        Raises:
            ConfigError: the file or its directory cannot be written
        """
        with self._lock:
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(json.dumps(self._cfg.to_dict(), indent=2), encoding="utf-8")
                os.replace(tmp, self.path)
            except OSError as e:
                raise ConfigError(f"Could not write settings file {self.path}: {e}") from e
            logger.debug(f"Settings saved to {self.path}")

    @property
    def config(self) -> AppConfig:
        return self._cfg

    @property
    def global_config(self) -> GlobalConfig:
        return self._cfg.global_config

    def set_database_path(self, path: str) -> None:
        with self._lock:
            self._cfg.global_config.database_path = path
            self.save()

    def set_language(self, language: str) -> None:
        with self._lock:
            self._cfg.global_config.language = language
            self.save()

    def get_module_config(self, name: str) -> ModuleCfg:
        """Copy of a module's fields; edits take effect via :meth:`save_module_config`."""
        with self._lock:
            mod = self._cfg.modules.get(name)
            if mod is None:
                mod = default_module_config(name)
            return copy.deepcopy(mod)

    def save_module_config(self, name: str, module_cfg: ModuleCfg) -> None:
        with self._lock:
            self._cfg.modules[name] = copy.deepcopy(module_cfg)
            self.save()


__all__ = ["load_config", "deep_merge", "coerce_scalar", "ConfigManager"]
