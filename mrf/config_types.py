"""Typed configuration dataclasses for metarekordfixer.

Module settings are an ordered list of :class:`FieldCfg` descriptors built when
the module config is constructed. The validator walks that list directly; no
per-module struct types are needed.
"""
from __future__ import annotations
import copy
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

FIELD_TYPES = ("folder", "file", "date", "checkbox", "select", "playlist")
VALIDATION_TYPES = ("none", "exists", "exists | write", "valid_date", "filled")


@dataclass
class FieldCfg:
    """One user-editable setting of a module.

    ``value`` is always a string; checkbox values are ``"true"``/``"false"``.
    """
    key: str
    field_type: str = "folder"
    required: bool = False
    depends_on: str = ""
    active_when: str = ""
    validation_type: str = "none"
    value: str = ""
    validate_on_actions: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.field_type not in FIELD_TYPES:
            raise ValueError(f"Field '{self.key}': unknown field type '{self.field_type}'")
        if self.validation_type not in VALIDATION_TYPES:
            raise ValueError(f"Field '{self.key}': unknown validation type '{self.validation_type}'")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys of the settings file."""
        return {
            "fieldType": self.field_type,
            "required": self.required,
            "dependsOn": self.depends_on,
            "activeWhen": self.active_when,
            "validationType": self.validation_type,
            "value": self.value,
            "validateOnActions": list(self.validate_on_actions),
        }

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> FieldCfg:
        return cls(
            key=key,
            field_type=data.get("fieldType", "folder"),
            required=bool(data.get("required", False)),
            depends_on=data.get("dependsOn", "") or "",
            active_when=data.get("activeWhen", "") or "",
            validation_type=data.get("validationType", "none") or "none",
            value="" if data.get("value") is None else str(data.get("value")),
            validate_on_actions=list(data.get("validateOnActions") or []),
        )

    def triggered_by(self, action: str) -> bool:
        return not self.validate_on_actions or action in self.validate_on_actions


@dataclass
class ModuleCfg:
    """Ordered field list of one module."""
    name: str
    fields: List[FieldCfg] = field(default_factory=list)

    def get_field(self, key: str) -> Optional[FieldCfg]:
        for f in self.fields:
            if f.key == key:
                return f
        return None

    def get(self, key: str, default: str = "") -> str:
        f = self.get_field(key)
        return f.value if f is not None else default

    def get_bool(self, key: str, default: bool = False) -> bool:
        f = self.get_field(key)
        if f is None:
            return default
        return f.value.strip().lower() == "true"

    def set(self, key: str, value: Any) -> None:
        f = self.get_field(key)
        if f is None:
            raise KeyError(f"Module '{self.name}' has no field '{key}'")
        if isinstance(value, bool):
            value = "true" if value else "false"
        f.value = "" if value is None else str(value)

    def is_active(self, f: FieldCfg) -> bool:
        """False when ``f`` depends on a field whose value is not the activation value."""
        if not f.depends_on:
            return True
        dep = self.get_field(f.depends_on)
        return dep is not None and dep.value == f.active_when

    def to_dict(self) -> Dict[str, Any]:
        return {f.key: f.to_dict() for f in self.fields}

    def overlay_values(self, data: Dict[str, Any]) -> None:
        """Copy only ``value`` strings from a loaded settings-file section."""
        for f in self.fields:
            entry = data.get(f.key)
            if isinstance(entry, dict) and "value" in entry and entry["value"] is not None:
                f.value = str(entry["value"])


@dataclass
class DatabaseRequirements:
    """How a module uses the library database."""
    needs_database: bool = False
    needs_immediate_access: bool = False


@dataclass
class GlobalConfig:
    database_path: str = ""
    language: str = "en"

    def to_dict(self) -> Dict[str, Any]:
        return {"databasePath": self.database_path, "language": self.language}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GlobalConfig:
        return cls(
            database_path=data.get("databasePath", "") or "",
            language=data.get("language", "en") or "en",
        )


def _start(**kwargs) -> Dict[str, Any]:
    kwargs.setdefault("validate_on_actions", ["start"])
    return kwargs


_MODULE_FIELDS: Dict[str, List[Dict[str, Any]]] = {
    "flacfixer": [
        _start(key="sourceFolder", field_type="folder", required=True, validation_type="exists"),
        dict(key="recursive", field_type="checkbox", value="false"),
        dict(key="extensions", field_type="select", value=".flac"),
    ],
    "datesmaster": [
        _start(key="customDate", field_type="date", required=True, validation_type="valid_date"),
        _start(key="customDateFolders", field_type="folder", required=True, validation_type="exists"),
        dict(key="excludeFoldersEnabled", field_type="checkbox", value="false"),
        _start(key="excludedFolders", field_type="folder", depends_on="excludeFoldersEnabled",
               active_when="true", validation_type="exists"),
    ],
    "dataduplicator": [
        _start(key="sourceType", field_type="select", required=True, value="folder"),
        _start(key="sourceFolder", field_type="folder", required=True, depends_on="sourceType",
               active_when="folder", validation_type="exists"),
        _start(key="sourcePlaylist", field_type="playlist", required=True, depends_on="sourceType",
               active_when="playlist", validation_type="filled"),
        _start(key="targetType", field_type="select", required=True, value="folder"),
        _start(key="targetFolder", field_type="folder", required=True, depends_on="targetType",
               active_when="folder", validation_type="exists | write"),
        _start(key="targetPlaylist", field_type="playlist", required=True, depends_on="targetType",
               active_when="playlist", validation_type="filled"),
    ],
    "formatupdater": [
        _start(key="folder", field_type="folder", required=True, validation_type="exists"),
        _start(key="playlistID", field_type="playlist", required=True, validation_type="filled"),
    ],
}

MODULE_REQUIREMENTS: Dict[str, DatabaseRequirements] = {
    "flacfixer": DatabaseRequirements(needs_database=True, needs_immediate_access=False),
    "datesmaster": DatabaseRequirements(needs_database=True, needs_immediate_access=False),
    "dataduplicator": DatabaseRequirements(needs_database=True, needs_immediate_access=True),
    "formatupdater": DatabaseRequirements(needs_database=True, needs_immediate_access=True),
}


def default_module_config(name: str) -> ModuleCfg:
    """Fresh default field list for module ``name``."""
    try:
        specs = _MODULE_FIELDS[name]
    except KeyError:
        raise KeyError(f"Unknown module: {name}") from None
    return ModuleCfg(name=name, fields=[FieldCfg(**copy.deepcopy(s)) for s in specs])


def module_names() -> List[str]:
    return list(_MODULE_FIELDS)


@dataclass
class AppConfig:
    """Whole settings file: global section plus every known module."""
    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    modules: Dict[str, ModuleCfg] = field(default_factory=dict)

    def __post_init__(self):
        for name in module_names():
            self.modules.setdefault(name, default_module_config(name))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global": self.global_config.to_dict(),
            "modules": {name: m.to_dict() for name, m in self.modules.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AppConfig:
        """Build from a settings-file dict; unknown modules are ignored."""
        cfg = cls(global_config=GlobalConfig.from_dict(data.get("global", {}) or {}))
        for name, section in (data.get("modules", {}) or {}).items():
            if name in cfg.modules and isinstance(section, dict):
                cfg.modules[name].overlay_values(section)
        return cfg


__all__ = [
    "FIELD_TYPES",
    "VALIDATION_TYPES",
    "FieldCfg",
    "ModuleCfg",
    "DatabaseRequirements",
    "GlobalConfig",
    "AppConfig",
    "MODULE_REQUIREMENTS",
    "default_module_config",
    "module_names",
]
