"""Configuration loading and validation for switchbotctl."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from switchbotctl.core.decoders import DECODERS
from switchbotctl.core.errors import ConfigLoadError, ConfigValidationError
from switchbotctl.core.model import DeviceAlias, GattSpec, Settings, TimeoutSpec

LOGGER = logging.getLogger(__name__)

_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"
_HEX_RE = re.compile(r"^[0-9a-f]+$")
_SECTIONS = ("gatt", "timeouts", "scan", "devices")


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


# Keep on/off/yes/no as plain strings.
UniqueKeyLoader.yaml_implicit_resolvers = {
    first_char: [(tag, regexp) for tag, regexp in mappings if tag != "tag:yaml.org,2002:bool"]
    for first_char, mappings in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    warnings: tuple[str, ...]


def canonical_uuid(value: str) -> str:
    """Expand a 16, 32 or 128-bit UUID string to dashed lower-case 128-bit form."""
    normalized = value.strip().lower().replace("-", "")
    if not _HEX_RE.match(normalized) or len(normalized) not in (4, 8, 32):
        raise ConfigValidationError(f"'{value}' is not a 16-bit, 32-bit, or 128-bit UUID")
    if len(normalized) == 4:
        return f"0000{normalized}{_BASE_UUID_SUFFIX}"
    if len(normalized) == 8:
        return f"{normalized}{_BASE_UUID_SUFFIX}"
    return "-".join(
        (normalized[0:8], normalized[8:12], normalized[12:16], normalized[16:20], normalized[20:32])
    )


def normalize_address(value: str) -> str:
    compact = value.strip().lower().replace(":", "").replace("-", "")
    return ":".join(compact[i : i + 2] for i in range(0, len(compact), 2))


def _load_schema_validator() -> Any:
    schema_text = resources.files("switchbotctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def user_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "switchbotctl/config.yaml"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _validate(doc: dict[str, Any], source: Path | Traversable) -> None:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = {section: dict(base.get(section) or {}) for section in _SECTIONS}
    for section in _SECTIONS:
        merged[section].update(override.get(section) or {})
    return merged


def _build_aliases(devices: dict[str, Any]) -> dict[str, DeviceAlias]:
    aliases: dict[str, DeviceAlias] = {}
    for name, entry in devices.items():
        model = entry.get("model")
        if model is not None and model not in DECODERS:
            known = ", ".join(sorted(DECODERS))
            raise ConfigValidationError(f"devices.{name}.model '{model}' is not a known model code ({known})")
        aliases[name] = DeviceAlias(
            name=name,
            address=normalize_address(entry["address"]),
            model=model,
        )
    return aliases


def _build_settings(doc: dict[str, Any]) -> Settings:
    gatt = doc["gatt"]
    missing = [key for key in ("service_uuid", "write_char_uuid", "notify_char_uuid") if not gatt.get(key)]
    if missing:
        raise ConfigValidationError(f"gatt section is missing {', '.join(missing)}")

    device_char = gatt.get("device_char_uuid")
    timeouts = doc["timeouts"]
    defaults = TimeoutSpec()
    return Settings(
        gatt=GattSpec(
            service_uuid=canonical_uuid(gatt["service_uuid"]),
            write_char_uuid=canonical_uuid(gatt["write_char_uuid"]),
            notify_char_uuid=canonical_uuid(gatt["notify_char_uuid"]),
            device_char_uuid=canonical_uuid(device_char) if device_char else None,
        ),
        timeouts=TimeoutSpec(
            discovery_s=float(timeouts.get("discovery_s", defaults.discovery_s)),
            connect_s=float(timeouts.get("connect_s", defaults.connect_s)),
            read_s=float(timeouts.get("read_s", defaults.read_s)),
            write_s=float(timeouts.get("write_s", defaults.write_s)),
            command_s=float(timeouts.get("command_s", defaults.command_s)),
        ),
        scan_duration_s=float(doc["scan"].get("duration_s", 5.0)),
        aliases=_build_aliases(doc["devices"]),
    )


def _packaged_document() -> dict[str, Any]:
    path = resources.files("switchbotctl.defaults").joinpath("config.yaml")
    doc = _read_yaml(path)
    _validate(doc, path)
    return doc


def _gatt_warnings(packaged: dict[str, Any], user: dict[str, Any]) -> list[str]:
    warnings: list[str] = []
    packaged_gatt = packaged.get("gatt") or {}
    for key, value in sorted((user.get("gatt") or {}).items()):
        current = packaged_gatt.get(key)
        same = value is None and current is None
        if value is not None and current is not None:
            same = canonical_uuid(value) == canonical_uuid(current)
        if not same:
            warnings.append(f"User config overrides packaged GATT setting '{key}' ({current} -> {value})")
    return warnings


def load_settings(path: Path | None = None) -> LoadedSettings:
    """Load packaged defaults, then merge the user config file over them.

    ``path`` defaults to ``$XDG_CONFIG_HOME/switchbotctl/config.yaml``; a
    missing user file is not an error.
    """
    packaged = _packaged_document()
    warnings: list[str] = []

    user_path = path or user_config_path()
    user: dict[str, Any] = {}
    if user_path.exists():
        user = _read_yaml(user_path)
        _validate(user, user_path)
        LOGGER.debug("Loaded user config from %s", user_path)
        for warning in _gatt_warnings(packaged, user):
            LOGGER.warning(warning)
            warnings.append(warning)
    elif path is not None:
        raise ConfigLoadError(f"Config file {path} does not exist")

    settings = _build_settings(_merge(packaged, user))
    return LoadedSettings(settings=settings, warnings=tuple(warnings))


@lru_cache(maxsize=1)
def default_settings() -> Settings:
    """Packaged defaults only, without any user override."""
    packaged = _packaged_document()
    return _build_settings(_merge(packaged, {}))
