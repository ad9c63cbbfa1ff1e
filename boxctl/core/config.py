"""Application configuration: defaults, config file, environment overrides."""

from __future__ import annotations

import copy
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from boxctl.core.actions import ButtonAction, parse_action_spec
from boxctl.core.documents import normalize_bool, parse_usb_id, read_document, validate_document
from boxctl.core.errors import ActionParseError, ConfigLoadError, ConfigValidationError

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "device": {
        "vendor_id": 0x36E6,
        "product_id": 0x8001,
        "name": "PXN CB1 Button Box",
    },
    "polling": {
        "frequency_ms": 10,
        "debounce_ms": 50,
    },
    "logging": {
        "level": "info",
        "enable_raw_data": False,
    },
    "catalog": None,
    "actions": {
        str(index): {
            "name": f"Button {index + 1}",
            "action": "log",
            "description": "Log button press",
        }
        for index in range(8)
    },
}

_SECTIONS = ("device", "polling", "logging", "actions")


@dataclass(frozen=True)
class DeviceSettings:
    vendor_id: int | None = None
    product_id: int | None = None
    name: str | None = None


@dataclass(frozen=True)
class PollingSettings:
    frequency_ms: int = 10
    debounce_ms: int = 50


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "info"
    enable_raw_data: bool = False

    @property
    def level_number(self) -> int:
        if self.level == "warn":
            return logging.WARNING
        return getattr(logging, self.level.upper(), logging.INFO)


@dataclass(frozen=True)
class AppConfig:
    device: DeviceSettings = field(default_factory=DeviceSettings)
    polling: PollingSettings = field(default_factory=PollingSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    actions: dict[int, ButtonAction] = field(default_factory=dict)
    catalog: str | None = None
    source: str | None = None


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "boxctl/config.yaml"


def _stringify_action_keys(doc: dict[str, Any]) -> dict[str, Any]:
    # YAML turns "0:" into an int key; the schema matches string keys.
    actions = doc.get("actions")
    if isinstance(actions, dict):
        doc = dict(doc)
        doc["actions"] = {str(key): value for key, value in actions.items()}
    return doc


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if key in _SECTIONS and isinstance(value, Mapping):
            merged[key] = {**merged.get(key, {}), **value}
        else:
            merged[key] = value
    return merged


def _environment_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, dict[str, Any]] = {}

    def _set(section: str, key: str, value: Any) -> None:
        overrides.setdefault(section, {})[key] = value

    try:
        if "BOXCTL_VENDOR_ID" in environ:
            _set("device", "vendor_id", int(environ["BOXCTL_VENDOR_ID"], 16))
        if "BOXCTL_PRODUCT_ID" in environ:
            _set("device", "product_id", int(environ["BOXCTL_PRODUCT_ID"], 16))
        if "BOXCTL_POLLING_FREQUENCY" in environ:
            _set("polling", "frequency_ms", int(environ["BOXCTL_POLLING_FREQUENCY"]))
        if "BOXCTL_DEBOUNCE" in environ:
            _set("polling", "debounce_ms", int(environ["BOXCTL_DEBOUNCE"]))
    except ValueError as exc:
        raise ConfigValidationError(f"Invalid numeric environment override: {exc}") from exc

    if "BOXCTL_DEVICE_NAME" in environ:
        _set("device", "name", environ["BOXCTL_DEVICE_NAME"])
    if "BOXCTL_LOG_LEVEL" in environ:
        _set("logging", "level", environ["BOXCTL_LOG_LEVEL"].lower())
    if "BOXCTL_ENABLE_RAW_DATA" in environ:
        _set("logging", "enable_raw_data", environ["BOXCTL_ENABLE_RAW_DATA"].lower() == "true")
    return overrides


def _build_actions(actions: Mapping[str, Any]) -> dict[int, ButtonAction]:
    built: dict[int, ButtonAction] = {}
    for key, spec in actions.items():
        index = int(key)
        try:
            action = parse_action_spec(spec["action"])
        except ActionParseError as exc:
            raise ConfigValidationError(f"actions.{key}: {exc}") from exc
        built[index] = ButtonAction(
            name=spec["name"],
            action=action,
            description=spec.get("description"),
        )
    return built


def build_config(doc: Mapping[str, Any], source: str = "<defaults>") -> AppConfig:
    """Validate a merged configuration document and build the typed config."""
    doc = _stringify_action_keys(dict(doc))
    validate_document(doc, "config.schema.json", source, validation_error=ConfigValidationError)

    device = doc.get("device", {})
    polling = doc.get("polling", {})
    logging_doc = doc.get("logging", {})
    return AppConfig(
        device=DeviceSettings(
            vendor_id=parse_usb_id(device["vendor_id"]) if device.get("vendor_id") is not None else None,
            product_id=parse_usb_id(device["product_id"]) if device.get("product_id") is not None else None,
            name=device.get("name"),
        ),
        polling=PollingSettings(
            frequency_ms=int(polling.get("frequency_ms", 10)),
            debounce_ms=int(polling.get("debounce_ms", 50)),
        ),
        logging=LoggingSettings(
            level=logging_doc.get("level", "info"),
            enable_raw_data=normalize_bool(
                logging_doc.get("enable_raw_data", False),
                context="logging.enable_raw_data",
                error=ConfigValidationError,
            ),
        ),
        actions=_build_actions(doc.get("actions", {})),
        catalog=doc.get("catalog"),
        source=source,
    )


def load_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load defaults, then the config file, then environment overrides.

    An explicitly given ``path`` must exist; the default location is optional.
    """
    environ = os.environ if environ is None else environ
    merged = copy.deepcopy(DEFAULT_CONFIG)
    source = "<defaults>"

    config_path = path or default_config_path()
    if config_path.exists():
        file_doc = _stringify_action_keys(
            read_document(config_path, validation_error=ConfigValidationError, load_error=ConfigLoadError)
        )
        validate_document(file_doc, "config.schema.json", config_path, validation_error=ConfigValidationError)
        merged = _merge(merged, file_doc)
        source = str(config_path)
        LOGGER.debug("Loaded configuration from %s", config_path)
    elif path is not None:
        raise ConfigLoadError(f"Config file not found: {path}")

    merged = _merge(merged, _environment_overrides(environ))
    return build_config(merged, source)
