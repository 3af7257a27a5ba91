"""
Settings loader -- YAML files plus environment overlay into InventorySettings.

Resolution order (later wins):
    1. defaults.yaml shipped with the package
    2. the YAML file named by INVENTORY_CONFIG (or passed explicitly)
    3. DATABASE_URL and INVENTORY_LOG_LEVEL environment variables

Failure modes:
    - ConfigurationError on unreadable / malformed YAML, unknown sections or
      keys, and out-of-range values.
"""

import logging
import os
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from inventory_config.schema import (
    ConcurrencySettings,
    DatabaseSettings,
    InventorySettings,
    NumberingSettings,
    PricingSettings,
    ReceivingLocationSettings,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_PATH = "INVENTORY_CONFIG"
ENV_DATABASE_URL = "DATABASE_URL"
ENV_LOG_LEVEL = "INVENTORY_LOG_LEVEL"

_SECTIONS = {
    "database": DatabaseSettings,
    "concurrency": ConcurrencySettings,
    "pricing": PricingSettings,
    "numbering": NumberingSettings,
    "receiving_location": ReceivingLocationSettings,
}

_AUDIT_SINKS = ("logging", "database", "none")


class ConfigurationError(ValueError):
    """Settings could not be loaded or failed validation."""


def load_yaml_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; overlay values win."""
    out = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge(out[key], value)
        else:
            out[key] = value
    return out


def _coerce(section: str, name: str, default: Any, value: Any) -> Any:
    where = f"{section}.{name}"
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigurationError(f"{where} must be true or false")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{where} must be an integer")
        if value < 0:
            raise ConfigurationError(f"{where} must not be negative")
        return value
    if isinstance(default, Decimal):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ConfigurationError(f"{where} must be a decimal number") from None
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigurationError(f"{where} must not be empty")
    return str(value)


def _build_section(name: str, data: Any):
    cls = _SECTIONS[name]
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Section '{name}' must be a mapping")
    defaults = cls()
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{name}': {', '.join(sorted(unknown))}")
    values = {
        key: _coerce(name, key, getattr(defaults, key), value)
        for key, value in data.items()
    }
    return cls(**values)


def build_settings(data: Mapping[str, Any]) -> InventorySettings:
    unknown = set(data) - set(_SECTIONS) - {"logging", "audit"}
    if unknown:
        raise ConfigurationError(f"Unknown config sections: {', '.join(sorted(unknown))}")

    sections = {name: _build_section(name, data.get(name)) for name in _SECTIONS}

    log_level = str((data.get("logging") or {}).get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigurationError(f"logging.level is not a log level: {log_level}")

    audit_sink = str((data.get("audit") or {}).get("sink", "logging")).lower()
    if audit_sink not in _AUDIT_SINKS:
        raise ConfigurationError(
            f"audit.sink must be one of {', '.join(_AUDIT_SINKS)}, got {audit_sink}"
        )

    if sections["pricing"].sales_tax_rate < 0:
        raise ConfigurationError("pricing.sales_tax_rate must not be negative")
    if not 1 <= sections["numbering"].width <= 18:
        raise ConfigurationError("numbering.width must be between 1 and 18")
    if sections["concurrency"].lock_timeout_ms == 0:
        raise ConfigurationError("concurrency.lock_timeout_ms must be positive")

    return InventorySettings(log_level=log_level, audit_sink=audit_sink, **sections)


def load_settings(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> InventorySettings:
    """Defaults, then the optional override file, then environment variables."""
    env = os.environ if environ is None else environ
    data = load_yaml_file(DEFAULTS_PATH)

    path = config_path or env.get(ENV_CONFIG_PATH)
    if path:
        data = merge(data, load_yaml_file(Path(path)))

    if env.get(ENV_DATABASE_URL):
        data = merge(data, {"database": {"url": env[ENV_DATABASE_URL]}})
    if env.get(ENV_LOG_LEVEL):
        data = merge(data, {"logging": {"level": env[ENV_LOG_LEVEL]}})

    return build_settings(data)
