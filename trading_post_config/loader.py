"""
Configuration Loader (``trading_post_config.loader``).

Responsibility
--------------
Reads YAML files, merges them section by section and parses the result
into the frozen ``trading_post_config.schema`` dataclasses.  Callers use
``trading_post_config.get_active_config()``; nothing else should call the
loader directly.

Invariants enforced
-------------------
* Unknown sections and unknown keys are errors, not silently ignored.
* Money-like values (ratio, value, weight) are parsed through ``str`` into
  ``Decimal`` so a YAML float never leaks binary rounding into prices.
* ``compute_checksum`` is a deterministic SHA-256 over canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad keys or values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from trading_post_config.schema import (
    DatabaseConfig,
    EngineConfig,
    LoggingConfig,
    NewGoodDefaultsConfig,
    PricingConfig,
    TradingPostConfig,
)

_SECTIONS = {
    "database": DatabaseConfig,
    "pricing": PricingConfig,
    "new_good_defaults": NewGoodDefaultsConfig,
    "engine": EngineConfig,
    "logging": LoggingConfig,
}

_DECIMAL_KEYS = frozenset({"sale_price_ratio", "value", "weight"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def merge_sections(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``overlay`` on ``base`` one section deep."""
    merged = {key: dict(value or {}) for key, value in base.items()}
    for section, values in overlay.items():
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ValueError(f"Section {section!r} must be a mapping")
        merged.setdefault(section, {}).update(values)
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 checksum of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(
    data: dict[str, Any],
    sources: tuple[str, ...] = (),
) -> TradingPostConfig:
    """
    Parse a merged configuration dict.

    Raises:
        ValueError: On unknown sections/keys or invalid values.
    """
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    sections = {
        name: _parse_section(name, cls, data.get(name) or {})
        for name, cls in _SECTIONS.items()
    }
    return TradingPostConfig(
        **sections,
        sources=sources,
        checksum=compute_checksum(data),
    )


def _parse_section(name: str, cls: type, values: dict[str, Any]):
    allowed = {f.name for f in fields(cls)}
    unknown = set(values) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in {name}: {sorted(unknown)}")

    kwargs = {}
    for key, value in values.items():
        if key in _DECIMAL_KEYS:
            kwargs[key] = parse_decimal(value, f"{name}.{key}")
        else:
            kwargs[key] = value
    return cls(**kwargs)


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a YAML scalar into Decimal via its string form."""
    if isinstance(value, bool):
        raise ValueError(f"{key} must be numeric, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key} must be numeric, got {value!r}") from None
