"""
trading_post_config -- single public entrypoint for configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables.

Architecture position:
    Configuration sits above the ``trading_post`` kernel.  The kernel MUST
    NEVER import from ``trading_post_config``; ``bridges`` translates the
    loaded config into kernel inputs (EngineSettings, a sessionmaker).

Invariants enforced:
    - Shipped ``defaults.yaml`` is always loaded first; an override file
      only replaces the keys it names.
    - Deterministic checksum: the same merged YAML always produces the same
      ``TradingPostConfig.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from trading_post_config.loader import load_yaml_file, merge_sections, parse_config
from trading_post_config.schema import TradingPostConfig

__all__ = ["get_active_config", "TradingPostConfig", "CONFIG_ENV_VAR"]

_logger = logging.getLogger("trading_post.config")

CONFIG_ENV_VAR = "TRADING_POST_CONFIG"

_DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: str | Path | None = None) -> TradingPostConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Optional YAML file merged over the shipped defaults.
            When omitted, the ``TRADING_POST_CONFIG`` environment variable
            is consulted; when that is unset too, the defaults stand alone.

    Returns:
        Frozen, validated TradingPostConfig.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or None

    data = load_yaml_file(_DEFAULTS_FILE)
    sources = [str(_DEFAULTS_FILE)]
    if config_path is not None:
        override = Path(config_path)
        data = merge_sections(data, load_yaml_file(override))
        sources.append(str(override))

    config = parse_config(data, sources=tuple(sources))

    _logger.info(
        "config_loaded",
        extra={
            "sources": list(config.sources),
            "checksum": config.checksum,
            "database_dialect": config.database.url.split(":", 1)[0],
            "sale_price_ratio": str(config.pricing.sale_price_ratio),
        },
    )
    return config
