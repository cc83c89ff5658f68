"""
TradingPostConfig schema.

Typed, frozen view of the merged YAML configuration.  Every section
validates itself in ``__post_init__`` and raises ValueError with the
offending key, so a bad file fails at load time rather than mid-request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///trading_post.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    busy_timeout_ms: int = 30000

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url is required")
        for name in ("pool_size", "pool_timeout", "busy_timeout_ms"):
            if getattr(self, name) < 1:
                raise ValueError(f"database.{name} must be positive")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow cannot be negative")


@dataclass(frozen=True)
class PricingConfig:
    sale_price_ratio: Decimal = Decimal("1")
    price_places: int = 2

    def __post_init__(self) -> None:
        if not (Decimal("0") < self.sale_price_ratio <= Decimal("1")):
            raise ValueError(
                f"pricing.sale_price_ratio must be in (0, 1], got {self.sale_price_ratio}"
            )
        if self.price_places < 0:
            raise ValueError("pricing.price_places cannot be negative")


@dataclass(frozen=True)
class NewGoodDefaultsConfig:
    """Attributes of goods first seen on a sale."""

    description_template: str = "Supplied by {supplier}"
    category: str = "Other"
    material: str = "Common"
    value: Decimal = Decimal("100")
    weight: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        if self.value < 0 or self.weight < 0:
            raise ValueError("new_good_defaults value and weight cannot be negative")


@dataclass(frozen=True)
class EngineConfig:
    storage_retry_attempts: int = 3
    retry_backoff_seconds: float = 0.05

    def __post_init__(self) -> None:
        if self.storage_retry_attempts < 1:
            raise ValueError("engine.storage_retry_attempts must be at least 1")
        if self.retry_backoff_seconds < 0:
            raise ValueError("engine.retry_backoff_seconds cannot be negative")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {_LOG_LEVELS}, got {self.level!r}")


@dataclass(frozen=True)
class TradingPostConfig:
    """The merged configuration plus where it came from."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    new_good_defaults: NewGoodDefaultsConfig = field(default_factory=NewGoodDefaultsConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    sources: tuple[str, ...] = ()
    checksum: str = ""
