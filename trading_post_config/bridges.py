"""
Config -> Kernel Bridges.

Functions that convert a TradingPostConfig into kernel inputs.  They live
here (the producer) because the kernel must NEVER import
trading_post_config.

Usage:
    from trading_post_config import get_active_config
    from trading_post_config.bridges import build_transaction_engine

    config = get_active_config()
    engine = build_transaction_engine(config)
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from trading_post.db.engine import create_db_engine
from trading_post.domain.clock import Clock
from trading_post.domain.pricing import EngineSettings, NewGoodPolicy, PricingPolicy
from trading_post.domain.values import GoodCategory
from trading_post.logging_config import configure_logging
from trading_post.services.transaction_engine import TransactionEngine
from trading_post_config.schema import TradingPostConfig


def build_engine_settings(config: TradingPostConfig) -> EngineSettings:
    """Translate the pricing, new-good and engine sections."""
    defaults = config.new_good_defaults
    try:
        category = GoodCategory(defaults.category)
    except ValueError:
        raise ValueError(
            f"new_good_defaults.category: unknown category {defaults.category!r}"
        ) from None

    return EngineSettings(
        pricing=PricingPolicy(
            sale_price_ratio=config.pricing.sale_price_ratio,
            price_places=config.pricing.price_places,
        ),
        new_goods=NewGoodPolicy(
            description_template=defaults.description_template,
            category=category,
            material=defaults.material,
            value=defaults.value,
            weight=defaults.weight,
        ),
        storage_retry_attempts=config.engine.storage_retry_attempts,
        retry_backoff_seconds=config.engine.retry_backoff_seconds,
    )


def build_session_factory(config: TradingPostConfig) -> sessionmaker[Session]:
    """Create an Engine from the database section and bind a sessionmaker to it."""
    db = config.database
    engine = create_db_engine(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        busy_timeout_ms=db.busy_timeout_ms,
    )
    return sessionmaker(bind=engine, expire_on_commit=False)


def apply_logging_config(config: TradingPostConfig) -> None:
    configure_logging(level=config.logging.level.upper())


def build_transaction_engine(
    config: TradingPostConfig,
    clock: Clock | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> TransactionEngine:
    """Wire a TransactionEngine from configuration."""
    return TransactionEngine(
        session_factory or build_session_factory(config),
        settings=build_engine_settings(config),
        clock=clock,
    )
