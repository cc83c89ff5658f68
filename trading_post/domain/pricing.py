"""
Pricing -- unit price derivation and new-good defaults.

Responsibility:
    Derives the unit price of a line from the good's catalog value and the
    transaction direction, and supplies the attributes of goods created on
    the sale path when the merchant's offer does not carry them.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The engine receives
    these policies at construction; trading_post_config builds them from
    YAML (the kernel never reads configuration itself).

Invariants enforced:
    - Purchases are priced at the exact catalog value.
    - Sales are priced at catalog value x sale_price_ratio, one ratio for
      every sale (default 1, i.e. the exact catalog value).
    - Only a discounted sale price is quantized with round_money(); the
      catalog value itself is never rounded.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from trading_post.domain.values import GoodCategory, TransactionType, round_money


@dataclass(frozen=True)
class PricingPolicy:
    """How the engine turns a catalog value into a unit price."""

    sale_price_ratio: Decimal = Decimal("1")
    price_places: int = 2

    def __post_init__(self) -> None:
        if not (Decimal("0") < self.sale_price_ratio <= Decimal("1")):
            raise ValueError(
                f"sale_price_ratio must be in (0, 1], got {self.sale_price_ratio}"
            )
        if self.price_places < 0:
            raise ValueError("price_places cannot be negative")

    def unit_price(self, transaction_type: TransactionType, catalog_value: Decimal) -> Decimal:
        if transaction_type is TransactionType.SALE and self.sale_price_ratio != 1:
            return round_money(catalog_value * self.sale_price_ratio, self.price_places)
        return catalog_value


@dataclass(frozen=True)
class NewGoodPolicy:
    """Fallback attributes for goods first seen on a sale."""

    description_template: str = "Supplied by {supplier}"
    category: GoodCategory = GoodCategory.OTHER
    material: str = "Common"
    value: Decimal = Decimal("100")
    weight: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("default value cannot be negative")
        if self.weight < 0:
            raise ValueError("default weight cannot be negative")

    def description_for(self, supplier: str) -> str:
        return self.description_template.format(supplier=supplier)


@dataclass(frozen=True)
class EngineSettings:
    """Everything the transaction engine is configured with."""

    pricing: PricingPolicy = PricingPolicy()
    new_goods: NewGoodPolicy = NewGoodPolicy()
    storage_retry_attempts: int = 3
    retry_backoff_seconds: float = 0.05

    def __post_init__(self) -> None:
        if self.storage_retry_attempts < 1:
            raise ValueError("storage_retry_attempts must be at least 1")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds cannot be negative")
