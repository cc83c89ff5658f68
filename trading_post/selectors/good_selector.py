"""
GoodSelector -- read-only catalog queries.

Returns GoodInfo DTOs ordered by name.  ``good_to_info`` is the single
ORM-to-DTO conversion for goods and is shared with the write side.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from trading_post.domain.dtos import GoodInfo
from trading_post.domain.values import GoodCategory
from trading_post.models.good import Good
from trading_post.selectors.base import BaseSelector


def good_to_info(good: Good) -> GoodInfo:
    """Convert an ORM Good to its immutable DTO."""
    return GoodInfo(
        id=good.id,
        name=good.name,
        description=good.description,
        category=GoodCategory(good.category),
        material=good.material,
        value=Decimal(good.value),
        stock=int(good.stock),
        weight=Decimal(good.weight),
        version=int(good.version),
    )


class GoodSelector(BaseSelector[Good]):
    """Catalog listings and lookups."""

    def get(self, good_id: UUID) -> GoodInfo | None:
        good = self.session.get(Good, good_id)
        return good_to_info(good) if good is not None else None

    def by_name(self, name: str) -> GoodInfo | None:
        """Exact (case-sensitive) name lookup."""
        stmt = select(Good).where(Good.name == name)
        good = self.session.execute(stmt).scalar_one_or_none()
        return good_to_info(good) if good is not None else None

    def list_goods(self) -> list[GoodInfo]:
        stmt = select(Good).order_by(Good.name)
        return [good_to_info(g) for g in self.session.execute(stmt).scalars()]

    def by_category(self, category: GoodCategory | str) -> list[GoodInfo]:
        category = GoodCategory(category)
        stmt = select(Good).where(Good.category == category.value).order_by(Good.name)
        return [good_to_info(g) for g in self.session.execute(stmt).scalars()]

    def by_material(self, material: str) -> list[GoodInfo]:
        stmt = select(Good).where(Good.material == material).order_by(Good.name)
        return [good_to_info(g) for g in self.session.execute(stmt).scalars()]

    def in_stock(self) -> list[GoodInfo]:
        """Goods with at least one unit on hand."""
        stmt = select(Good).where(Good.stock > 0).order_by(Good.name)
        return [good_to_info(g) for g in self.session.execute(stmt).scalars()]
