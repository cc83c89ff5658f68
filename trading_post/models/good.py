"""
Module: trading_post.models.good
Responsibility: ORM persistence for the goods the trading post stocks: the
    catalog attributes, the unit value transactions are priced from, and the
    stock count transactions move.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.  MUST NOT import from services/, selectors/, or
    outer layers.

Invariants enforced:
    - name is unique (uq_good_name); it is the key line items are matched on.
    - stock >= 0, value >= 0, weight >= 0 (CHECK constraints).  The service
      layer never relies on the constraint to detect insufficient stock: the
      conditional UPDATE in GoodStore.adjust_stock is the linearization point.
    - version increments on every write (optimistic lock column).

Failure modes:
    - IntegrityError on duplicate name or a violated CHECK constraint.
    - StaleDataError when an ORM flush finds the version already moved on.
"""

from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from trading_post.db.base import TrackedBase
from trading_post.domain.values import GoodCategory


class Good(TrackedBase):
    """
    A stocked good.

    Guarantees:
        - stock is a non-negative integer count.
        - value is the catalog unit value purchases are priced at.
        - version changes on every stock adjustment and catalog edit.

    Non-goals:
        - Goods are not soft-deleted.  Line items reference them weakly by
          id and keep a name snapshot, so deleting a good never touches the
          ledger.
    """

    __tablename__ = "goods"

    __table_args__ = (
        UniqueConstraint("name", name="uq_good_name"),
        CheckConstraint("stock >= 0", name="ck_good_stock_non_negative"),
        CheckConstraint("value >= 0", name="ck_good_value_non_negative"),
        CheckConstraint("weight >= 0", name="ck_good_weight_non_negative"),
        Index("idx_good_category", "category"),
        Index("idx_good_material", "material"),
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    category: Mapped[GoodCategory] = mapped_column(
        String(20),
        nullable=False,
        default=GoodCategory.OTHER,
    )

    material: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Catalog unit value
    value: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    stock: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    weight: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("1"),
    )

    version: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=1,
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Good {self.name}: stock={self.stock} value={self.value}>"
