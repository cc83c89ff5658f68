"""
Module: trading_post.models.transaction
Responsibility: ORM persistence for ledger transactions and their ordered
    line items.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - A transaction has at least one line (service-enforced; the ORM cannot
      express it).
    - total_amount equals the sum of quantity * unit_price over its lines.
      It is written by TransactionLedger only, never taken from a caller.
    - (transaction_id, line_seq) is unique; line_seq preserves input order.
    - quantity > 0 and unit_price >= 0 (CHECK constraints).
    - Lines reference goods weakly: good_id has no foreign key and a
      good_name snapshot is kept, so removing a good from the catalog does
      not cascade into the ledger.
    - The party is a snapshot (id, kind, name) with no foreign key either.

Failure modes:
    - IntegrityError on duplicate (transaction_id, line_seq) or a violated
      CHECK constraint.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trading_post.db.base import Base, TrackedBase, UUIDString
from trading_post.domain.values import PartyKind, TransactionType


class Transaction(TrackedBase):
    """
    A purchase by a hunter or a sale by a merchant.

    Guarantees:
        - transaction_type and the party snapshot never change after
          creation.
        - lines are loaded in line_seq order and are owned by the
          transaction (delete-orphan cascade).
    """

    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_transaction_total_non_negative"),
        Index("idx_transaction_type", "transaction_type"),
        Index("idx_transaction_party_name", "party_name"),
        Index("idx_transaction_occurred_at", "occurred_at"),
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(10),
        nullable=False,
    )

    # Counterparty snapshot
    party_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    party_kind: Mapped[PartyKind] = mapped_column(
        String(10),
        nullable=False,
    )

    party_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    lines: Mapped[list["TransactionLine"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionLine.line_seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.id} {self.transaction_type} {self.party_name}>"


class TransactionLine(Base):
    """One good exchanged in a transaction, priced at the time it was written."""

    __tablename__ = "transaction_lines"

    __table_args__ = (
        UniqueConstraint("transaction_id", "line_seq", name="uq_transaction_line_seq"),
        CheckConstraint("quantity > 0", name="ck_line_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_line_unit_price_non_negative"),
        Index("idx_line_transaction", "transaction_id"),
        Index("idx_line_good", "good_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # Weak reference; see module docstring
    good_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    good_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    unit_price: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    transaction: Mapped["Transaction"] = relationship(
        back_populates="lines",
    )

    @property
    def amount(self) -> Decimal:
        return self.unit_price * self.quantity

    def __repr__(self) -> str:
        return f"<TransactionLine {self.line_seq}: {self.good_name} x{self.quantity}>"
