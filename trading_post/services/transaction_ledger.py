"""
TransactionLedger -- store of transactions and their line items.

Responsibility:
    Persists transactions, replaces their item lists, and removes them.
    The ledger computes ``total_amount`` from the lines it writes; callers
    hand it priced lines, never a total.

Architecture position:
    Kernel > Services -- imperative shell, flush-only (see BaseService).
    Knows nothing about stock: the engine pairs every ledger write with
    the matching GoodStore adjustments inside one unit of work.

Invariants enforced:
    - Every transaction has at least one line.
    - total_amount == sum(quantity * unit_price) over the lines, recomputed
      on every write.
    - line_seq follows input order starting at 1.
    - transaction_type and the party snapshot are written once, at creation.

Failure modes:
    - TransactionNotFoundError: unknown transaction id.
    - TransactionError: an attempt to write a transaction without lines.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from trading_post.domain.clock import ensure_utc
from trading_post.domain.dtos import PartyRef, TransactionInfo
from trading_post.domain.values import TransactionType
from trading_post.exceptions import TransactionError, TransactionNotFoundError
from trading_post.logging_config import get_logger
from trading_post.models.transaction import Transaction, TransactionLine
from trading_post.selectors.transaction_selector import transaction_to_info
from trading_post.services.base import BaseService

logger = get_logger("services.ledger")


@dataclass(frozen=True)
class LineDraft:
    """A priced line, ready to be written."""

    good_id: UUID
    good_name: str
    quantity: int
    unit_price: Decimal

    @property
    def amount(self) -> Decimal:
        return self.unit_price * self.quantity


def total_of(lines: Sequence[LineDraft]) -> Decimal:
    return sum((line.amount for line in lines), Decimal("0"))


class TransactionLedger(BaseService[Transaction]):
    """Write side of the transactions tables."""

    def _load(self, transaction_id: UUID, lock: bool = False) -> Transaction:
        kwargs = {}
        if lock:
            kwargs["populate_existing"] = True
            if self.supports_row_locks:
                kwargs["with_for_update"] = True
        txn = self.session.get(Transaction, transaction_id, **kwargs)
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return txn

    def get(self, transaction_id: UUID) -> TransactionInfo:
        return transaction_to_info(self._load(transaction_id))

    def lock(self, transaction_id: UUID) -> TransactionInfo:
        """
        Load a transaction holding its row lock until the unit of work ends.

        Raises:
            TransactionNotFoundError: If the transaction does not exist.
        """
        return transaction_to_info(self._load(transaction_id, lock=True))

    def record(
        self,
        transaction_type: TransactionType,
        party: PartyRef,
        lines: Sequence[LineDraft],
        occurred_at: datetime,
    ) -> TransactionInfo:
        """Write a new transaction with its lines and computed total."""
        if not lines:
            raise TransactionError("A transaction needs at least one line item")

        txn = Transaction(
            transaction_type=transaction_type.value,
            party_id=party.id,
            party_kind=party.kind.value,
            party_name=party.name,
            total_amount=total_of(lines),
            occurred_at=ensure_utc(occurred_at),
        )
        txn.lines = self._build_lines(lines)
        self.session.add(txn)
        self.session.flush()

        logger.debug(
            "transaction_recorded",
            extra={"transaction_id": str(txn.id), "line_count": len(lines)},
        )
        return transaction_to_info(txn)

    def replace_lines(
        self,
        transaction_id: UUID,
        lines: Sequence[LineDraft],
    ) -> TransactionInfo:
        """Swap the item list of a transaction and recompute its total."""
        if not lines:
            raise TransactionError("A transaction needs at least one line item")

        txn = self._load(transaction_id)
        txn.lines.clear()
        # Old rows must be gone before the new ones reuse their line_seq.
        self.session.flush()

        txn.lines.extend(self._build_lines(lines))
        txn.total_amount = total_of(lines)
        self.session.flush()
        return transaction_to_info(txn)

    def set_occurred_at(self, transaction_id: UUID, occurred_at: datetime) -> TransactionInfo:
        txn = self._load(transaction_id)
        txn.occurred_at = ensure_utc(occurred_at)
        self.session.flush()
        return transaction_to_info(txn)

    def remove(self, transaction_id: UUID) -> None:
        """Hard-delete a transaction and its lines."""
        txn = self._load(transaction_id)
        self.session.delete(txn)
        self.session.flush()

    @staticmethod
    def _build_lines(lines: Sequence[LineDraft]) -> list[TransactionLine]:
        return [
            TransactionLine(
                line_seq=seq,
                good_id=line.good_id,
                good_name=line.good_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for seq, line in enumerate(lines, start=1)
        ]
