"""
Module: trading_post.selectors.transaction_selector
Responsibility: Read-only query access to ledger transactions and their lines.
    Converts ORM models to frozen DTOs for clean layer separation.
Architecture position: Kernel > Selectors.  May import from models/, domain/
    and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: No mutations performed on any queried data.
    - DTO convention: All public methods return TransactionInfo, never raw ORM
      models.
    - Lines are sorted by line_seq; query results by occurred_at descending,
      then id, so repeated queries return the same order.

Failure modes:
    - Returns None or an empty list when nothing matches (never raises on
      absence of data).
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from trading_post.domain.clock import ensure_utc
from trading_post.domain.dtos import LineItemInfo, PartyRef, TransactionInfo, TransactionQuery
from trading_post.domain.values import PartyKind, TransactionType
from trading_post.models.party import Party
from trading_post.models.transaction import Transaction
from trading_post.selectors.base import BaseSelector


def transaction_to_info(txn: Transaction) -> TransactionInfo:
    """Convert an ORM Transaction (lines loaded) to its immutable DTO."""
    items = tuple(
        LineItemInfo(
            good_id=line.good_id,
            good_name=line.good_name,
            quantity=int(line.quantity),
            unit_price=Decimal(line.unit_price),
            line_seq=int(line.line_seq),
        )
        for line in sorted(txn.lines, key=lambda line: line.line_seq)
    )
    return TransactionInfo(
        id=txn.id,
        transaction_type=TransactionType(txn.transaction_type),
        party=PartyRef(
            id=txn.party_id,
            kind=PartyKind(txn.party_kind),
            name=txn.party_name,
        ),
        items=items,
        total_amount=Decimal(txn.total_amount),
        occurred_at=ensure_utc(txn.occurred_at),
    )


def _lower_bound(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


class TransactionSelector(BaseSelector[Transaction]):
    """
    Ledger queries.

    Contract:
        ``query`` applies every criterion set on the TransactionQuery and
        ignores the unset ones; an empty query lists the whole ledger.
    """

    def _base_query(self):
        return select(Transaction).options(selectinload(Transaction.lines))

    def get(self, transaction_id: UUID) -> TransactionInfo | None:
        stmt = self._base_query().where(Transaction.id == transaction_id)
        txn = self.session.execute(stmt).scalar_one_or_none()
        return transaction_to_info(txn) if txn is not None else None

    def _person_clause(self, person_name: str, *, ignore_case: bool = False):
        """Match the name on record at the time or the party's current name."""
        if ignore_case:
            name = person_name.lower()
            current = select(Party.id).where(func.lower(Party.name) == name)
            return or_(func.lower(Transaction.party_name) == name, Transaction.party_id.in_(current))
        current = select(Party.id).where(Party.name == person_name)
        return or_(Transaction.party_name == person_name, Transaction.party_id.in_(current))

    def query(self, filters: TransactionQuery | None = None) -> list[TransactionInfo]:
        """
        Filter the ledger.

        Postconditions:
            - person_name matches exactly, against either the name on
              record when the transaction was made or the party's current
              name, so a renamed party keeps its history.
            - start/end are inclusive; a ``date`` end bound covers that whole
              day, a ``datetime`` end bound is exact.
            - start after end yields an empty list.
        """
        filters = filters or TransactionQuery()
        stmt = self._base_query()

        if filters.person_name is not None:
            stmt = stmt.where(self._person_clause(filters.person_name))
        if filters.transaction_type is not None:
            stmt = stmt.where(Transaction.transaction_type == filters.transaction_type.value)
        if filters.start is not None:
            stmt = stmt.where(Transaction.occurred_at >= _lower_bound(filters.start))
        if filters.end is not None:
            if isinstance(filters.end, datetime):
                stmt = stmt.where(Transaction.occurred_at <= ensure_utc(filters.end))
            else:
                next_day = _lower_bound(filters.end) + timedelta(days=1)
                stmt = stmt.where(Transaction.occurred_at < next_day)

        stmt = stmt.order_by(Transaction.occurred_at.desc(), Transaction.id)
        return [transaction_to_info(t) for t in self.session.execute(stmt).scalars()]

    def history_for(self, person_name: str) -> list[TransactionInfo]:
        """All transactions of a person, matching the name case-insensitively."""
        stmt = (
            self._base_query()
            .where(self._person_clause(person_name, ignore_case=True))
            .order_by(Transaction.occurred_at.desc(), Transaction.id)
        )
        return [transaction_to_info(t) for t in self.session.execute(stmt).scalars()]

    def count(self, transaction_type: TransactionType | None = None) -> int:
        stmt = select(func.count()).select_from(Transaction)
        if transaction_type is not None:
            stmt = stmt.where(Transaction.transaction_type == transaction_type.value)
        return self.session.execute(stmt).scalar_one()
