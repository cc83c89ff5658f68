"""
ReportSelector -- inventory and trading reports as data.

Responsibility:
    Computes the post's standing reports from goods and the ledger: the
    stock report, income and expenses, best selling goods and a person's
    history.  Nothing here is stored; every report is derived on demand.

Architecture position:
    Kernel > Selectors.  Read-only; same session contract as BaseSelector.

Invariants enforced:
    - Money is summed in Python over Decimal values, never with SQL SUM on
      Numeric columns (SQLite would hand back floats).
    - Income is what hunters paid on purchases; expenses are what the post
      paid merchants on sales.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select

from trading_post.domain.dtos import TransactionInfo
from trading_post.domain.values import GoodCategory, TransactionType
from trading_post.models.good import Good
from trading_post.models.transaction import Transaction, TransactionLine
from trading_post.selectors.base import BaseSelector
from trading_post.selectors.transaction_selector import TransactionSelector


@dataclass(frozen=True)
class StockLine:
    name: str
    category: GoodCategory
    material: str
    stock: int
    unit_value: Decimal

    @property
    def stock_value(self) -> Decimal:
        return self.unit_value * self.stock


@dataclass(frozen=True)
class StockReport:
    lines: tuple[StockLine, ...]

    @property
    def total_units(self) -> int:
        return sum(line.stock for line in self.lines)

    @property
    def total_value(self) -> Decimal:
        return sum((line.stock_value for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class IncomeStatement:
    """Totals over the whole ledger."""

    income: Decimal
    expenses: Decimal
    purchase_count: int
    sale_count: int

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


@dataclass(frozen=True)
class BestSeller:
    good_name: str
    quantity_sold: int
    times_sold: int


class ReportSelector(BaseSelector[Transaction]):
    """Derived reports over goods and transactions."""

    def stock_report(self) -> StockReport:
        """Per-good stock and stock value, ordered by name."""
        stmt = select(Good).order_by(Good.name)
        lines = tuple(
            StockLine(
                name=good.name,
                category=GoodCategory(good.category),
                material=good.material,
                stock=int(good.stock),
                unit_value=Decimal(good.value),
            )
            for good in self.session.execute(stmt).scalars()
        )
        return StockReport(lines=lines)

    def income_and_expenses(self) -> IncomeStatement:
        stmt = select(Transaction.transaction_type, Transaction.total_amount)
        income = Decimal("0")
        expenses = Decimal("0")
        purchases = sales = 0
        for transaction_type, total in self.session.execute(stmt):
            if TransactionType(transaction_type) is TransactionType.PURCHASE:
                income += Decimal(total)
                purchases += 1
            else:
                expenses += Decimal(total)
                sales += 1
        return IncomeStatement(
            income=income,
            expenses=expenses,
            purchase_count=purchases,
            sale_count=sales,
        )

    def best_selling_goods(self, limit: int = 5) -> list[BestSeller]:
        """
        Goods ranked by total quantity sold to hunters.

        Ties are broken by name.  Goods never bought by a hunter are absent.
        """
        if limit < 1:
            return []
        quantity_sold = func.sum(TransactionLine.quantity)
        stmt = (
            select(
                TransactionLine.good_name,
                quantity_sold.label("quantity_sold"),
                func.count(TransactionLine.id).label("times_sold"),
            )
            .join(Transaction, TransactionLine.transaction_id == Transaction.id)
            .where(Transaction.transaction_type == TransactionType.PURCHASE.value)
            .group_by(TransactionLine.good_name)
            .order_by(quantity_sold.desc(), TransactionLine.good_name)
            .limit(limit)
        )
        return [
            BestSeller(
                good_name=row.good_name,
                quantity_sold=int(row.quantity_sold),
                times_sold=int(row.times_sold),
            )
            for row in self.session.execute(stmt)
        ]

    def history_for(self, person_name: str) -> list[TransactionInfo]:
        """A person's transactions, name matched case-insensitively."""
        return TransactionSelector(self.session).history_for(person_name)
