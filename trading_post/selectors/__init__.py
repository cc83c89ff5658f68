"""Selectors for the trading post (read side)."""

from trading_post.selectors.base import BaseSelector
from trading_post.selectors.good_selector import GoodSelector, good_to_info
from trading_post.selectors.report_selector import (
    BestSeller,
    IncomeStatement,
    ReportSelector,
    StockLine,
    StockReport,
)
from trading_post.selectors.transaction_selector import (
    TransactionSelector,
    transaction_to_info,
)

__all__ = [
    "BaseSelector",
    "BestSeller",
    "GoodSelector",
    "IncomeStatement",
    "ReportSelector",
    "StockLine",
    "StockReport",
    "TransactionSelector",
    "good_to_info",
    "transaction_to_info",
]
