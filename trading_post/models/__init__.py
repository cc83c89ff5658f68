"""ORM models for the trading post."""

from trading_post.models.good import Good
from trading_post.models.party import Party
from trading_post.models.transaction import Transaction, TransactionLine

__all__ = [
    "Good",
    "Party",
    "Transaction",
    "TransactionLine",
]
