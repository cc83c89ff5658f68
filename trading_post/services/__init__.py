"""Services for the trading post (write side)."""

from trading_post.services.good_store import GoodStore
from trading_post.services.party_service import PartyInfo, PartyResolver, PartyService
from trading_post.services.transaction_engine import TransactionEngine
from trading_post.services.transaction_ledger import LineDraft, TransactionLedger
from trading_post.services.unit_of_work import UnitOfWork

__all__ = [
    "GoodStore",
    "LineDraft",
    "PartyInfo",
    "PartyResolver",
    "PartyService",
    "TransactionEngine",
    "TransactionLedger",
    "UnitOfWork",
]
