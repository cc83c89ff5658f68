"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from trading_post.domain.clock import Clock, DeterministicClock, SystemClock, ensure_utc
from trading_post.domain.dtos import (
    DeletionConfirmation,
    GoodInfo,
    LineItemInfo,
    # Requests
    LineItemRequest,
    NewGoodDefaults,
    PartyRef,
    TransactionInfo,
    TransactionQuery,
    TransactionRequest,
    UpdateTransactionRequest,
    check_items_for,
    normalize_items,
    validate_items,
    validate_new_goods,
    validate_transaction_request,
)
from trading_post.domain.pricing import EngineSettings, NewGoodPolicy, PricingPolicy
from trading_post.domain.values import (
    GoodCategory,
    HunterRace,
    MerchantSpecialty,
    PartyKind,
    TransactionType,
    round_money,
    to_decimal,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "ensure_utc",
    # Values
    "GoodCategory",
    "HunterRace",
    "MerchantSpecialty",
    "PartyKind",
    "TransactionType",
    "round_money",
    "to_decimal",
    # Pricing
    "EngineSettings",
    "NewGoodPolicy",
    "PricingPolicy",
    # DTOs
    "LineItemRequest",
    "NewGoodDefaults",
    "TransactionRequest",
    "UpdateTransactionRequest",
    "TransactionQuery",
    "GoodInfo",
    "PartyRef",
    "LineItemInfo",
    "TransactionInfo",
    "DeletionConfirmation",
    "validate_transaction_request",
    "validate_items",
    "validate_new_goods",
    "check_items_for",
    "normalize_items",
]
