"""
Atomicity and retry behaviour of TransactionEngine.

A failure on any line item must leave the store exactly as it was: no
partial stock adjustments and no transaction record.  Storage failures are
retried as a whole; business errors never are.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from trading_post.domain.dtos import LineItemRequest, NewGoodDefaults, TransactionRequest
from trading_post.domain.pricing import EngineSettings
from trading_post.domain.values import TransactionType
from trading_post.exceptions import (
    GoodNotFoundError,
    InsufficientStockError,
    InvalidRequestError,
    StorageFailureError,
)
from trading_post.services.good_store import GoodStore
from trading_post.services.transaction_engine import TransactionEngine


def _request(kind, person, *items):
    return TransactionRequest(
        transaction_type=kind,
        person_name=person,
        items=tuple(LineItemRequest(name, qty) for name, qty in items),
    )


class FlakySessionFactory:
    """Wraps a sessionmaker; the first ``failures`` calls raise OperationalError."""

    def __init__(self, factory, failures: int):
        self._factory = factory
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise OperationalError("BEGIN", {}, Exception("database is locked"))
        return self._factory()


class TestAllOrNothing:
    def test_failure_on_last_item_rolls_back_earlier_items(self, engine, trading_post):
        with pytest.raises(InsufficientStockError):
            engine.create_transaction(
                _request(TransactionType.PURCHASE, "Geralt", ("Sword", 3), ("Shield", 9))
            )

        assert trading_post.stocks() == {"Sword": 10, "Shield": 4}
        assert engine.query_transactions() == []

    def test_unknown_good_mid_list_rolls_back(self, engine, trading_post):
        with pytest.raises(GoodNotFoundError):
            engine.create_transaction(
                _request(
                    TransactionType.PURCHASE,
                    "Geralt",
                    ("Sword", 1),
                    ("Crossbow", 1),
                    ("Shield", 1),
                )
            )
        assert trading_post.stocks() == {"Sword": 10, "Shield": 4}

    def test_sale_created_goods_vanish_on_failure(self, engine, trading_post, monkeypatch):
        """A sale whose later line fails must not leave the created good behind."""
        original = GoodStore.create_if_missing
        calls = []

        def fail_on_third_line(self, name, defaults, supplier_name):
            calls.append(name)
            if len(calls) == 3:
                raise RuntimeError("disk full")
            return original(self, name, defaults, supplier_name)

        monkeypatch.setattr(GoodStore, "create_if_missing", fail_on_third_line)

        with pytest.raises(RuntimeError):
            engine.create_transaction(
                _request(TransactionType.SALE, "Hattori", ("Herb", 3), ("Sword", 2), ("Rope", 1))
            )

        assert calls == ["Herb", "Sword", "Rope"]
        assert trading_post.stock_of("Herb") is None
        assert trading_post.stock_of("Rope") is None
        assert trading_post.stock_of("Sword") == 10
        assert engine.query_transactions() == []

    def test_invalid_new_good_rejected_before_any_change(self, engine, trading_post):
        request = TransactionRequest(
            transaction_type=TransactionType.SALE,
            person_name="Hattori",
            items=(
                LineItemRequest("Herb", 3),
                LineItemRequest("Rope", 1, NewGoodDefaults(description="bad")),
            ),
        )
        with pytest.raises(InvalidRequestError):
            engine.create_transaction(request)

        assert trading_post.stock_of("Herb") is None

    def test_delete_then_recreate_restores_stock(self, engine, trading_post):
        original = engine.create_transaction(
            _request(TransactionType.PURCHASE, "Geralt", ("Sword", 4), ("Shield", 2))
        )
        after_create = trading_post.stocks()

        engine.delete_transaction(original.id)
        assert trading_post.stocks() == {"Sword": 10, "Shield": 4}

        engine.create_transaction(
            _request(TransactionType.PURCHASE, "Geralt", ("Sword", 4), ("Shield", 2))
        )
        assert trading_post.stocks() == after_create

    def test_stock_never_negative_after_mixed_operations(self, engine, trading_post):
        engine.create_transaction(_request(TransactionType.SALE, "Hattori", ("Shield", 1)))
        bought = engine.create_transaction(
            _request(TransactionType.PURCHASE, "Ciri", ("Shield", 5))
        )
        with pytest.raises(InsufficientStockError):
            engine.create_transaction(_request(TransactionType.PURCHASE, "Geralt", ("Shield", 1)))

        engine.delete_transaction(bought.id)
        assert trading_post.stock_of("Shield") == 5
        assert all(stock >= 0 for stock in trading_post.stocks().values())


class TestStorageRetry:
    def test_transient_failure_is_retried(self, session_factory, trading_post, deterministic_clock):
        flaky = FlakySessionFactory(session_factory, failures=2)
        engine = TransactionEngine(
            flaky,
            settings=EngineSettings(storage_retry_attempts=3, retry_backoff_seconds=0),
            clock=deterministic_clock,
        )

        txn = engine.create_transaction(
            _request(TransactionType.PURCHASE, "Geralt", ("Sword", 2))
        )

        assert flaky.calls == 3
        assert txn.total_amount == Decimal("200")
        assert trading_post.stock_of("Sword") == 8

    def test_retries_exhausted(self, session_factory, trading_post, deterministic_clock, captured_logs):
        flaky = FlakySessionFactory(session_factory, failures=5)
        engine = TransactionEngine(
            flaky,
            settings=EngineSettings(storage_retry_attempts=2, retry_backoff_seconds=0),
            clock=deterministic_clock,
        )

        with pytest.raises(StorageFailureError) as exc_info:
            engine.create_transaction(_request(TransactionType.PURCHASE, "Geralt", ("Sword", 2)))

        assert exc_info.value.operation == "create_transaction"
        assert "database is locked" in exc_info.value.reason
        assert flaky.calls == 2
        assert trading_post.stock_of("Sword") == 10
        retries = [r for r in captured_logs() if r["message"] == "storage_retry"]
        assert len(retries) == 1

    def test_business_errors_are_not_retried(self, session_factory, trading_post, deterministic_clock):
        counting = FlakySessionFactory(session_factory, failures=0)
        engine = TransactionEngine(
            counting,
            settings=EngineSettings(storage_retry_attempts=3, retry_backoff_seconds=0),
            clock=deterministic_clock,
        )

        with pytest.raises(InsufficientStockError):
            engine.create_transaction(_request(TransactionType.PURCHASE, "Geralt", ("Sword", 11)))

        assert counting.calls == 1
