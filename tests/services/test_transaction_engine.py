"""
Tests for TransactionEngine.

Covers:
- Scenarios A-E (purchase, insufficient stock, sale of a new good,
  delete reversal, item update)
- Pricing, totals and timestamps
- Update/delete of unknown transactions
- Deleting a transaction whose good left the catalog
- Structured log events
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from trading_post.domain.dtos import (
    LineItemRequest,
    NewGoodDefaults,
    TransactionQuery,
    TransactionRequest,
    UpdateTransactionRequest,
)
from trading_post.domain.pricing import EngineSettings, PricingPolicy
from trading_post.domain.values import GoodCategory, PartyKind, TransactionType
from trading_post.exceptions import (
    GoodNotFoundError,
    InsufficientStockError,
    InvalidRequestError,
    PartyNotFoundError,
    TransactionNotFoundError,
)
from trading_post.services.good_store import GoodStore
from trading_post.services.transaction_engine import TransactionEngine


def purchase(person: str, *items: tuple[str, int]) -> TransactionRequest:
    return TransactionRequest(
        transaction_type=TransactionType.PURCHASE,
        person_name=person,
        items=tuple(LineItemRequest(name, qty) for name, qty in items),
    )


def sale(person: str, *items: tuple[str, int]) -> TransactionRequest:
    return TransactionRequest(
        transaction_type=TransactionType.SALE,
        person_name=person,
        items=tuple(LineItemRequest(name, qty) for name, qty in items),
    )


class TestScenarios:
    def test_a_purchase_reduces_stock(self, engine, trading_post):
        """Sword{stock 10, value 100}; purchase 2 -> stock 8, total 200."""
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))

        assert trading_post.stock_of("Sword") == 8
        assert txn.total_amount == Decimal("200")
        assert txn.transaction_type is TransactionType.PURCHASE
        assert txn.party.kind is PartyKind.HUNTER
        assert txn.person_name == "Geralt"
        (line,) = txn.items
        assert (line.good_name, line.quantity, line.unit_price) == ("Sword", 2, Decimal("100"))

    def test_b_insufficient_stock_changes_nothing(self, engine, trading_post):
        with pytest.raises(InsufficientStockError) as exc_info:
            engine.create_transaction(purchase("Geralt", ("Sword", 20)))

        assert exc_info.value.available == 10
        assert exc_info.value.requested == 20
        assert trading_post.stock_of("Sword") == 10
        assert engine.query_transactions() == []

    def test_c_sale_creates_unknown_good(self, engine, trading_post):
        txn = engine.create_transaction(sale("Merchant1", ("Herb", 5)))

        assert trading_post.stock_of("Herb") == 5
        herb = trading_post.good_named("Herb")
        assert herb.description == "Supplied by Merchant1"
        assert herb.category == GoodCategory.OTHER.value
        assert txn.items[0].unit_price == Decimal("100")
        assert txn.total_amount == Decimal("500")

    def test_d_delete_reverts_stock(self, engine, trading_post):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))
        confirmation = engine.delete_transaction(txn.id)

        assert trading_post.stock_of("Sword") == 10
        assert confirmation.transaction_id == txn.id
        assert [line.good_name for line in confirmation.reverted_items] == ["Sword"]
        with pytest.raises(TransactionNotFoundError):
            engine.get_transaction(txn.id)

    def test_e_update_items(self, engine, trading_post):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))
        assert trading_post.stock_of("Sword") == 8

        updated = engine.update_transaction_items(txn.id, [LineItemRequest("Sword", 3)])

        assert trading_post.stock_of("Sword") == 7
        assert updated.id == txn.id
        assert updated.total_amount == Decimal("300")
        assert updated.items[0].quantity == 3


class TestCreate:
    def test_multiple_lines_keep_input_order(self, engine, trading_post):
        txn = engine.create_transaction(purchase("Geralt", ("Shield", 1), ("Sword", 3)))

        assert [line.good_name for line in txn.items] == ["Shield", "Sword"]
        assert [line.line_seq for line in txn.items] == [1, 2]
        assert txn.total_amount == Decimal("550")
        assert txn.total_amount == txn.computed_total

    def test_same_good_twice_is_checked_cumulatively(self, engine, trading_post):
        with pytest.raises(InsufficientStockError):
            engine.create_transaction(purchase("Geralt", ("Sword", 6), ("Sword", 5)))
        assert trading_post.stock_of("Sword") == 10

    def test_unknown_good_on_purchase(self, engine, trading_post):
        with pytest.raises(GoodNotFoundError):
            engine.create_transaction(purchase("Geralt", ("Crossbow", 1)))

    def test_unknown_hunter(self, engine, trading_post):
        with pytest.raises(PartyNotFoundError) as exc_info:
            engine.create_transaction(purchase("Yennefer", ("Sword", 1)))
        assert exc_info.value.party_kind == "hunter"

    def test_merchant_cannot_purchase(self, engine, trading_post):
        with pytest.raises(PartyNotFoundError):
            engine.create_transaction(purchase("Hattori", ("Sword", 1)))

    def test_invalid_request_before_any_io(self, engine, trading_post):
        with pytest.raises(InvalidRequestError):
            engine.create_transaction(purchase("Geralt", ("Sword", 0)))
        assert trading_post.stock_of("Sword") == 10

    def test_sale_to_existing_good_adds_stock(self, engine, trading_post):
        engine.create_transaction(sale("Hattori", ("Sword", 5)))
        assert trading_post.stock_of("Sword") == 15

    def test_sale_with_supplied_attributes(self, engine, trading_post):
        request = TransactionRequest(
            transaction_type=TransactionType.SALE,
            person_name="Hattori",
            items=(
                LineItemRequest(
                    "Silver Ingot",
                    2,
                    NewGoodDefaults(category=GoodCategory.VALUABLE, value=Decimal("40")),
                ),
            ),
        )
        txn = engine.create_transaction(request)

        assert txn.total_amount == Decimal("80")
        ingot = trading_post.good_named("Silver Ingot")
        assert ingot.category == GoodCategory.VALUABLE.value
        assert ingot.stock == 2

    def test_from_payload_round_trip_through_engine(self, engine, trading_post):
        request = TransactionRequest.from_payload(
            {"transactionType": "purchase", "personName": "Ciri", "items": [{"goodName": "Shield", "quantity": 2}]}
        )
        txn = engine.create_transaction(request)
        assert txn.total_amount == Decimal("500")
        assert trading_post.stock_of("Shield") == 2

    def test_occurred_at_defaults_to_clock(self, engine, trading_post, deterministic_clock):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 1)))
        assert txn.occurred_at == deterministic_clock.now()

    def test_explicit_occurred_at(self, engine, trading_post):
        when = datetime(2023, 6, 1, 9, 30, tzinfo=timezone.utc)
        request = TransactionRequest(
            transaction_type=TransactionType.PURCHASE,
            person_name="Geralt",
            items=(LineItemRequest("Sword", 1),),
            occurred_at=when,
        )
        assert engine.create_transaction(request).occurred_at == when

    def test_returned_dto_matches_stored(self, engine, trading_post):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))
        assert engine.get_transaction(txn.id) == txn


class TestSalePricing:
    def test_ratio_applies_to_sales_only(self, session_factory, trading_post, deterministic_clock):
        engine = TransactionEngine(
            session_factory,
            settings=EngineSettings(
                pricing=PricingPolicy(sale_price_ratio=Decimal("0.6")),
                retry_backoff_seconds=0,
            ),
            clock=deterministic_clock,
        )

        bought = engine.create_transaction(purchase("Geralt", ("Sword", 1)))
        sold = engine.create_transaction(sale("Hattori", ("Sword", 1)))

        assert bought.items[0].unit_price == Decimal("100")
        assert sold.items[0].unit_price == Decimal("60")
        assert sold.total_amount == Decimal("60")

    def test_purchase_keeps_catalog_precision(self, engine, trading_post):
        trading_post.good("Dagger", stock=3, value="0.125")

        txn = engine.create_transaction(purchase("Geralt", ("Dagger", 1)))

        assert txn.items[0].unit_price == Decimal("0.125")
        assert txn.total_amount == Decimal("0.125")


class TestNewGoodRules:
    """Sale lines that would create a good are checked before anything is written."""

    def test_one_character_name_rejected(self, engine, trading_post):
        with pytest.raises(InvalidRequestError) as exc_info:
            engine.create_transaction(sale("Hattori", ("Sword", 1), ("X", 5)))

        assert [e["field"] for e in exc_info.value.field_errors] == ["items[1].good_name"]
        assert trading_post.stock_of("X") is None
        assert trading_post.stock_of("Sword") == 10
        assert engine.query_transactions() == []

    def test_short_description_rejected(self, engine, trading_post):
        request = TransactionRequest(
            transaction_type=TransactionType.SALE,
            person_name="Hattori",
            items=(LineItemRequest("Wolfsbane", 2, NewGoodDefaults(description="Herb")),),
        )
        with pytest.raises(InvalidRequestError) as exc_info:
            engine.create_transaction(request)

        assert exc_info.value.field_errors[0]["field"] == "items[0].description"
        assert trading_post.stock_of("Wolfsbane") is None

    def test_short_name_on_purchase_is_a_lookup_miss(self, engine, trading_post):
        with pytest.raises(GoodNotFoundError):
            engine.create_transaction(purchase("Geralt", ("X", 1)))

    def test_update_of_sale_checks_new_goods(self, engine, trading_post):
        sold = engine.create_transaction(sale("Hattori", ("Sword", 2)))

        with pytest.raises(InvalidRequestError):
            engine.update_transaction_items(sold.id, [LineItemRequest("Y", 1)])

        assert trading_post.stock_of("Sword") == 12
        assert trading_post.stock_of("Y") is None
        assert engine.get_transaction(sold.id) == sold


class TestUpdate:
    def test_unknown_transaction(self, engine, trading_post):
        with pytest.raises(TransactionNotFoundError):
            engine.update_transaction_items(uuid4(), [LineItemRequest("Sword", 1)])

    def test_type_and_party_are_immutable(self, engine, trading_post):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))
        payload = {"transactionType": "sale", "personName": "Hattori", "items": [{"goodName": "Shield", "quantity": 1}]}

        updated = engine.update_transaction(txn.id, UpdateTransactionRequest.from_payload(payload))

        assert updated.transaction_type is TransactionType.PURCHASE
        assert updated.party == txn.party
        assert trading_post.stock_of("Sword") == 10
        assert trading_post.stock_of("Shield") == 3
        assert updated.total_amount == Decimal("250")

    def test_failed_update_keeps_everything(self, engine, trading_post):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))

        with pytest.raises(InsufficientStockError):
            engine.update_transaction_items(
                txn.id, [LineItemRequest("Sword", 1), LineItemRequest("Shield", 5)]
            )

        assert trading_post.stock_of("Sword") == 8
        assert trading_post.stock_of("Shield") == 4
        assert engine.get_transaction(txn.id) == txn

    def test_update_may_use_reverted_stock(self, engine, trading_post):
        """All 10 swords bought; amending to 10 again must see the reversal."""
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 10)))
        updated = engine.update_transaction_items(txn.id, [LineItemRequest("Sword", 10)])

        assert updated.total_amount == Decimal("1000")
        assert trading_post.stock_of("Sword") == 0

    def test_update_occurred_at_only(self, engine, trading_post):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))
        when = datetime(2020, 1, 1, tzinfo=timezone.utc)

        updated = engine.update_transaction(txn.id, UpdateTransactionRequest(occurred_at=when))

        assert updated.occurred_at == when
        assert updated.items == txn.items
        assert trading_post.stock_of("Sword") == 8

    def test_sale_update_cannot_strand_sold_goods(self, engine, trading_post):
        """Reverting a sale whose goods were bought since is a hard stop."""
        sold = engine.create_transaction(sale("Hattori", ("Herb", 5)))
        engine.create_transaction(purchase("Geralt", ("Herb", 4)))

        with pytest.raises(InsufficientStockError):
            engine.update_transaction_items(sold.id, [LineItemRequest("Herb", 1)])
        assert trading_post.stock_of("Herb") == 1

    def test_invalid_items(self, engine, trading_post):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))
        with pytest.raises(InvalidRequestError):
            engine.update_transaction_items(txn.id, [])


class TestDelete:
    def test_unknown_transaction(self, engine, trading_post):
        with pytest.raises(TransactionNotFoundError):
            engine.delete_transaction(uuid4())

    def test_delete_sale_removes_stock(self, engine, trading_post):
        txn = engine.create_transaction(sale("Hattori", ("Sword", 3)))
        engine.delete_transaction(txn.id)
        assert trading_post.stock_of("Sword") == 10

    def test_delete_sale_after_goods_left_is_refused(self, engine, trading_post):
        txn = engine.create_transaction(sale("Hattori", ("Herb", 5)))
        engine.create_transaction(purchase("Geralt", ("Herb", 5)))

        with pytest.raises(InsufficientStockError):
            engine.delete_transaction(txn.id)

        assert trading_post.stock_of("Herb") == 0
        assert engine.get_transaction(txn.id).id == txn.id

    def test_delete_twice(self, engine, trading_post):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))
        engine.delete_transaction(txn.id)
        with pytest.raises(TransactionNotFoundError):
            engine.delete_transaction(txn.id)
        assert trading_post.stock_of("Sword") == 10

    def test_good_removed_from_catalog_is_skipped(
        self, engine, trading_post, session_factory, captured_logs
    ):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 1), ("Shield", 1)))
        with session_factory() as s:
            store = GoodStore(s)
            store.delete_good(store.find_by_name("Shield").id)
            s.commit()

        confirmation = engine.delete_transaction(txn.id)

        assert confirmation.skipped_goods == ("Shield",)
        assert [line.good_name for line in confirmation.reverted_items] == ["Sword"]
        assert trading_post.stock_of("Sword") == 10
        assert any(r["message"] == "reversal_good_missing" for r in captured_logs())


class TestQueries:
    def test_query_filters_through_engine(self, engine, trading_post):
        engine.create_transaction(purchase("Geralt", ("Sword", 1)))
        engine.create_transaction(sale("Hattori", ("Sword", 1)))

        sales = engine.query_transactions(TransactionQuery(transaction_type=TransactionType.SALE))
        assert [t.person_name for t in sales] == ["Hattori"]
        assert len(engine.query_transactions()) == 2


class TestLogging:
    def test_create_logs_lifecycle(self, engine, trading_post, captured_logs):
        txn = engine.create_transaction(purchase("Geralt", ("Sword", 2)))

        logs = captured_logs()
        messages = [r["message"] for r in logs]
        assert "transaction_create_started" in messages
        assert "stock_adjusted" in messages
        committed = next(r for r in logs if r["message"] == "transaction_committed")
        assert committed["transaction_id"] == str(txn.id)
        assert committed["operation"] == "create_transaction"
        assert committed["party_name"] == "Geralt"
        assert "correlation_id" in committed
        assert "duration_ms" in committed

    def test_failure_logged_with_error_code(self, engine, trading_post, captured_logs):
        with pytest.raises(InsufficientStockError):
            engine.create_transaction(purchase("Geralt", ("Sword", 20)))

        failed = next(r for r in captured_logs() if r["message"] == "transaction_create_failed")
        assert failed["level"] == "ERROR"
        assert failed["exc_code"] == "INSUFFICIENT_STOCK"
        assert failed["exc_good_name"] == "Sword"
