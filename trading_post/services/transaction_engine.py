"""
TransactionEngine -- create, amend and delete transactions atomically.

Responsibility:
    The caller-facing surface of the kernel.  For every create, update and
    delete it validates the request, resolves the party, prices each line,
    moves stock through GoodStore and writes the ledger -- all inside one
    UnitOfWork.  Update and delete first apply the inverse of the stored
    item list.

Architecture position:
    Kernel > Services -- imperative shell.  Receives its sessionmaker
    (store handle), EngineSettings and Clock at construction; holds no
    per-request state, so one engine may serve many threads.

Invariants enforced:
    - stock >= 0 for every good at every observable instant (conditional
      UPDATE in GoodStore.adjust_stock).
    - total_amount == sum(quantity * unit_price), recomputed on every write.
    - All-or-nothing: any failure aborts the whole unit of work, including
      the reversal half of an update.
    - transaction_type and party never change after creation.
    - Deleting then re-creating a transaction with the same items restores
      every touched good's stock.

Failure modes:
    - InvalidRequestError: malformed request (before any I/O).
    - PartyNotFoundError: no hunter/merchant with the person name.
    - GoodNotFoundError: a purchase references an unknown good.
    - InsufficientStockError: a purchase exceeds stock, or reverting a sale
      would drive stock negative.  Never clamped.
    - TransactionNotFoundError: update/delete/get of an unknown id.
    - StorageFailureError: the store failed; raised after the configured
      number of whole-operation retries.

Concurrency:
    Each operation runs in its own session.  Concurrent operations on the
    same good are linearized by the row lock (PostgreSQL FOR UPDATE, SQLite
    BEGIN IMMEDIATE) and the conditional stock UPDATE: two purchases of 5
    against stock 5 yield one success and one InsufficientStockError.

State machine:
    NONEXISTENT --create--> ACTIVE --update--> ACTIVE --delete--> GONE
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from trading_post.domain.clock import Clock, SystemClock
from trading_post.domain.dtos import (
    DeletionConfirmation,
    LineItemRequest,
    PartyRef,
    TransactionInfo,
    TransactionQuery,
    TransactionRequest,
    UpdateTransactionRequest,
    check_items_for,
    normalize_items,
    validate_transaction_request,
)
from trading_post.domain.pricing import EngineSettings
from trading_post.domain.values import TransactionType
from trading_post.exceptions import (
    GoodNotFoundError,
    InsufficientStockError,
    StorageFailureError,
    TransactionNotFoundError,
)
from trading_post.logging_config import LogContext, get_logger
from trading_post.selectors.transaction_selector import TransactionSelector
from trading_post.services.transaction_ledger import LineDraft
from trading_post.services.unit_of_work import UnitOfWork

logger = get_logger("services.transaction_engine")

T = TypeVar("T")


class TransactionEngine:
    """
    Orchestrates transaction creation, amendment and deletion.

    Contract:
        Every public write method is one atomic unit of work and returns
        an immutable DTO, or raises a TradingPostError subclass with the
        store unchanged.

    Non-goals:
        - Does NOT manage goods or parties beyond what a transaction
          implies (see GoodStore and PartyService).
        - Does NOT retry business failures; only StorageFailureError is
          retried.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or EngineSettings()
        self._clock = clock or SystemClock()

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    # =========================================================================
    # Writes
    # =========================================================================

    def create_transaction(self, request: TransactionRequest) -> TransactionInfo:
        """
        Record a purchase or a sale.

        Preconditions:
            - A party of the kind the type implies exists with
              ``request.person_name``.

        Postconditions:
            - Each line's good stock moved by -quantity (purchase) or
              +quantity (sale); goods unknown on a sale were created.
            - The returned DTO is what was committed.

        Raises:
            InvalidRequestError, PartyNotFoundError, GoodNotFoundError,
            InsufficientStockError, StorageFailureError.
        """
        request = validate_transaction_request(request)

        def work(uow: UnitOfWork) -> TransactionInfo:
            party = uow.parties.resolve(request.transaction_type, request.person_name)
            lines = self._apply_items(uow, request.transaction_type, party, request.items)
            occurred_at = request.occurred_at or self._clock.now()
            return uow.ledger.record(request.transaction_type, party, lines, occurred_at)

        return self._run_logged(
            "create",
            work,
            party_name=request.person_name,
            started_extra={
                "transaction_type": request.transaction_type.value,
                "item_count": len(request.items),
            },
        )

    def update_transaction(
        self,
        transaction_id: UUID,
        request: UpdateTransactionRequest,
    ) -> TransactionInfo:
        """
        Amend a transaction.

        If ``request.items`` is set, the stored lines are reverted and the
        new lines applied with the original type and party, then the total
        is recomputed.  ``occurred_at`` merges in when set.

        Raises:
            InvalidRequestError, TransactionNotFoundError, GoodNotFoundError,
            InsufficientStockError, StorageFailureError.
        """
        if request.items is not None:
            request = replace(request, items=normalize_items(request.items))

        def work(uow: UnitOfWork) -> TransactionInfo:
            txn = uow.ledger.lock(transaction_id)
            if request.items is not None:
                check_items_for(txn.transaction_type, request.items)
                self._revert(uow, txn)
                lines = self._apply_items(uow, txn.transaction_type, txn.party, request.items)
                txn = uow.ledger.replace_lines(transaction_id, lines)
            if request.occurred_at is not None:
                txn = uow.ledger.set_occurred_at(transaction_id, request.occurred_at)
            return txn

        return self._run_logged(
            "update",
            work,
            transaction_id=transaction_id,
            started_extra={
                "item_count": len(request.items) if request.items is not None else None,
            },
        )

    def update_transaction_items(
        self,
        transaction_id: UUID,
        items: Iterable[LineItemRequest],
    ) -> TransactionInfo:
        """Replace the item list of a transaction (see update_transaction)."""
        return self.update_transaction(
            transaction_id, UpdateTransactionRequest(items=tuple(items))
        )

    def delete_transaction(self, transaction_id: UUID) -> DeletionConfirmation:
        """
        Revert a transaction's stock effect and delete it.

        Raises:
            TransactionNotFoundError: Unknown id.
            InsufficientStockError: Reverting a sale would drive stock
                negative (the goods have since left the post).
            StorageFailureError.
        """

        def work(uow: UnitOfWork) -> DeletionConfirmation:
            txn = uow.ledger.lock(transaction_id)
            reverted, skipped = self._revert(uow, txn)
            uow.ledger.remove(transaction_id)
            return DeletionConfirmation(
                transaction_id=txn.id,
                transaction_type=txn.transaction_type,
                reverted_items=tuple(reverted),
                skipped_goods=tuple(skipped),
            )

        return self._run_logged("delete", work, transaction_id=transaction_id)

    # =========================================================================
    # Reads
    # =========================================================================

    def query_transactions(self, filters: TransactionQuery | None = None) -> list[TransactionInfo]:
        """Filter the ledger (see TransactionSelector.query)."""
        return self._execute(
            "query_transactions",
            lambda uow: TransactionSelector(uow.session).query(filters),
        )

    def get_transaction(self, transaction_id: UUID) -> TransactionInfo:
        """
        Raises:
            TransactionNotFoundError: Unknown id.
        """
        txn = self._execute(
            "get_transaction",
            lambda uow: TransactionSelector(uow.session).get(transaction_id),
        )
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return txn

    # =========================================================================
    # Internals
    # =========================================================================

    def _apply_items(
        self,
        uow: UnitOfWork,
        transaction_type: TransactionType,
        party: PartyRef,
        items: Sequence[LineItemRequest],
    ) -> list[LineDraft]:
        """Price each item and move its stock, in input order."""
        pricing = self._settings.pricing
        lines: list[LineDraft] = []

        for item in items:
            if transaction_type is TransactionType.PURCHASE:
                good = uow.goods.lock_by_name(item.good_name)
                if good is None:
                    raise GoodNotFoundError(item.good_name)
                if good.stock < item.quantity:
                    raise InsufficientStockError(good.name, good.stock, item.quantity)
            else:
                good, _ = uow.goods.create_if_missing(item.good_name, item.defaults, party.name)

            unit_price = pricing.unit_price(transaction_type, good.value)
            uow.goods.adjust_stock(good.id, transaction_type.stock_delta(item.quantity))
            lines.append(
                LineDraft(
                    good_id=good.id,
                    good_name=good.name,
                    quantity=item.quantity,
                    unit_price=unit_price,
                )
            )
        return lines

    def _revert(self, uow: UnitOfWork, txn: TransactionInfo):
        """Apply the inverse stock delta of every stored line.

        Lines whose good has been deleted from the catalog are skipped.

        Returns:
            (reverted lines, names of skipped goods)
        """
        reverted = []
        skipped = []
        for line in txn.items:
            delta = txn.transaction_type.reversal_delta(line.quantity)
            try:
                uow.goods.adjust_stock(line.good_id, delta)
            except GoodNotFoundError:
                logger.warning(
                    "reversal_good_missing",
                    extra={"good_id": str(line.good_id), "good_name": line.good_name},
                )
                skipped.append(line.good_name)
                continue
            reverted.append(line)
        return reverted, skipped

    def _execute(self, operation: str, work: Callable[[UnitOfWork], T]) -> T:
        """Run ``work`` in a fresh unit of work, retrying storage failures."""
        attempts = self._settings.storage_retry_attempts
        for attempt in range(1, attempts + 1):
            try:
                with UnitOfWork(
                    self._session_factory, operation, self._settings.new_goods
                ) as uow:
                    return work(uow)
            except StorageFailureError as exc:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "storage_retry",
                    extra={"attempt": attempt, "max_attempts": attempts, "reason": exc.reason},
                )
                time.sleep(self._settings.retry_backoff_seconds * attempt)
        raise AssertionError("unreachable")

    def _run_logged(
        self,
        verb: str,
        work: Callable[[UnitOfWork], T],
        transaction_id: UUID | None = None,
        party_name: str | None = None,
        started_extra: dict | None = None,
    ) -> T:
        operation = f"{verb}_transaction"
        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            transaction_id=str(transaction_id) if transaction_id else None,
            party_name=party_name,
        ):
            logger.info(f"transaction_{verb}_started", extra=started_extra or {})
            t0 = time.monotonic()
            try:
                result = self._execute(operation, work)
            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.error(
                    f"transaction_{verb}_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            extra = {"duration_ms": duration_ms}
            if isinstance(result, TransactionInfo):
                extra.update(
                    transaction_id=str(result.id),
                    total_amount=result.total_amount,
                    item_count=len(result.items),
                )
            else:
                extra.update(
                    transaction_id=str(result.transaction_id),
                    reverted_count=len(result.reverted_items),
                    skipped_count=len(result.skipped_goods),
                )
            logger.info("transaction_committed", extra=extra)
            return result
