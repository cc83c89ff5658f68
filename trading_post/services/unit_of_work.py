"""
UnitOfWork -- one atomic database transaction around an engine operation.

Responsibility:
    Opens a session from the shared sessionmaker, wires the flush-only
    services to it, and commits on success or rolls back on any exception.
    SQLAlchemy failures leave as StorageFailureError; business errors leave
    unchanged.

Architecture position:
    Kernel > Services -- the only place below the engine that commits.
    Same shape as ``db.engine.session_scope``, but scoped to an injected
    sessionmaker instead of the module-level one.

Invariants enforced:
    - All-or-nothing: every write of the operation is committed together or
      none is.  A failure on line item k rolls back the adjustments of lines
      1..k-1 along with everything else.
    - The session is always closed on exit.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from trading_post.domain.pricing import NewGoodPolicy
from trading_post.exceptions import StorageFailureError
from trading_post.logging_config import get_logger
from trading_post.services.good_store import GoodStore
from trading_post.services.party_service import PartyResolver
from trading_post.services.transaction_ledger import TransactionLedger

logger = get_logger("services.unit_of_work")


class UnitOfWork:
    """
    Context manager: begin, reads/writes, commit -- or rollback.

    Usage:
        with UnitOfWork(session_factory, "create_transaction") as uow:
            party = uow.parties.resolve(...)
            uow.goods.adjust_stock(...)
            uow.ledger.record(...)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        operation: str,
        new_goods: NewGoodPolicy | None = None,
    ):
        self._session_factory = session_factory
        self._new_goods = new_goods
        self.operation = operation
        self.session: Session | None = None

    def __enter__(self) -> UnitOfWork:
        try:
            self.session = self._session_factory()
            self.session.begin()
        except SQLAlchemyError as exc:
            if self.session is not None:
                self.session.close()
            raise StorageFailureError(self.operation, str(exc)) from exc
        self.goods = GoodStore(self.session, self._new_goods)
        self.parties = PartyResolver(self.session)
        self.ledger = TransactionLedger(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        session = self.session
        try:
            if exc_type is None:
                try:
                    session.commit()
                except SQLAlchemyError as commit_exc:
                    session.rollback()
                    logger.warning(
                        "unit_of_work_commit_failed",
                        extra={"operation": self.operation},
                        exc_info=True,
                    )
                    raise StorageFailureError(
                        self.operation, _reason(commit_exc)
                    ) from commit_exc
                logger.debug("unit_of_work_committed", extra={"operation": self.operation})
                return False

            session.rollback()
            logger.debug(
                "unit_of_work_rolled_back",
                extra={"operation": self.operation, "error": exc_type.__name__},
            )
            if isinstance(exc, SQLAlchemyError):
                raise StorageFailureError(self.operation, _reason(exc)) from exc
            return False
        finally:
            session.close()


def _reason(exc: SQLAlchemyError) -> str:
    if isinstance(exc, StaleDataError):
        return f"concurrent modification: {exc}"
    return str(getattr(exc, "orig", None) or exc)
