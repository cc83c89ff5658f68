"""
BaseService -- abstract base for all write-side services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services inherit
    from BaseService, receiving a SQLAlchemy ``Session`` that they use
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (UnitOfWork inside TransactionEngine, or a test harness) owns
      commit/rollback.

Failure modes:
    - If a subclass commits on its own, a failing later line item could
      no longer roll back the stock adjustments of earlier ones.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from trading_post.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods beyond what writes
          need -- those belong in ``trading_post/selectors/``.
    """

    def __init__(self, session: Session):
        """
        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session

    @property
    def supports_row_locks(self) -> bool:
        """True when the bound dialect honors SELECT ... FOR UPDATE."""
        return self.session.get_bind().dialect.name == "postgresql"
