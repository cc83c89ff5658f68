"""Database layer - engine, base classes, session scope."""

from trading_post.db.base import UUID, Base, TrackedBase, UUIDString
from trading_post.db.engine import (
    create_db_engine,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "create_db_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
