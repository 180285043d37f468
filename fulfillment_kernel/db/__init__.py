"""Database layer - engine, base classes, immutability, error translation."""

from fulfillment_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from fulfillment_kernel.db.engine import (
    apply_lock_timeout,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "apply_lock_timeout",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
