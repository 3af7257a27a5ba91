"""Database infrastructure for the inventory kernel."""

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "build_engine",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "is_postgres",
    "reset_engine",
    "session_scope",
]
