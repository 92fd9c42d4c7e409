"""Database layer - engine, base classes, column types."""

from declaration_kernel.db.base import Base, TrackedBase, UtcDateTime, UUIDString, as_utc
from declaration_kernel.db.engine import (
    create_tables,
    enable_sqlite_savepoints,
    get_engine,
    get_session,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "enable_sqlite_savepoints",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UtcDateTime",
    "as_utc",
]
