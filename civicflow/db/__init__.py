"""Database module."""

from .locks import lock_row, scopes
from .session import AsyncSessionLocal, atomic, engine, get_db, get_db_context

__all__ = [
    "AsyncSessionLocal",
    "atomic",
    "engine",
    "get_db",
    "get_db_context",
    "lock_row",
    "scopes",
]
