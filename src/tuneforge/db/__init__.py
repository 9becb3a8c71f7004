"""Database module."""

from .session import (
    Base,
    create_engine,
    create_session_maker,
    get_session,
    init_db,
    close_db,
)

__all__ = [
    "Base",
    "create_engine",
    "create_session_maker",
    "get_session",
    "init_db",
    "close_db",
]
