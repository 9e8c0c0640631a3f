"""Database utilities for the exam scheduler."""

from .base import Base, TimestampMixin
from .session import (
    dispose_engine,
    get_engine,
    get_session_factory,
    session_scope,
    supports_row_locks,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "supports_row_locks",
]
