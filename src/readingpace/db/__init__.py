"""Database module for local SQLite storage."""

from .models import Book, ReadingSession
from .schemas import (
    BookCreate,
    BookResponse,
    BookStatus,
    BookUpdate,
    DateRange,
    SessionFilters,
    SessionResponse,
    SessionState,
    SessionType,
    SyncStatus,
)
from .sqlite import Database, get_db

__all__ = [
    "Book",
    "ReadingSession",
    "BookCreate",
    "BookResponse",
    "BookStatus",
    "BookUpdate",
    "DateRange",
    "SessionFilters",
    "SessionResponse",
    "SessionState",
    "SessionType",
    "SyncStatus",
    "Database",
    "get_db",
]
