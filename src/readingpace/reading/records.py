"""Cached read access to completed reading sessions."""

from typing import Optional

from ..db.schemas import DateRange, SessionFilters, SessionResponse, SessionState
from .store import SessionStore


class SessionRecords:
    """Completed-session history, cached per book.

    Sessions are returned newest first as frozen models. The lifecycle
    controller invalidates a book's entry after every successful mutation.
    """

    def __init__(self, store: SessionStore):
        self.store = store
        self._by_book: dict[str, list[SessionResponse]] = {}

    async def for_book(self, book_id: str, limit: Optional[int] = None) -> list[SessionResponse]:
        """Completed sessions for one book.

        Args:
            book_id: Book to list
            limit: Return at most this many (all when None or 0)
        """
        key = str(book_id)
        if key not in self._by_book:
            self._by_book[key] = await self.store.list_sessions(
                key, SessionFilters(state=SessionState.COMPLETED)
            )
        sessions = self._by_book[key]
        return list(sessions[:limit]) if limit else list(sessions)

    async def all(self, date_range: Optional[DateRange] = None) -> list[SessionResponse]:
        """Completed sessions across all books, optionally within a date range."""
        return await self.store.list_sessions(
            filters=SessionFilters(state=SessionState.COMPLETED, date_range=date_range)
        )

    async def last_end_page(self, book_id: str) -> Optional[int]:
        """End page of the book's most recent completed session."""
        sessions = await self.for_book(book_id, limit=1)
        return sessions[0].end_page if sessions else None

    def invalidate(self, book_id: Optional[str] = None) -> None:
        """Drop cached history for one book, or for all books."""
        if book_id is None:
            self._by_book.clear()
        else:
            self._by_book.pop(str(book_id), None)

    def is_cached(self, book_id: str) -> bool:
        return str(book_id) in self._by_book
