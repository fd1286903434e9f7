"""Reading session lifecycle.

The controller turns user intents (start, pause, resume, stop, quick add)
into store requests for each book. It keeps the store's latest answer as the
book's active session and shows a pending view while a request is in
flight, so a caller can render "syncing" without the authoritative state
changing before the store confirms.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, AsyncIterator, Awaitable, Optional
from uuid import uuid4

from ..db.schemas import BookResponse, SessionResponse, SessionState, SessionType, SyncStatus
from .errors import (
    BookNotFoundError,
    InvalidTransitionError,
    NoActiveSessionError,
    SessionBusyError,
    SessionConflictError,
    SessionError,
    SessionRequestError,
    SessionValidationError,
)
from .records import SessionRecords
from .store import SessionStore
from .timer import Clock, SessionTimer, utc_now

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """A store request that has been submitted but not yet answered."""

    operation: str
    submitted_at: datetime
    view: Optional[SessionResponse] = None
    request_id: Optional[str] = None


class SessionLifecycleController:
    """Drives reading sessions through their lifecycle, one slot per book."""

    def __init__(
        self,
        store: SessionStore,
        records: Optional[SessionRecords] = None,
        clock: Optional[Clock] = None,
        request_timeout: Optional[float] = None,
    ):
        """Initialize the controller.

        Args:
            store: Durable session storage
            records: Completed-session cache (default: one over ``store``)
            clock: Returns the current UTC time (default: system clock)
            request_timeout: Seconds to wait for a store request (None waits)
        """
        self.store = store
        self.records = records or SessionRecords(store)
        self._clock = clock or utc_now
        self.request_timeout = request_timeout

        self._slots: dict[str, SessionResponse] = {}
        self._pending: dict[str, PendingRequest] = {}
        self._errors: dict[str, str] = {}
        self._books: dict[str, BookResponse] = {}

    # ========================================================================
    # State
    # ========================================================================

    def active_session(self, book_id: str) -> Optional[SessionResponse]:
        """The book's open session as last confirmed by the store."""
        return self._slots.get(str(book_id))

    def session_view(self, book_id: str) -> Optional[SessionResponse]:
        """The session to display, including any request still in flight."""
        pending = self._pending.get(str(book_id))
        if pending is not None and pending.view is not None:
            return pending.view
        return self.active_session(book_id)

    def is_pending(self, book_id: str) -> bool:
        return str(book_id) in self._pending

    def pending_operation(self, book_id: str) -> Optional[str]:
        pending = self._pending.get(str(book_id))
        return pending.operation if pending else None

    def last_error(self, book_id: str) -> Optional[str]:
        """Message of the last failed request for the book, if any."""
        return self._errors.get(str(book_id))

    def timer(self, book_id: str, **kwargs) -> SessionTimer:
        """A live timer for the book's open session.

        Raises:
            NoActiveSessionError: If the book has no open session
        """
        session = self._require_open(str(book_id))
        kwargs.setdefault("clock", self._clock)
        return SessionTimer.from_session(session, **kwargs)

    @staticmethod
    def calculate_end_page(start_page: int, pages_read: int) -> int:
        """Page a session ends on after reading ``pages_read`` pages."""
        return start_page + pages_read

    async def book(self, book_id: str) -> BookResponse:
        """Book snapshot, cached until the next successful mutation.

        Raises:
            BookNotFoundError: If the store does not know the book
        """
        book_id = str(book_id)
        if book_id not in self._books:
            book = await self._call(self.store.get_book(book_id))
            if book is None:
                raise BookNotFoundError(f"Book not found: {book_id}")
            self._books[book_id] = book
        return self._books[book_id]

    async def refresh(self, book_id: str) -> Optional[SessionResponse]:
        """Reload the book's open session from the store."""
        book_id = str(book_id)
        session = await self._call(self.store.get_active_session(book_id))
        if session is not None:
            self._slots[book_id] = session
        else:
            self._slots.pop(book_id, None)
        return session

    # ========================================================================
    # Transitions
    # ========================================================================

    async def start(self, book_id: str, start_page: Optional[int] = None) -> SessionResponse:
        """Start a timed session.

        Args:
            book_id: Book to read
            start_page: First page (default: the book's current page, else
                the end page of its last session, else 0)

        Raises:
            SessionConflictError: If the book already has an open session
            SessionValidationError: If the start page is negative
        """
        book_id = str(book_id)
        self._ensure_idle(book_id)
        current = self._slots.get(book_id)
        if current is not None and current.is_open:
            raise SessionConflictError(
                f"A reading session is already {current.state.value} for this book"
            )
        if start_page is not None and start_page < 0:
            raise SessionValidationError("Start page cannot be negative")

        async with self._request(book_id, "start") as pending:
            if start_page is None:
                start_page = await self._default_start_page(book_id)
            now = self._clock()
            pending.view = SessionResponse(
                id=uuid4(),
                book_id=book_id,
                session_type=SessionType.TIMED,
                state=SessionState.ACTIVE,
                started_at=now,
                session_date=now.date(),
                start_page=start_page,
                sync_status=SyncStatus.SYNCING,
                created_at=now,
            )
            session = await self._call(self.store.start(book_id, start_page))
            self._slots[book_id] = session

        logger.info("Reading session started for book %s", book_id)
        return session

    async def pause(self, book_id: str, reason: Optional[str] = None) -> SessionResponse:
        """Pause the book's active session.

        Raises:
            NoActiveSessionError: If the book has no open session
            InvalidTransitionError: If the session is already paused
        """
        book_id = str(book_id)
        self._ensure_idle(book_id)
        current = self._require_open(book_id)
        if current.state != SessionState.ACTIVE:
            raise InvalidTransitionError("Only an active session can be paused")

        async with self._request(book_id, "pause") as pending:
            pending.view = current.model_copy(
                update={
                    "state": SessionState.PAUSED,
                    "paused_at": self._clock(),
                    "pause_reason": reason,
                    "sync_status": SyncStatus.SYNCING,
                }
            )
            session = await self._call(self.store.pause(str(current.id), reason))
            self._slots[book_id] = session

        logger.info("Reading session paused for book %s", book_id)
        return session

    async def resume(self, book_id: str) -> SessionResponse:
        """Resume the book's paused session.

        Raises:
            NoActiveSessionError: If the book has no open session
            InvalidTransitionError: If the session is not paused
        """
        book_id = str(book_id)
        self._ensure_idle(book_id)
        current = self._require_open(book_id)
        if current.state != SessionState.PAUSED:
            raise InvalidTransitionError("Only a paused session can be resumed")

        async with self._request(book_id, "resume") as pending:
            pending.view = current.model_copy(
                update={
                    "state": SessionState.ACTIVE,
                    "resumed_at": self._clock(),
                    "sync_status": SyncStatus.SYNCING,
                }
            )
            session = await self._call(self.store.resume(str(current.id)))
            self._slots[book_id] = session

        logger.info("Reading session resumed for book %s", book_id)
        return session

    async def stop(
        self, book_id: str, end_page: int, request_id: Optional[str] = None
    ) -> SessionResponse:
        """Complete the book's open session at ``end_page``.

        Raises:
            NoActiveSessionError: If the book has no open session
            SessionValidationError: If ``end_page`` is before the start page
        """
        book_id = str(book_id)
        self._ensure_idle(book_id)
        current = self._require_open(book_id)
        if end_page < current.start_page:
            raise SessionValidationError(
                f"End page ({end_page}) cannot be less than start page ({current.start_page})"
            )

        async with self._request(book_id, "stop", request_id) as pending:
            pending.view = current.model_copy(
                update={
                    "state": SessionState.COMPLETED,
                    "ended_at": self._clock(),
                    "end_page": end_page,
                    "sync_status": SyncStatus.SYNCING,
                }
            )
            session = await self._call(
                self.store.stop(str(current.id), end_page, request_id=request_id)
            )
            self._slots.pop(book_id, None)

        logger.info(
            "Reading session completed for book %s: %s pages, %s minutes",
            book_id,
            session.pages_read,
            session.duration,
        )
        return session

    async def quick_add(
        self,
        book_id: str,
        pages_read: int,
        page: Optional[int] = None,
        request_id: Optional[str] = None,
        session_date: Optional[date] = None,
    ) -> SessionResponse:
        """Record pages read without timing.

        Args:
            book_id: Book the pages belong to
            pages_read: Pages read, zero or more
            page: Page reading started from (default as for ``start``)
            request_id: Idempotency key for the store
            session_date: Day the reading happened (default: today)

        Raises:
            SessionValidationError: If a page count is negative
        """
        book_id = str(book_id)
        self._ensure_idle(book_id)
        if pages_read < 0:
            raise SessionValidationError("Pages read cannot be negative")
        if page is not None and page < 0:
            raise SessionValidationError("Start page cannot be negative")

        async with self._request(book_id, "quick_add", request_id):
            if page is None:
                page = await self._default_start_page(book_id)
            session = await self._call(
                self.store.quick_add(
                    book_id,
                    pages_read,
                    page=page,
                    request_id=request_id,
                    session_date=session_date,
                )
            )

        logger.info(
            "Quick-added pages %d-%d for book %s",
            page,
            self.calculate_end_page(page, pages_read),
            book_id,
        )
        return session

    # ========================================================================
    # Helpers
    # ========================================================================

    def _ensure_idle(self, book_id: str) -> None:
        pending = self._pending.get(book_id)
        if pending is not None:
            raise SessionBusyError(
                f"A {pending.operation} request is still in progress for this book"
            )

    def _require_open(self, book_id: str) -> SessionResponse:
        current = self._slots.get(book_id)
        if current is None or not current.is_open:
            raise NoActiveSessionError("No reading session in progress for this book")
        return current

    async def _default_start_page(self, book_id: str) -> int:
        book = await self.book(book_id)
        if book.current_page:
            return book.current_page
        last_end_page = await self.records.last_end_page(book_id)
        return last_end_page if last_end_page is not None else 0

    @asynccontextmanager
    async def _request(
        self, book_id: str, operation: str, request_id: Optional[str] = None
    ) -> AsyncIterator[PendingRequest]:
        """Track a request as pending for the duration of the block.

        The pending entry is installed before the first await, so a second
        request for the same book sees it and is rejected.
        """
        pending = PendingRequest(
            operation=operation, submitted_at=self._clock(), request_id=request_id
        )
        self._pending[book_id] = pending
        try:
            yield pending
        except Exception as exc:
            self._errors[book_id] = str(exc) or exc.__class__.__name__
            logger.warning("Reading session %s failed for book %s: %s", operation, book_id, exc)
            raise
        else:
            self._errors.pop(book_id, None)
            self.records.invalidate(book_id)
            self._books.pop(book_id, None)
        finally:
            self._pending.pop(book_id, None)

    async def _call(self, request: Awaitable[Any]) -> Any:
        """Await a store request, applying the timeout.

        Raises:
            SessionRequestError: On timeout, or when the store fails with
                anything other than a session error
        """
        try:
            if self.request_timeout:
                return await asyncio.wait_for(request, self.request_timeout)
            return await request
        except SessionError:
            raise
        except asyncio.TimeoutError as exc:
            raise SessionRequestError(
                f"Request timed out after {self.request_timeout} seconds"
            ) from exc
        except Exception as exc:
            raise SessionRequestError(f"Store request failed: {exc}") from exc
