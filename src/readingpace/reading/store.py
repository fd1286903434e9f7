"""Persistence for reading sessions.

``SessionStore`` is the async interface the lifecycle controller talks to.
``LocalSessionStore`` implements it on the local SQLite database: it owns
the derived session fields (pages read, active minutes), keeps the book's
page, status and pace in step with completed sessions, and deduplicates
completion requests by idempotency key.
"""

import logging
from datetime import date, datetime
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ..db.models import Book, ReadingSession
from ..db.schemas import (
    OPEN_STATES,
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
from ..db.sqlite import Database, get_db
from ..stats.forecast import average_pages_per_hour, qualifying_sessions, round_half_up
from ..stats.goals import GoalStore
from ..stats.overview import StatsEngine, StatsOverview
from ..stats.streaks import calculate_longest_streak
from .errors import (
    BookNotFoundError,
    InvalidTransitionError,
    SessionConflictError,
    SessionNotFoundError,
    SessionValidationError,
)
from .timer import Clock, compute_elapsed_seconds, elapsed_minutes, utc_now

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Durable storage for reading sessions."""

    async def start(self, book_id: str, start_page: int) -> SessionResponse:
        ...

    async def pause(self, session_id: str, reason: Optional[str] = None) -> SessionResponse:
        ...

    async def resume(self, session_id: str) -> SessionResponse:
        ...

    async def stop(
        self, session_id: str, end_page: int, request_id: Optional[str] = None
    ) -> SessionResponse:
        ...

    async def quick_add(
        self,
        book_id: str,
        pages_read: int,
        page: Optional[int] = None,
        request_id: Optional[str] = None,
        session_date: Optional[date] = None,
    ) -> SessionResponse:
        ...

    async def get_active_session(self, book_id: str) -> Optional[SessionResponse]:
        ...

    async def list_sessions(
        self, book_id: Optional[str] = None, filters: Optional[SessionFilters] = None
    ) -> list[SessionResponse]:
        ...

    async def get_book(self, book_id: str) -> Optional[BookResponse]:
        ...

    async def get_stats_overview(
        self, date_range: Optional[DateRange] = None
    ) -> StatsOverview:
        ...


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _seconds_between(earlier: datetime, later: datetime) -> int:
    return max(0, int((later - earlier).total_seconds()))


class LocalSessionStore:
    """SQLite-backed session store."""

    def __init__(
        self,
        db: Optional[Database] = None,
        goals: Optional[GoalStore] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the store.

        Args:
            db: Database instance
            goals: Goal storage used by the statistics overview
            clock: Returns the current UTC time (default: system clock)
        """
        self.db = db or get_db()
        self._goals = goals
        self._clock = clock or utc_now

    @property
    def goals(self) -> GoalStore:
        if self._goals is None:
            self._goals = GoalStore()
        return self._goals

    def today(self) -> date:
        """Calendar date sessions are recorded under (UTC)."""
        return self._clock().date()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self, book_id: str, start_page: int) -> SessionResponse:
        """Open a timed session for a book.

        Raises:
            BookNotFoundError: If the book does not exist
            SessionConflictError: If the book already has an open session
            SessionValidationError: If the start page is negative
        """
        book_id = str(book_id)
        if start_page < 0:
            raise SessionValidationError("Start page cannot be negative")

        with self.db.get_session() as s:
            book = self._require_book(s, book_id)
            if self.db.get_open_session(book_id, s):
                raise SessionConflictError(
                    f"'{book.title}' already has a reading session in progress"
                )

            now = self._clock()
            row = self.db.create_reading_session(
                {
                    "book_id": book_id,
                    "session_type": SessionType.TIMED.value,
                    "state": SessionState.ACTIVE.value,
                    "started_at": now.isoformat(),
                    "paused_seconds": 0,
                    "session_date": now.date().isoformat(),
                    "start_page": start_page,
                    "sync_status": SyncStatus.SYNCED.value,
                    "created_at": now.isoformat(),
                },
                s,
            )

            if book.status == BookStatus.TO_READ.value:
                update = BookUpdate(status=BookStatus.READING)
                if not book.date_started:
                    update.date_started = now.date()
                self.db.update_book(book_id, update, s)

            logger.info("Started session %s for book %s at page %d", row.id, book_id, start_page)
            return SessionResponse.model_validate(row)

    async def pause(self, session_id: str, reason: Optional[str] = None) -> SessionResponse:
        """Pause an active session.

        Raises:
            SessionNotFoundError: If the session does not exist
            InvalidTransitionError: If the session is not active
        """
        with self.db.get_session() as s:
            row = self._require_session(s, session_id)
            if row.state != SessionState.ACTIVE.value:
                raise InvalidTransitionError(f"Cannot pause a {row.state} session")

            row = self.db.update_reading_session(
                row.id,
                {
                    "state": SessionState.PAUSED.value,
                    "paused_at": self._clock().isoformat(),
                    "pause_reason": reason,
                },
                s,
            )
            logger.info("Paused session %s", row.id)
            return SessionResponse.model_validate(row)

    async def resume(self, session_id: str) -> SessionResponse:
        """Resume a paused session, banking the pause length.

        Raises:
            SessionNotFoundError: If the session does not exist
            InvalidTransitionError: If the session is not paused
        """
        with self.db.get_session() as s:
            row = self._require_session(s, session_id)
            if row.state != SessionState.PAUSED.value:
                raise InvalidTransitionError(f"Cannot resume a {row.state} session")

            now = self._clock()
            paused_seconds = row.paused_seconds or 0
            paused_at = _parse_time(row.paused_at)
            if paused_at is not None:
                paused_seconds += _seconds_between(paused_at, now)

            row = self.db.update_reading_session(
                row.id,
                {
                    "state": SessionState.ACTIVE.value,
                    "resumed_at": now.isoformat(),
                    "paused_seconds": paused_seconds,
                },
                s,
            )
            logger.info("Resumed session %s", row.id)
            return SessionResponse.model_validate(row)

    async def stop(
        self, session_id: str, end_page: int, request_id: Optional[str] = None
    ) -> SessionResponse:
        """Complete a session at ``end_page``.

        Pages read and active minutes are computed here. Repeating a stop
        with the same ``request_id`` returns the already completed session.

        Raises:
            SessionNotFoundError: If the session does not exist
            InvalidTransitionError: If the session is already completed
            SessionValidationError: If the end page is out of bounds
        """
        with self.db.get_session() as s:
            if request_id:
                existing = self.db.get_session_by_request_id(request_id, s)
                if existing is not None:
                    if existing.id != str(session_id):
                        raise SessionValidationError(
                            "request_id already used for another session"
                        )
                    logger.info("Stop request %s already applied", request_id)
                    return SessionResponse.model_validate(existing)

            row = self._require_session(s, session_id)
            if row.state not in [state.value for state in OPEN_STATES]:
                raise InvalidTransitionError(f"Cannot stop a {row.state} session")

            book = self._require_book(s, row.book_id)
            self._validate_pages(row.start_page, end_page, book.total_pages)

            now = self._clock()
            started_at = datetime.fromisoformat(row.started_at)
            paused_at = _parse_time(row.paused_at)
            paused_seconds = row.paused_seconds or 0
            if row.state == SessionState.PAUSED.value and paused_at is not None:
                # Close the open pause so it is not counted as reading
                paused_seconds += _seconds_between(paused_at, now)

            seconds = compute_elapsed_seconds(
                SessionState.COMPLETED,
                started_at,
                now,
                paused_at=paused_at,
                resumed_at=_parse_time(row.resumed_at),
                paused_seconds=paused_seconds,
            )

            row = self.db.update_reading_session(
                row.id,
                {
                    "state": SessionState.COMPLETED.value,
                    "ended_at": now.isoformat(),
                    "paused_seconds": paused_seconds,
                    "end_page": end_page,
                    "pages_read": end_page - row.start_page,
                    "duration": elapsed_minutes(seconds),
                    "request_id": request_id,
                },
                s,
            )

            self._advance_book(s, book, end_page, now.date())
            self._refresh_pace(s, book.id)

            logger.info(
                "Stopped session %s: %d pages in %d minutes",
                row.id,
                row.pages_read,
                row.duration,
            )
            return SessionResponse.model_validate(row)

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
            page: Page reading started from (default: the book's current page)
            request_id: Idempotency key
            session_date: Day the reading happened (default: today)

        Raises:
            BookNotFoundError: If the book does not exist
            SessionValidationError: If the page input is out of bounds
        """
        book_id = str(book_id)
        if pages_read < 0:
            raise SessionValidationError("Pages read cannot be negative")

        with self.db.get_session() as s:
            if request_id:
                existing = self.db.get_session_by_request_id(request_id, s)
                if existing is not None:
                    if existing.book_id != book_id:
                        raise SessionValidationError(
                            "request_id already used for another session"
                        )
                    logger.info("Quick add request %s already applied", request_id)
                    return SessionResponse.model_validate(existing)

            book = self._require_book(s, book_id)
            if page is None:
                page = book.current_page or self._last_end_page(s, book_id) or 0
            end_page = page + pages_read
            self._validate_pages(page, end_page, book.total_pages)

            now = self._clock()
            session_date = session_date or now.date()
            row = self.db.create_reading_session(
                {
                    "book_id": book_id,
                    "session_type": SessionType.QUICK.value,
                    "state": SessionState.COMPLETED.value,
                    "started_at": now.isoformat(),
                    "ended_at": now.isoformat(),
                    "paused_seconds": 0,
                    "session_date": session_date.isoformat(),
                    "start_page": page,
                    "end_page": end_page,
                    "pages_read": pages_read,
                    "request_id": request_id,
                    "sync_status": SyncStatus.SYNCED.value,
                    "created_at": now.isoformat(),
                },
                s,
            )

            self._advance_book(s, book, max(book.current_page or 0, end_page), session_date)

            logger.info("Quick-added %d pages to book %s", pages_read, book_id)
            return SessionResponse.model_validate(row)

    # ========================================================================
    # Queries
    # ========================================================================

    async def get_active_session(self, book_id: str) -> Optional[SessionResponse]:
        """Get the book's active or paused session, if any."""
        row = self.db.get_open_session(str(book_id))
        return SessionResponse.model_validate(row) if row else None

    async def list_sessions(
        self, book_id: Optional[str] = None, filters: Optional[SessionFilters] = None
    ) -> list[SessionResponse]:
        """List sessions, most recent first."""
        rows = self.db.list_reading_sessions(str(book_id) if book_id else None, filters)
        return [SessionResponse.model_validate(row) for row in rows]

    async def get_book(self, book_id: str) -> Optional[BookResponse]:
        """Get a book snapshot."""
        book = self.db.get_book(str(book_id))
        return BookResponse.model_validate(book) if book else None

    async def get_stats_overview(
        self, date_range: Optional[DateRange] = None
    ) -> StatsOverview:
        """Build the statistics overview from stored history and goals."""
        from ..config import get_config
        from .records import SessionRecords

        config = get_config()
        history = await SessionRecords(self).all()
        books = [BookResponse.model_validate(b) for b in self.db.get_all_books()]

        engine = StatsEngine(
            today=self.today(),
            default_daily_target=config.daily_page_target,
            default_days=config.stats_days,
        )
        return engine.build_overview(
            history,
            books,
            goals=self.goals.load(),
            date_range=date_range,
            best_streak=calculate_longest_streak(history),
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    def _require_book(self, s: Session, book_id: str) -> Book:
        book = self.db.get_book(book_id, s)
        if not book:
            raise BookNotFoundError(f"Book not found: {book_id}")
        return book

    def _require_session(self, s: Session, session_id: str) -> ReadingSession:
        row = self.db.get_reading_session(str(session_id), s)
        if not row:
            raise SessionNotFoundError(f"Reading session not found: {session_id}")
        return row

    @staticmethod
    def _validate_pages(start_page: int, end_page: int, total_pages: Optional[int]) -> None:
        if start_page < 0:
            raise SessionValidationError("Start page cannot be negative")
        if end_page < start_page:
            raise SessionValidationError(
                f"End page ({end_page}) cannot be less than start page ({start_page})"
            )
        if total_pages and end_page > total_pages:
            raise SessionValidationError(
                f"End page ({end_page}) cannot exceed total pages ({total_pages})"
            )

    def _last_end_page(self, s: Session, book_id: str) -> Optional[int]:
        rows = self.db.list_reading_sessions(
            book_id, SessionFilters(state=SessionState.COMPLETED, limit=1), s
        )
        return rows[0].end_page if rows else None

    def _advance_book(self, s: Session, book: Book, page: int, on: date) -> None:
        """Move the book to ``page`` and update its status."""
        update = BookUpdate(current_page=page)
        if book.total_pages and page >= book.total_pages:
            if book.status != BookStatus.FINISHED.value:
                update.status = BookStatus.FINISHED
                update.date_finished = on
                logger.info("Finished book %s", book.id)
        elif book.status == BookStatus.TO_READ.value:
            update.status = BookStatus.READING
        if not book.date_started:
            update.date_started = on
        self.db.update_book(book.id, update, s)

    def _refresh_pace(self, s: Session, book_id: str) -> None:
        """Store the pace of the book's recent timed sessions."""
        rows = self.db.list_reading_sessions(
            book_id, SessionFilters(state=SessionState.COMPLETED), s
        )
        recent = qualifying_sessions(SessionResponse.model_validate(r) for r in rows)
        pace = average_pages_per_hour(recent)
        if pace > 0:
            self.db.update_book(
                book_id, BookUpdate(average_pages_per_hour=round_half_up(pace * 10) / 10), s
            )
