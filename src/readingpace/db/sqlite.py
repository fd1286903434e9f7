"""SQLite database operations.

Handles database connection, session management, and CRUD operations.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base, Book, ReadingSession
from .schemas import OPEN_STATES, BookCreate, BookUpdate, SessionFilters


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses the
                     configured READINGPACE_DB_PATH location.
        """
        if db_path is None:
            from ..config import get_config

            db_path = str(get_config().db_path)

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Book Operations
    # ========================================================================

    def create_book(self, book: BookCreate, session: Optional[Session] = None) -> Book:
        """Create a new book record."""

        def _create(s: Session) -> Book:
            db_book = Book(
                title=book.title,
                author=book.author,
                status=book.status.value,
                current_page=book.current_page,
                total_pages=book.total_pages,
                progress=book.progress,
                average_pages_per_hour=book.average_pages_per_hour,
                daily_page_target=book.daily_page_target,
                date_started=book.date_started.isoformat() if book.date_started else None,
                date_finished=book.date_finished.isoformat() if book.date_finished else None,
            )
            s.add(db_book)
            s.flush()
            return db_book

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                book = _create(s)
                s.expunge(book)
                return book

    def get_book(self, book_id: str, session: Optional[Session] = None) -> Optional[Book]:
        """Get a book by ID."""

        def _get(s: Session) -> Optional[Book]:
            return s.get(Book, book_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                book = _get(s)
                if book:
                    s.expunge(book)
                return book

    def get_books_by_status(
        self, status: str, session: Optional[Session] = None
    ) -> list[Book]:
        """Get all books with a given status."""

        def _get(s: Session) -> list[Book]:
            stmt = select(Book).where(Book.status == status).order_by(Book.title)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                books = _get(s)
                for book in books:
                    s.expunge(book)
                return books

    def search_books(
        self, query: str, limit: int = 20, session: Optional[Session] = None
    ) -> list[Book]:
        """Search books by title or author."""

        def _search(s: Session) -> list[Book]:
            pattern = f"%{query}%"
            stmt = (
                select(Book)
                .where((Book.title.ilike(pattern)) | (Book.author.ilike(pattern)))
                .order_by(Book.title)
                .limit(limit)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _search(session)
        else:
            with self.get_session() as s:
                books = _search(s)
                for book in books:
                    s.expunge(book)
                return books

    def get_all_books(self, session: Optional[Session] = None) -> list[Book]:
        """Get all books."""

        def _get(s: Session) -> list[Book]:
            stmt = select(Book).order_by(Book.title)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                books = _get(s)
                for book in books:
                    s.expunge(book)
                return books

    def update_book(
        self, book_id: str, update: BookUpdate, session: Optional[Session] = None
    ) -> Optional[Book]:
        """Update a book record.

        Raises:
            ValueError: If the update would leave current_page past total_pages
        """

        def _update(s: Session) -> Optional[Book]:
            book = s.get(Book, book_id)
            if not book:
                return None

            update_data = update.model_dump(exclude_unset=True)
            for field, value in update_data.items():
                if field in ("date_started", "date_finished"):
                    setattr(book, field, value.isoformat() if value else None)
                elif field == "status" and value:
                    setattr(book, field, value.value)
                else:
                    setattr(book, field, value)

            if (
                book.current_page is not None
                and book.total_pages is not None
                and book.current_page > book.total_pages
            ):
                raise ValueError(
                    f"current_page ({book.current_page}) cannot exceed "
                    f"total_pages ({book.total_pages})"
                )

            book.updated_at = datetime.now(timezone.utc).isoformat()
            s.flush()
            return book

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                book = _update(s)
                if book:
                    s.expunge(book)
                return book

    def delete_book(self, book_id: str, session: Optional[Session] = None) -> bool:
        """Delete a book record and its sessions."""

        def _delete(s: Session) -> bool:
            book = s.get(Book, book_id)
            if not book:
                return False
            s.delete(book)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    # ========================================================================
    # Reading Session Operations
    # ========================================================================

    def create_reading_session(
        self, fields: dict[str, Any], session: Optional[Session] = None
    ) -> ReadingSession:
        """Create a new reading session row from column values."""

        def _create(s: Session) -> ReadingSession:
            db_session = ReadingSession(**fields)
            s.add(db_session)
            s.flush()
            return db_session

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                row = _create(s)
                s.expunge(row)
                return row

    def get_reading_session(
        self, session_id: str, session: Optional[Session] = None
    ) -> Optional[ReadingSession]:
        """Get a reading session by ID."""

        def _get(s: Session) -> Optional[ReadingSession]:
            return s.get(ReadingSession, session_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                row = _get(s)
                if row:
                    s.expunge(row)
                return row

    def get_open_session(
        self, book_id: str, session: Optional[Session] = None
    ) -> Optional[ReadingSession]:
        """Get the active or paused session for a book, if any."""

        def _get(s: Session) -> Optional[ReadingSession]:
            stmt = (
                select(ReadingSession)
                .where(
                    ReadingSession.book_id == book_id,
                    ReadingSession.state.in_([state.value for state in OPEN_STATES]),
                )
                .order_by(ReadingSession.started_at.desc())
                .limit(1)
            )
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                row = _get(s)
                if row:
                    s.expunge(row)
                return row

    def get_session_by_request_id(
        self, request_id: str, session: Optional[Session] = None
    ) -> Optional[ReadingSession]:
        """Get the session created or completed by an idempotency key."""

        def _get(s: Session) -> Optional[ReadingSession]:
            stmt = select(ReadingSession).where(ReadingSession.request_id == request_id)
            return s.execute(stmt).scalars().first()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                row = _get(s)
                if row:
                    s.expunge(row)
                return row

    def update_reading_session(
        self, session_id: str, fields: dict[str, Any], session: Optional[Session] = None
    ) -> Optional[ReadingSession]:
        """Update columns of a reading session."""

        def _update(s: Session) -> Optional[ReadingSession]:
            row = s.get(ReadingSession, session_id)
            if not row:
                return None
            for field, value in fields.items():
                setattr(row, field, value)
            s.flush()
            return row

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                row = _update(s)
                if row:
                    s.expunge(row)
                return row

    def list_reading_sessions(
        self,
        book_id: Optional[str] = None,
        filters: Optional[SessionFilters] = None,
        session: Optional[Session] = None,
    ) -> list[ReadingSession]:
        """List reading sessions, most recent first.

        Args:
            book_id: Restrict to one book (all books when None)
            filters: Optional state, type, limit and date range filters
        """
        filters = filters or SessionFilters()

        def _list(s: Session) -> list[ReadingSession]:
            stmt = select(ReadingSession)

            if book_id:
                stmt = stmt.where(ReadingSession.book_id == book_id)

            if filters.state:
                stmt = stmt.where(ReadingSession.state == filters.state.value)

            if filters.session_type:
                stmt = stmt.where(ReadingSession.session_type == filters.session_type.value)

            if filters.date_range:
                stmt = stmt.where(
                    ReadingSession.session_date >= filters.date_range.start.isoformat(),
                    ReadingSession.session_date <= filters.date_range.end.isoformat(),
                )

            stmt = stmt.order_by(
                ReadingSession.session_date.desc(), ReadingSession.started_at.desc()
            )

            if filters.limit:
                stmt = stmt.limit(filters.limit)

            return list(s.execute(stmt).scalars().all())

        if session:
            return _list(session)
        else:
            with self.get_session() as s:
                rows = _list(s)
                for row in rows:
                    s.expunge(row)
                return rows


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
