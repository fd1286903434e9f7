"""Pytest configuration and shared fixtures.

This module provides fixtures for testing readingpace, including a
temporary database, sample books, a controllable clock and a store wired
to both.
"""

import os
import tempfile
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, Optional
from uuid import uuid4

import pytest

from src.readingpace.config import reset_config
from src.readingpace.db.models import Book
from src.readingpace.db.schemas import (
    BookCreate,
    BookStatus,
    SessionResponse,
    SessionState,
    SessionType,
    SyncStatus,
)
from src.readingpace.db.sqlite import Database, reset_db
from src.readingpace.reading.store import LocalSessionStore
from src.readingpace.stats.goals import GoalStore


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now += timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """A clock frozen at 2026-03-10 09:00 UTC."""
    return FakeClock()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def goals_path(tmp_path: Path) -> Path:
    return tmp_path / "goals.json"


@pytest.fixture(scope="function")
def db(temp_db_path: Path, goals_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    # Point configuration at temporary files
    os.environ["READINGPACE_DB_PATH"] = str(temp_db_path)
    os.environ["READINGPACE_GOALS_PATH"] = str(goals_path)

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    reset_db()
    reset_config()
    for var in ("READINGPACE_DB_PATH", "READINGPACE_GOALS_PATH"):
        os.environ.pop(var, None)


@pytest.fixture
def store(db: Database, goals_path: Path, clock: FakeClock) -> LocalSessionStore:
    """A local session store over the test database and clock."""
    return LocalSessionStore(db, goals=GoalStore(goals_path), clock=clock)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book_data() -> BookCreate:
    """Create sample book data for testing."""
    return BookCreate(
        title="The Left Hand of Darkness",
        author="Ursula K. Le Guin",
        status=BookStatus.READING,
        current_page=10,
        total_pages=300,
        date_started=date(2026, 3, 1),
    )


@pytest.fixture
def created_book(db: Database, sample_book_data: BookCreate) -> Book:
    """Create and return a book in the database."""
    return db.create_book(sample_book_data)


@pytest.fixture
def unstarted_book(db: Database) -> Book:
    """A book that has not been opened yet."""
    return db.create_book(
        BookCreate(title="Piranesi", author="Susanna Clarke", total_pages=272)
    )


@pytest.fixture
def multiple_books(db: Database) -> list[Book]:
    """Create multiple books in the database."""
    books_data = [
        BookCreate(
            title="Book One",
            author="Author A",
            status=BookStatus.FINISHED,
            current_page=200,
            total_pages=200,
        ),
        BookCreate(
            title="Book Two",
            author="Author B",
            status=BookStatus.READING,
            current_page=50,
            total_pages=400,
        ),
        BookCreate(
            title="Book Three",
            author="Author A",
            status=BookStatus.TO_READ,
        ),
    ]
    return [db.create_book(data) for data in books_data]


def make_session(
    book_id: Optional[str] = None,
    session_date: date = date(2026, 3, 10),
    pages_read: Optional[int] = 20,
    duration: Optional[int] = 30,
    state: SessionState = SessionState.COMPLETED,
    session_type: SessionType = SessionType.TIMED,
    start_page: int = 0,
    started_at: Optional[datetime] = None,
    **fields,
) -> SessionResponse:
    """Build a session record without touching the database."""
    started_at = started_at or datetime.combine(
        session_date, datetime.min.time(), tzinfo=timezone.utc
    ) + timedelta(hours=9)
    completed = state == SessionState.COMPLETED
    fields.setdefault("sync_status", SyncStatus.SYNCED)
    return SessionResponse(
        id=uuid4(),
        book_id=book_id or uuid4(),
        session_type=session_type,
        state=state,
        started_at=started_at,
        session_date=session_date,
        start_page=start_page,
        end_page=start_page + pages_read if completed and pages_read is not None else None,
        pages_read=pages_read if completed else None,
        duration=duration if completed else None,
        ended_at=started_at + timedelta(minutes=duration or 0) if completed else None,
        created_at=started_at,
        **fields,
    )


@pytest.fixture
def session_factory():
    """Factory for in-memory session records."""
    return make_session


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()


@pytest.fixture
def cli_app():
    """Get the CLI app for testing."""
    from src.readingpace.cli import app
    return app
