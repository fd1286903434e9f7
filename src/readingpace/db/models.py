"""SQLAlchemy ORM models for local SQLite database.

Tables:
- books: Book records with page state and stored reading pace
- reading_sessions: Timed and quick-add reading sessions
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import BookStatus, SessionState, SessionType, SyncStatus


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Book(Base):
    """Book model - the slice of a library record the reading core consumes."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), default=BookStatus.TO_READ.value, index=True
    )

    # Page state
    current_page: Mapped[Optional[int]] = mapped_column(Integer)
    total_pages: Mapped[Optional[int]] = mapped_column(Integer)
    progress: Mapped[Optional[float]] = mapped_column(Float)  # 0..1 fallback

    # Reading state
    average_pages_per_hour: Mapped[Optional[float]] = mapped_column(Float)
    daily_page_target: Mapped[Optional[int]] = mapped_column(Integer)

    # Dates
    date_started: Mapped[Optional[str]] = mapped_column(String(10))  # ISO date
    date_finished: Mapped[Optional[str]] = mapped_column(String(10))

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(
        String(32), default=utc_now_iso, onupdate=utc_now_iso
    )

    # Relationships
    sessions: Mapped[list["ReadingSession"]] = relationship(
        "ReadingSession", back_populates="book", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}', author='{self.author}')>"


class ReadingSession(Base):
    """Reading session model - one timed or quick-add session for a book."""

    __tablename__ = "reading_sessions"
    __table_args__ = (Index("ix_reading_sessions_book_state", "book_id", "state"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_type: Mapped[str] = mapped_column(
        String(10), default=SessionType.TIMED.value, nullable=False
    )
    state: Mapped[str] = mapped_column(
        String(10), default=SessionState.ACTIVE.value, nullable=False, index=True
    )

    # Timing (ISO datetimes)
    started_at: Mapped[str] = mapped_column(String(32), nullable=False)
    paused_at: Mapped[Optional[str]] = mapped_column(String(32))
    resumed_at: Mapped[Optional[str]] = mapped_column(String(32))
    paused_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ended_at: Mapped[Optional[str]] = mapped_column(String(32))
    session_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    # Pages
    start_page: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    end_page: Mapped[Optional[int]] = mapped_column(Integer)
    pages_read: Mapped[Optional[int]] = mapped_column(Integer)
    duration: Mapped[Optional[int]] = mapped_column(Integer)  # minutes

    pause_reason: Mapped[Optional[str]] = mapped_column(Text)
    request_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    sync_status: Mapped[str] = mapped_column(
        String(10), default=SyncStatus.SYNCED.value, nullable=False
    )

    created_at: Mapped[str] = mapped_column(String(32), default=utc_now_iso)

    # Relationships
    book: Mapped["Book"] = relationship("Book", back_populates="sessions")

    def __repr__(self) -> str:
        return (
            f"<ReadingSession(id={self.id}, book_id={self.book_id}, "
            f"state={self.state}, date={self.session_date})>"
        )
