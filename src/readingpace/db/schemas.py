"""Pydantic schemas for data validation.

These schemas define the structure of books and reading sessions as they
cross the storage boundary. Timestamps are stored as ISO-8601 strings and
parsed into datetimes here.
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


class BookStatus(str, Enum):
    """Reading status of a book."""

    TO_READ = "to_read"
    READING = "reading"
    FINISHED = "finished"


class SessionType(str, Enum):
    """How a reading session was recorded."""

    TIMED = "timed"  # Start/pause/resume/stop
    QUICK = "quick"  # Retroactive page count, no timing


class SessionState(str, Enum):
    """State of a reading session."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class SyncStatus(str, Enum):
    """Whether a local record matches the durable store."""

    SYNCED = "synced"
    PENDING = "pending"
    SYNCING = "syncing"
    FAILED = "failed"


# Sessions that still occupy the per-book "active session" slot
OPEN_STATES = (SessionState.ACTIVE, SessionState.PAUSED)


# ============================================================================
# Book Schemas
# ============================================================================


class BookBase(BaseModel):
    """Base book fields common to create/update operations."""

    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Primary author")
    status: BookStatus = Field(default=BookStatus.TO_READ)

    current_page: Optional[int] = Field(None, ge=0)
    total_pages: Optional[int] = Field(None, ge=0)
    progress: Optional[float] = Field(
        None, ge=0, le=1, description="Fractional progress when page counts are unknown"
    )

    # Reading state
    average_pages_per_hour: Optional[float] = Field(None, ge=0)
    daily_page_target: Optional[int] = Field(None, ge=1)

    date_started: Optional[date] = None
    date_finished: Optional[date] = None

    @model_validator(mode="after")
    def check_page_bounds(self) -> "BookBase":
        """Current page may not run past the last page."""
        if (
            self.current_page is not None
            and self.total_pages is not None
            and self.current_page > self.total_pages
        ):
            raise ValueError(
                f"current_page ({self.current_page}) cannot exceed "
                f"total_pages ({self.total_pages})"
            )
        return self


class BookCreate(BookBase):
    """Schema for creating a new book."""

    pass


class BookUpdate(BaseModel):
    """Schema for updating an existing book. All fields optional."""

    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    status: Optional[BookStatus] = None
    current_page: Optional[int] = Field(None, ge=0)
    total_pages: Optional[int] = Field(None, ge=0)
    progress: Optional[float] = Field(None, ge=0, le=1)
    average_pages_per_hour: Optional[float] = Field(None, ge=0)
    daily_page_target: Optional[int] = Field(None, ge=1)
    date_started: Optional[date] = None
    date_finished: Optional[date] = None


class BookResponse(BookBase):
    """Schema for book responses (includes DB-generated fields)."""

    id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def check_page_bounds(self) -> "BookResponse":
        # Stored rows are reported as-is; consumers clamp.
        return self


# ============================================================================
# Reading Session Schemas
# ============================================================================


class SessionResponse(BaseModel):
    """A reading session as reported by the store.

    Derived fields (``pages_read``, ``duration``) are always computed by the
    store and are only ever read by the core.
    """

    id: UUID
    book_id: UUID
    session_type: SessionType
    state: SessionState
    started_at: datetime
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    paused_seconds: int = Field(0, ge=0)
    ended_at: Optional[datetime] = None
    session_date: date
    start_page: int = Field(..., ge=0)
    end_page: Optional[int] = Field(None, ge=0)
    pages_read: Optional[int] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=0, description="Active minutes")
    pause_reason: Optional[str] = None
    request_id: Optional[str] = None
    sync_status: SyncStatus = SyncStatus.SYNCED
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}

    @property
    def is_open(self) -> bool:
        """Whether the session still occupies the book's active slot."""
        return self.state in OPEN_STATES


class DateRange(BaseModel):
    """Inclusive calendar date range."""

    start: date
    end: date

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        """End may not come before start."""
        if self.end < self.start:
            raise ValueError(f"Range end {self.end} is before start {self.start}")
        return self

    @classmethod
    def last_days(cls, days: int, today: Optional[date] = None) -> "DateRange":
        """Range covering the last ``days`` days ending today."""
        end = today or date.today()
        return cls(start=end - timedelta(days=max(1, days) - 1), end=end)

    @property
    def days(self) -> int:
        """Number of calendar days in the range, never less than 1."""
        return max(1, (self.end - self.start).days + 1)

    def contains(self, value: date) -> bool:
        """Check whether a date falls inside the range."""
        return self.start <= value <= self.end

    def dates(self) -> list[date]:
        """Every date in the range, oldest first."""
        return [self.start + timedelta(days=i) for i in range(self.days)]


class SessionFilters(BaseModel):
    """Filters for listing reading sessions."""

    state: Optional[SessionState] = None
    session_type: Optional[SessionType] = None
    limit: Optional[int] = Field(None, ge=1)
    date_range: Optional[DateRange] = None

    @field_validator("limit", mode="before")
    @classmethod
    def zero_means_unlimited(cls, v):
        """Treat a limit of 0 as no limit."""
        if v == 0:
            return None
        return v
