"""Reading progress forecasts.

Estimates how long a book will take to finish from the throughput of its
recent completed sessions, and hosts the progress helpers every view uses
(percentage complete, reading speed, session efficiency).
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional

from ..db.schemas import BookStatus, SessionResponse, SessionState
from .streaks import calculate_current_streak

# Number of recent sessions used to estimate pace
RECENT_SESSION_COUNT = 10

# Pace thresholds in pages per hour
FAST_PACE_THRESHOLD = 40
SLOW_PACE_THRESHOLD = 20

# Forecasts assume this much reading per calendar day
DAILY_READING_HOURS = 1

# Plans that would run past this many days get a higher daily target
PLAN_HORIZON_DAYS = 30

DEFAULT_DAILY_PAGE_TARGET = 10

# Reading books untouched for longer than this need attention
ATTENTION_AFTER_DAYS = 3


class ReadingPace(str, Enum):
    """Reading pace classification."""

    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"


@dataclass
class ReadingState:
    """Stored per-book reading state used as forecast fallbacks."""

    average_pages_per_hour: Optional[float] = None
    daily_page_target: Optional[int] = None

    @classmethod
    def from_book(cls, book) -> "ReadingState":
        return cls(
            average_pages_per_hour=getattr(book, "average_pages_per_hour", None),
            daily_page_target=getattr(book, "daily_page_target", None),
        )


@dataclass
class ProgressForecast:
    """Forecast for finishing a book."""

    average_pages_per_hour: float = 0.0
    estimated_time_to_finish: Optional[str] = None
    estimated_finish_date: Optional[date] = None
    daily_page_target: int = DEFAULT_DAILY_PAGE_TARGET
    reading_pace: ReadingPace = ReadingPace.MEDIUM
    days_to_finish: Optional[int] = None


@dataclass
class ReadingStats:
    """Summary of a collection of reading sessions."""

    total_minutes_read: int = 0
    total_pages_read: int = 0
    total_sessions: int = 0
    average_session_length: int = 0  # minutes
    longest_session: int = 0  # minutes
    streak_days: int = 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _sort_key(session: SessionResponse):
    return (session.session_date, session.started_at)


def qualifying_sessions(
    sessions: Iterable[SessionResponse], limit: Optional[int] = RECENT_SESSION_COUNT
) -> list[SessionResponse]:
    """Completed sessions with both time and pages, newest first.

    Args:
        sessions: Sessions to filter
        limit: Keep at most this many (None keeps all)
    """
    valid = [
        s for s in sessions
        if s.state == SessionState.COMPLETED
        and (s.duration or 0) > 0
        and (s.pages_read or 0) > 0
    ]
    valid.sort(key=_sort_key, reverse=True)
    if limit is not None:
        valid = valid[:limit]
    return valid


def average_pages_per_hour(sessions: Iterable[SessionResponse]) -> float:
    """Pages per hour across sessions, 0 when there is no timed reading."""
    sessions = list(sessions)
    total_pages = sum(s.pages_read or 0 for s in sessions)
    total_hours = sum((s.duration or 0) / 60 for s in sessions)
    if total_hours <= 0:
        return 0.0
    return total_pages / total_hours


def classify_pace(pages_per_hour: float) -> ReadingPace:
    """Classify a pages-per-hour figure."""
    if pages_per_hour > FAST_PACE_THRESHOLD:
        return ReadingPace.FAST
    if pages_per_hour < SLOW_PACE_THRESHOLD:
        return ReadingPace.SLOW
    return ReadingPace.MEDIUM


def format_time_to_finish(hours_needed: float) -> str:
    """Format a reading-time estimate.

    Minutes under an hour, hours and minutes under a day, whole days after.
    """
    if hours_needed < 1:
        return f"{round_half_up(hours_needed * 60)} minutes"

    if hours_needed < 24:
        hours = int(hours_needed)
        minutes = round_half_up((hours_needed - hours) * 60)
        if minutes == 60:
            hours, minutes = hours + 1, 0
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"

    days = round_half_up(hours_needed / 24)
    return f"{days} day{'s' if days > 1 else ''}"


def calculate_progress_forecast(
    book,
    sessions: Iterable[SessionResponse],
    reading_state: Optional[ReadingState] = None,
    today: Optional[date] = None,
    default_daily_target: int = DEFAULT_DAILY_PAGE_TARGET,
) -> ProgressForecast:
    """Forecast when a book will be finished.

    Args:
        book: Book with ``current_page`` and ``total_pages``
        sessions: The book's sessions (any state, any order)
        reading_state: Stored pace and target (default: read from the book)
        today: Date the finish date counts from (default: today)
        default_daily_target: Target used when none is stored

    Returns:
        ProgressForecast. Missing data yields zeros and Nones, never an error.
    """
    if reading_state is None:
        reading_state = ReadingState.from_book(book)
    today = today or date.today()

    recent = qualifying_sessions(sessions)

    pages_per_hour = reading_state.average_pages_per_hour or 0.0
    if recent:
        pages_per_hour = average_pages_per_hour(recent)
    pages_per_hour = max(0.0, pages_per_hour)

    current_page = book.current_page or 0
    total_pages = book.total_pages or 0
    remaining_pages = max(0, total_pages - current_page)

    estimated_time_to_finish = None
    estimated_finish_date = None
    days_to_finish = None

    if pages_per_hour > 0 and total_pages > 0 and remaining_pages > 0:
        hours_needed = remaining_pages / pages_per_hour
        estimated_time_to_finish = format_time_to_finish(hours_needed)
        days_to_finish = math.ceil(hours_needed / DAILY_READING_HOURS)
        estimated_finish_date = today + timedelta(days=days_to_finish)

    daily_page_target = reading_state.daily_page_target or default_daily_target
    if days_to_finish and days_to_finish > PLAN_HORIZON_DAYS:
        daily_page_target = math.ceil(remaining_pages / PLAN_HORIZON_DAYS)

    return ProgressForecast(
        average_pages_per_hour=round_half_up(pages_per_hour * 10) / 10,
        estimated_time_to_finish=estimated_time_to_finish,
        estimated_finish_date=estimated_finish_date,
        daily_page_target=daily_page_target,
        reading_pace=classify_pace(pages_per_hour),
        days_to_finish=days_to_finish,
    )


def get_progress_percentage(book) -> int:
    """Percent of a book read, always within 0-100.

    Uses page counts when known, the fractional ``progress`` otherwise.
    """
    total_pages = book.total_pages or 0
    current_page = book.current_page or 0
    if total_pages > 0 and current_page:
        percent = round_half_up(current_page / total_pages * 100)
    elif getattr(book, "progress", None):
        percent = round_half_up(book.progress * 100)
    else:
        percent = 0
    return max(0, min(100, percent))


def calculate_reading_speed(pages: int, minutes: int) -> float:
    """Calculate reading speed in pages per hour.

    Args:
        pages: Number of pages read
        minutes: Time spent reading

    Returns:
        Pages per hour
    """
    if minutes <= 0:
        return 0.0
    return round((pages / minutes) * 60, 1)


def calculate_session_efficiency(session: SessionResponse) -> float:
    """Pages per minute for one session, 0 without timing."""
    if not session.duration or not session.pages_read:
        return 0.0
    return session.pages_read / session.duration


def needs_attention(
    book, sessions: Iterable[SessionResponse], now: Optional[datetime] = None
) -> bool:
    """Whether a book being read has gone untouched for too long."""
    if book.status != BookStatus.READING:
        return False

    book_sessions = [s for s in sessions if str(s.book_id) == str(book.id)]
    if not book_sessions:
        return True

    last_session = max(book_sessions, key=_sort_key)
    now = now or datetime.now(timezone.utc)
    last_day = datetime.combine(last_session.session_date, datetime.min.time(), tzinfo=timezone.utc)
    return (now - last_day) > timedelta(days=ATTENTION_AFTER_DAYS)


def calculate_reading_stats(
    sessions: Iterable[SessionResponse], today: Optional[date] = None
) -> ReadingStats:
    """Summarize completed sessions."""
    completed = [s for s in sessions if s.state == SessionState.COMPLETED]
    if not completed:
        return ReadingStats()

    total_minutes = sum(s.duration or 0 for s in completed)
    total_pages = sum(s.pages_read or 0 for s in completed)

    return ReadingStats(
        total_minutes_read=total_minutes,
        total_pages_read=total_pages,
        total_sessions=len(completed),
        average_session_length=round_half_up(total_minutes / len(completed)),
        longest_session=max(s.duration or 0 for s in completed),
        streak_days=calculate_current_streak(completed, today),
    )
