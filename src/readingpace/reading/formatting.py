"""Display helpers for reading sessions.

Turns session records into the short strings and groupings a history view
shows: durations, summaries, state and sync badges, and day headings.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from ..db.schemas import SessionResponse, SessionState, SessionType, SyncStatus


@dataclass
class SessionGroup:
    """Sessions recorded on one day."""

    date: date
    sessions: list[SessionResponse] = field(default_factory=list)
    total_minutes: int = 0
    total_pages: int = 0


@dataclass
class StatusInfo:
    """Label and badge color for a state or sync status."""

    text: str
    color: str
    needs_attention: bool = False


@dataclass
class ValidationResult:
    """Outcome of checking page input before submitting it."""

    is_valid: bool
    error: Optional[str] = None


def format_reading_time(minutes: int) -> str:
    """Format minutes as "45m", "2h" or "1h 30m"."""
    minutes = max(0, int(minutes))
    if minutes < 60:
        return f"{minutes}m"

    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h {remaining}m"


def format_reading_pace(pages_per_hour: float) -> str:
    """Describe a pages-per-hour figure."""
    if not pages_per_hour:
        return "No data yet"

    if pages_per_hour < 15:
        label = "Slow"
    elif pages_per_hour < 30:
        label = "Average"
    elif pages_per_hour < 50:
        label = "Fast"
    else:
        label = "Very Fast"
    return f"{pages_per_hour:.1f} pages/hr ({label})"


def get_session_duration(session: SessionResponse) -> str:
    """Readable duration, or a placeholder for untimed sessions."""
    if not session.duration:
        if session.session_type == SessionType.QUICK:
            return "Quick add"
        return "Unknown"
    return format_reading_time(session.duration)


def get_session_type_text(session: SessionResponse) -> str:
    if session.session_type == SessionType.TIMED:
        return "Timed session"
    if session.session_type == SessionType.QUICK:
        return "Quick add"
    return "Reading session"


def get_session_state_info(session: SessionResponse) -> StatusInfo:
    """Label and color for the session's state."""
    return {
        SessionState.ACTIVE: StatusInfo("Active", "green"),
        SessionState.PAUSED: StatusInfo("Paused", "orange"),
        SessionState.COMPLETED: StatusInfo("Completed", "blue"),
    }.get(session.state, StatusInfo("Unknown", "gray"))


def get_session_summary(session: SessionResponse) -> str:
    """One-line summary such as "12 pages in 25m"."""
    parts = []
    if session.pages_read:
        parts.append(f"{session.pages_read} page{'' if session.pages_read == 1 else 's'}")
    if session.duration:
        parts.append(f"in {get_session_duration(session)}")

    if not parts:
        return get_session_type_text(session)
    return " ".join(parts)


def group_sessions_by_date(sessions: Iterable[SessionResponse]) -> list[SessionGroup]:
    """Group sessions by day, newest day first, with per-day totals."""
    by_day: dict[date, list[SessionResponse]] = defaultdict(list)
    for session in sessions:
        by_day[session.session_date].append(session)

    groups = []
    for day, day_sessions in by_day.items():
        day_sessions.sort(key=lambda s: s.started_at, reverse=True)
        groups.append(
            SessionGroup(
                date=day,
                sessions=day_sessions,
                total_minutes=sum(s.duration or 0 for s in day_sessions),
                total_pages=sum(s.pages_read or 0 for s in day_sessions),
            )
        )

    groups.sort(key=lambda g: g.date, reverse=True)
    return groups


def format_session_date(value: date, today: Optional[date] = None) -> str:
    """"Today", "Yesterday", or a date like "Oct 5, 2026"."""
    today = today or date.today()
    if value == today:
        return "Today"
    if value == today - timedelta(days=1):
        return "Yesterday"
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def needs_sync(session: SessionResponse) -> bool:
    """Whether the local record still has to reach the store."""
    return session.sync_status in (SyncStatus.PENDING, SyncStatus.FAILED)


def get_sync_status_info(session: SessionResponse) -> StatusInfo:
    return {
        SyncStatus.SYNCED: StatusInfo("Synced", "green"),
        SyncStatus.PENDING: StatusInfo("Syncing...", "yellow"),
        SyncStatus.SYNCING: StatusInfo("Syncing...", "yellow"),
        SyncStatus.FAILED: StatusInfo("Sync failed", "red", needs_attention=True),
    }.get(session.sync_status, StatusInfo("Unknown", "gray"))


def validate_session_data(
    start_page: Optional[int] = None,
    end_page: Optional[int] = None,
    total_pages: Optional[int] = None,
) -> ValidationResult:
    """Check page input before a stop or quick add is submitted."""
    if start_page is not None and start_page < 0:
        return ValidationResult(False, "Start page cannot be negative")

    if start_page is not None and end_page is not None and end_page < start_page:
        return ValidationResult(False, "End page cannot be less than start page")

    if total_pages and end_page and end_page > total_pages:
        return ValidationResult(False, "End page cannot exceed total pages")

    return ValidationResult(True)
