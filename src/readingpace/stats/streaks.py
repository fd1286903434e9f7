"""Reading streak calculations over session dates."""

from datetime import date, timedelta
from typing import Iterable, Optional

from ..db.schemas import SessionResponse, SessionState


def reading_dates(sessions: Iterable[SessionResponse]) -> set[date]:
    """Distinct session dates of completed sessions."""
    return {s.session_date for s in sessions if s.state == SessionState.COMPLETED}


def calculate_current_streak(
    sessions: Iterable[SessionResponse], today: Optional[date] = None
) -> int:
    """Count consecutive reading days going back from today.

    The streak starts at today and stops at the first day without a
    completed session, so a day without reading today means a streak of 0.
    """
    today = today or date.today()
    dates = reading_dates(sessions)

    streak = 0
    check_date = today
    while check_date in dates:
        streak += 1
        check_date -= timedelta(days=1)

    return streak


def calculate_longest_streak(sessions: Iterable[SessionResponse]) -> int:
    """Longest run of consecutive reading days across all history."""
    sorted_dates = sorted(reading_dates(sessions))
    if not sorted_dates:
        return 0

    longest_streak = 1
    current_run = 1
    for i in range(1, len(sorted_dates)):
        if sorted_dates[i] - sorted_dates[i - 1] == timedelta(days=1):
            current_run += 1
            longest_streak = max(longest_streak, current_run)
        else:
            current_run = 1

    return longest_streak
