"""Aggregate reading statistics for dashboards.

Summarizes completed sessions over a date range: totals, streaks, a
zero-filled daily series, week-over-week trend, finished-book summaries,
ETAs for books in progress, and progress against goals. Everything here is
a pure function over a snapshot of records; missing data degrades to zeros.
"""

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Iterable, Optional

from ..db.schemas import BookStatus, DateRange, SessionResponse, SessionState
from .forecast import (
    DEFAULT_DAILY_PAGE_TARGET,
    average_pages_per_hour,
    calculate_progress_forecast,
    get_progress_percentage,
    qualifying_sessions,
    round_half_up,
)
from .goals import GoalConfig
from .streaks import calculate_current_streak, calculate_longest_streak

TREND_WINDOW_DAYS = 7


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


@dataclass
class Totals:
    """Sums over completed sessions."""

    pages: int = 0
    minutes: int = 0
    sessions: int = 0

    @property
    def pages_per_session(self) -> float:
        return round(_ratio(self.pages, self.sessions), 1)

    @property
    def minutes_per_page(self) -> float:
        return round(_ratio(self.minutes, self.pages), 1)

    @property
    def pages_per_hour(self) -> float:
        return round(_ratio(self.pages * 60, self.minutes), 1)

    def pages_per_day(self, days: int) -> float:
        return round(_ratio(self.pages, max(1, days)), 1)

    def sessions_per_day(self, days: int) -> float:
        return round(_ratio(self.sessions, max(1, days)), 1)


@dataclass
class GoalProgress:
    """Progress toward one target.

    ``percent`` is unclamped; ``display_percent`` is limited to 0-100.
    """

    target: int = 0
    achieved: int = 0
    percent: int = 0
    display_percent: int = 0
    remaining: int = 0


@dataclass
class GoalSummary:
    """Goal configuration with progress for the range."""

    target_pages: int
    target_minutes: int
    bite_target_per_day: int
    pages: GoalProgress = field(default_factory=GoalProgress)
    minutes: GoalProgress = field(default_factory=GoalProgress)


@dataclass
class StreakSummary:
    """Current and best reading streaks in days."""

    current: int = 0
    best: int = 0


@dataclass
class FinishedBookSummary:
    """A book finished within the range."""

    book_id: str
    title: str
    date_finished: date
    days_to_finish: int
    avg_pph: float


@dataclass
class ActiveBookEta:
    """Finish estimate for a book being read."""

    book_id: str
    title: str
    progress_pct: int
    eta_date: Optional[date]
    bite_pages: int


@dataclass
class DailyPoint:
    """Pages and minutes read on one day."""

    date: date
    pages: int = 0
    minutes: int = 0


@dataclass
class Trend:
    """Recent window average pages/day against the window before it."""

    recent_average: float = 0.0
    prior_average: float = 0.0
    percent_change: float = 0.0


@dataclass
class StatsOverview:
    """Everything the statistics dashboard shows for a date range."""

    range: DateRange
    totals: Totals
    goals: GoalSummary
    streak: StreakSummary
    finished_books: list[FinishedBookSummary] = field(default_factory=list)
    active_etas: list[ActiveBookEta] = field(default_factory=list)
    heatmap: list[DailyPoint] = field(default_factory=list)
    trend: Trend = field(default_factory=Trend)

    @property
    def sparkline(self) -> list[tuple[date, int]]:
        """Pages per day across the range."""
        return [(point.date, point.pages) for point in self.heatmap]

    @property
    def days(self) -> int:
        return self.range.days

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        data["range"] = {
            "from": self.range.start.isoformat(),
            "to": self.range.end.isoformat(),
            "days": self.range.days,
        }
        data["sparkline"] = [
            {"date": day.isoformat(), "pages": pages} for day, pages in self.sparkline
        ]
        data["heatmap"] = [
            {"date": p.date.isoformat(), "pages": p.pages, "minutes": p.minutes}
            for p in self.heatmap
        ]
        for finished in data["finished_books"]:
            finished["date_finished"] = finished["date_finished"].isoformat()
        for eta in data["active_etas"]:
            eta["eta_date"] = eta["eta_date"].isoformat() if eta["eta_date"] else None
        return data


# ============================================================================
# Building blocks
# ============================================================================


def completed_only(sessions: Iterable[SessionResponse]) -> list[SessionResponse]:
    """Keep completed sessions."""
    return [s for s in sessions if s.state == SessionState.COMPLETED]


def calculate_totals(sessions: Iterable[SessionResponse]) -> Totals:
    """Sum pages, minutes and count over completed sessions."""
    completed = completed_only(sessions)
    return Totals(
        pages=sum(s.pages_read or 0 for s in completed),
        minutes=sum(s.duration or 0 for s in completed),
        sessions=len(completed),
    )


def build_daily_series(
    sessions: Iterable[SessionResponse], date_range: DateRange
) -> list[DailyPoint]:
    """One point per day in range, days without reading included as zeros."""
    pages_by_day: dict[date, int] = defaultdict(int)
    minutes_by_day: dict[date, int] = defaultdict(int)

    for s in completed_only(sessions):
        if date_range.contains(s.session_date):
            pages_by_day[s.session_date] += s.pages_read or 0
            minutes_by_day[s.session_date] += s.duration or 0

    return [
        DailyPoint(date=day, pages=pages_by_day[day], minutes=minutes_by_day[day])
        for day in date_range.dates()
    ]


def calculate_trend(series: list[DailyPoint], window: int = TREND_WINDOW_DAYS) -> Trend:
    """Compare the last ``window`` days against the ``window`` days before.

    The change is 0 when the earlier window has no data.
    """
    recent = series[-window:]
    prior = series[-2 * window:-window] if len(series) > window else []

    recent_average = _ratio(sum(p.pages for p in recent), len(recent))
    prior_average = _ratio(sum(p.pages for p in prior), len(prior))
    change = _ratio(recent_average - prior_average, prior_average) * 100

    return Trend(
        recent_average=round(recent_average, 1),
        prior_average=round(prior_average, 1),
        percent_change=round(change, 1),
    )


def calculate_goal_progress(achieved: int, target: int) -> GoalProgress:
    """Progress toward a target, with a display value clamped to 0-100."""
    percent = round_half_up(_ratio(achieved, target) * 100) if target > 0 else 0
    return GoalProgress(
        target=target,
        achieved=achieved,
        percent=percent,
        display_percent=max(0, min(100, percent)),
        remaining=max(0, target - achieved),
    )


def group_by_book(sessions: Iterable[SessionResponse]) -> dict[str, list[SessionResponse]]:
    """Completed sessions keyed by book ID."""
    grouped: dict[str, list[SessionResponse]] = defaultdict(list)
    for s in completed_only(sessions):
        grouped[str(s.book_id)].append(s)
    return grouped


def summarize_finished_books(
    books: Iterable,
    sessions_by_book: dict[str, list[SessionResponse]],
    date_range: DateRange,
) -> list[FinishedBookSummary]:
    """Books finished in range with days taken and average pace.

    Days taken are the days elapsed between the first and last qualifying
    session. Most recently finished first.
    """
    summaries = []
    for book in books:
        if book.status != BookStatus.FINISHED or not book.date_finished:
            continue
        finished_on = book.date_finished
        if isinstance(finished_on, str):
            finished_on = date.fromisoformat(finished_on)
        if not date_range.contains(finished_on):
            continue

        qualifying = qualifying_sessions(sessions_by_book.get(str(book.id), []), limit=None)
        if qualifying:
            session_dates = [s.session_date for s in qualifying]
            days_to_finish = (max(session_dates) - min(session_dates)).days
        else:
            days_to_finish = 0

        pph = average_pages_per_hour(qualifying)
        summaries.append(
            FinishedBookSummary(
                book_id=str(book.id),
                title=book.title,
                date_finished=finished_on,
                days_to_finish=days_to_finish,
                avg_pph=round_half_up(pph * 10) / 10,
            )
        )

    summaries.sort(key=lambda b: b.title)
    summaries.sort(key=lambda b: b.date_finished, reverse=True)
    return summaries


def build_active_etas(
    books: Iterable,
    sessions_by_book: dict[str, list[SessionResponse]],
    today: Optional[date] = None,
    default_daily_target: int = DEFAULT_DAILY_PAGE_TARGET,
) -> list[ActiveBookEta]:
    """Progress and forecast finish dates for books being read."""
    etas = []
    for book in books:
        if book.status != BookStatus.READING:
            continue
        forecast = calculate_progress_forecast(
            book,
            sessions_by_book.get(str(book.id), []),
            today=today,
            default_daily_target=default_daily_target,
        )
        etas.append(
            ActiveBookEta(
                book_id=str(book.id),
                title=book.title,
                progress_pct=get_progress_percentage(book),
                eta_date=forecast.estimated_finish_date,
                bite_pages=forecast.daily_page_target,
            )
        )

    # Soonest finish first, books without an estimate last
    etas.sort(key=lambda e: (e.eta_date is None, e.eta_date or date.max, e.title))
    return etas


# ============================================================================
# Engine
# ============================================================================


class StatsEngine:
    """Builds statistics overviews from session history."""

    def __init__(
        self,
        today: Optional[date] = None,
        default_daily_target: int = DEFAULT_DAILY_PAGE_TARGET,
        default_days: int = 30,
    ):
        """Initialize the engine.

        Args:
            today: Reference date for streaks and forecasts (default: today)
            default_daily_target: Bite-size target when a book stores none
            default_days: Range length used when no range is given
        """
        self._today = today
        self.default_daily_target = default_daily_target
        self.default_days = default_days

    @property
    def today(self) -> date:
        return self._today or date.today()

    def build_overview(
        self,
        sessions: Iterable[SessionResponse],
        books: Iterable,
        goals: Optional[GoalConfig] = None,
        date_range: Optional[DateRange] = None,
        best_streak: Optional[int] = None,
    ) -> StatsOverview:
        """Build the overview for a date range.

        Args:
            sessions: Session history (non-completed sessions are ignored)
            books: Books referenced by the sessions
            goals: Targets (default: GoalConfig defaults)
            date_range: Range to summarize (default: last ``default_days``)
            best_streak: Longest streak if already known to the caller;
                computed from ``sessions`` otherwise

        Returns:
            StatsOverview
        """
        history = completed_only(sessions)
        books = list(books)
        goals = goals or GoalConfig()
        date_range = date_range or DateRange.last_days(self.default_days, self.today)

        in_range = [s for s in history if date_range.contains(s.session_date)]
        totals = calculate_totals(in_range)
        series = build_daily_series(in_range, date_range)
        sessions_by_book = group_by_book(history)

        current = calculate_current_streak(history, self.today)
        if best_streak is None:
            best_streak = calculate_longest_streak(history)

        return StatsOverview(
            range=date_range,
            totals=totals,
            goals=GoalSummary(
                target_pages=goals.target_pages,
                target_minutes=goals.target_minutes,
                bite_target_per_day=goals.bite_target_per_day,
                pages=calculate_goal_progress(totals.pages, goals.target_pages),
                minutes=calculate_goal_progress(totals.minutes, goals.target_minutes),
            ),
            streak=StreakSummary(current=current, best=max(best_streak, current)),
            finished_books=summarize_finished_books(books, sessions_by_book, date_range),
            active_etas=build_active_etas(
                books, sessions_by_book, self.today, self.default_daily_target
            ),
            heatmap=series,
            trend=calculate_trend(series),
        )
