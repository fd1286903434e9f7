"""Tests for progress forecasts."""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from src.readingpace.db.schemas import BookStatus, SessionState
from src.readingpace.stats.forecast import (
    ReadingPace,
    ReadingState,
    ReadingStats,
    calculate_progress_forecast,
    calculate_reading_speed,
    calculate_reading_stats,
    calculate_session_efficiency,
    classify_pace,
    format_time_to_finish,
    get_progress_percentage,
    needs_attention,
    qualifying_sessions,
)

TODAY = date(2026, 3, 10)


def make_book(current_page=0, total_pages=300, **kwargs):
    defaults = {
        "id": str(uuid4()),
        "status": BookStatus.READING,
        "progress": None,
        "average_pages_per_hour": None,
        "daily_page_target": None,
    }
    defaults.update(kwargs)
    return SimpleNamespace(current_page=current_page, total_pages=total_pages, **defaults)


class TestCalculateReadingSpeed:
    """Tests for calculate_reading_speed."""

    def test_normal_speed(self):
        assert calculate_reading_speed(30, 60) == 30.0

    def test_fractional_speed(self):
        assert calculate_reading_speed(25, 45) == 33.3

    def test_zero_minutes(self):
        assert calculate_reading_speed(50, 0) == 0.0


class TestQualifyingSessions:
    """Tests for picking sessions that inform pace."""

    def test_needs_time_and_pages(self, session_factory):
        sessions = [
            session_factory(pages_read=10, duration=20),
            session_factory(pages_read=0, duration=20),
            session_factory(pages_read=10, duration=None),
            session_factory(state=SessionState.ACTIVE),
        ]
        assert len(qualifying_sessions(sessions)) == 1

    def test_newest_ten(self, session_factory):
        sessions = [
            session_factory(session_date=TODAY - timedelta(days=i)) for i in range(15)
        ]
        recent = qualifying_sessions(sessions)

        assert len(recent) == 10
        assert recent[0].session_date == TODAY
        assert recent[-1].session_date == TODAY - timedelta(days=9)


class TestProgressForecast:
    """Tests for calculate_progress_forecast."""

    def test_no_sessions(self):
        book = make_book(current_page=50, total_pages=200)

        forecast = calculate_progress_forecast(book, [], today=TODAY)

        assert forecast.average_pages_per_hour == 0
        assert forecast.estimated_time_to_finish is None
        assert forecast.estimated_finish_date is None
        assert forecast.daily_page_target == 10
        assert forecast.reading_pace == ReadingPace.SLOW

    def test_estimate_from_sessions(self, session_factory):
        book = make_book(current_page=100, total_pages=200)
        sessions = [
            session_factory(pages_read=30, duration=60),
            session_factory(pages_read=30, duration=60),
        ]

        forecast = calculate_progress_forecast(book, sessions, today=TODAY)

        assert forecast.average_pages_per_hour == 30.0
        assert forecast.estimated_time_to_finish == "3h 20m"
        assert forecast.days_to_finish == 4
        assert forecast.estimated_finish_date == TODAY + timedelta(days=4)
        assert forecast.reading_pace == ReadingPace.MEDIUM

    def test_pace_rounds_half_up(self, session_factory):
        book = make_book(current_page=100, total_pages=200)
        sessions = [session_factory(pages_read=121, duration=240)]

        forecast = calculate_progress_forecast(book, sessions, today=TODAY)

        assert forecast.average_pages_per_hour == 30.3

    def test_falls_back_to_stored_pace(self):
        book = make_book(current_page=0, total_pages=30, average_pages_per_hour=60.0)

        forecast = calculate_progress_forecast(book, [], today=TODAY)

        assert forecast.average_pages_per_hour == 60.0
        assert forecast.estimated_time_to_finish == "30 minutes"
        assert forecast.reading_pace == ReadingPace.FAST

    def test_explicit_reading_state(self):
        book = make_book(current_page=0, total_pages=30)
        state = ReadingState(average_pages_per_hour=15.0, daily_page_target=25)

        forecast = calculate_progress_forecast(book, [], reading_state=state, today=TODAY)

        assert forecast.daily_page_target == 25
        assert forecast.estimated_time_to_finish == "2h"

    def test_long_books_raise_daily_target(self, session_factory):
        book = make_book(current_page=0, total_pages=900)
        sessions = [session_factory(pages_read=10, duration=60)]

        forecast = calculate_progress_forecast(book, sessions, today=TODAY)

        assert forecast.days_to_finish == 90
        assert forecast.estimated_time_to_finish == "4 days"
        assert forecast.daily_page_target == 30

    def test_finished_book_has_no_estimate(self, session_factory):
        book = make_book(current_page=200, total_pages=200)
        forecast = calculate_progress_forecast(
            book, [session_factory(pages_read=50, duration=60)], today=TODAY
        )
        assert forecast.estimated_finish_date is None

    def test_more_progress_never_later(self, session_factory):
        sessions = [session_factory(pages_read=25, duration=60)]
        finish_dates = [
            calculate_progress_forecast(
                make_book(current_page=page, total_pages=400), sessions, today=TODAY
            ).estimated_finish_date
            for page in range(0, 400, 37)
        ]
        assert finish_dates == sorted(finish_dates, reverse=True)

    def test_custom_default_target(self):
        forecast = calculate_progress_forecast(
            make_book(), [], today=TODAY, default_daily_target=15
        )
        assert forecast.daily_page_target == 15


class TestFormatting:
    """Tests for time-to-finish and pace helpers."""

    @pytest.mark.parametrize(
        "hours,expected",
        [
            (0.5, "30 minutes"),
            (1.0, "1h"),
            (2.25, "2h 15m"),
            (1.999, "2h"),
            (30, "1 day"),
            (60, "3 days"),
        ],
    )
    def test_format_time_to_finish(self, hours, expected):
        assert format_time_to_finish(hours) == expected

    def test_classify_pace_boundaries(self):
        assert classify_pace(40) == ReadingPace.MEDIUM
        assert classify_pace(40.1) == ReadingPace.FAST
        assert classify_pace(20) == ReadingPace.MEDIUM
        assert classify_pace(19.9) == ReadingPace.SLOW


class TestProgressPercentage:
    """Tests for get_progress_percentage."""

    def test_from_pages(self):
        assert get_progress_percentage(make_book(current_page=50, total_pages=200)) == 25

    def test_clamped(self):
        assert get_progress_percentage(make_book(current_page=250, total_pages=200)) == 100

    def test_from_fraction(self):
        book = make_book(current_page=None, total_pages=None, progress=0.426)
        assert get_progress_percentage(book) == 43

    def test_no_data(self):
        assert get_progress_percentage(make_book(current_page=None, total_pages=None)) == 0


class TestAttentionAndStats:
    """Tests for needs_attention and calculate_reading_stats."""

    def test_session_efficiency(self, session_factory):
        assert calculate_session_efficiency(session_factory(pages_read=30, duration=60)) == 0.5
        assert calculate_session_efficiency(session_factory(duration=None)) == 0.0

    def test_needs_attention(self, session_factory):
        book = make_book()
        now = datetime(2026, 3, 10, 12, tzinfo=timezone.utc)

        assert needs_attention(book, [], now=now)

        recent = session_factory(book_id=book.id, session_date=date(2026, 3, 9))
        assert not needs_attention(book, [recent], now=now)

        stale = session_factory(book_id=book.id, session_date=date(2026, 3, 5))
        assert needs_attention(book, [stale], now=now)

    def test_only_reading_books_need_attention(self):
        book = make_book(status=BookStatus.FINISHED)
        assert not needs_attention(book, [])

    def test_reading_stats(self, session_factory):
        sessions = [
            session_factory(session_date=TODAY, pages_read=20, duration=30),
            session_factory(session_date=TODAY - timedelta(days=1), pages_read=10, duration=45),
            session_factory(state=SessionState.ACTIVE),
        ]

        stats = calculate_reading_stats(sessions, today=TODAY)

        assert stats.total_sessions == 2
        assert stats.total_pages_read == 30
        assert stats.total_minutes_read == 75
        assert stats.average_session_length == 38
        assert stats.longest_session == 45
        assert stats.streak_days == 2

    def test_reading_stats_empty(self):
        assert calculate_reading_stats([]) == ReadingStats()
