"""Tests for the session timer."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from src.readingpace.db.schemas import SessionState
from src.readingpace.reading.timer import (
    SessionTimer,
    compute_elapsed_seconds,
    elapsed_from_session,
    elapsed_minutes,
    format_elapsed,
)

T0 = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def at(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


class TestComputeElapsedSeconds:
    """Tests for the elapsed-time calculation."""

    def test_active_without_pauses(self):
        assert compute_elapsed_seconds(SessionState.ACTIVE, T0, at(600)) == 600

    def test_pause_interval_excluded(self):
        """Paused 300s in, resumed 600s later, measured at 1200s."""
        elapsed = compute_elapsed_seconds(
            SessionState.ACTIVE,
            T0,
            at(1200),
            paused_at=at(300),
            resumed_at=at(900),
            paused_seconds=600,
        )
        assert elapsed == 600

    def test_last_interval_used_without_accumulated_total(self):
        elapsed = compute_elapsed_seconds(
            SessionState.ACTIVE, T0, at(1200), paused_at=at(300), resumed_at=at(900)
        )
        assert elapsed == 600

    def test_multiple_pauses_accumulate(self):
        """Pauses of 100s and 200s are both subtracted."""
        elapsed = compute_elapsed_seconds(
            SessionState.ACTIVE,
            T0,
            at(1000),
            paused_at=at(500),
            resumed_at=at(700),
            paused_seconds=300,
        )
        assert elapsed == 700

    def test_paused_is_frozen_at_pause(self):
        elapsed = compute_elapsed_seconds(
            SessionState.PAUSED, T0, at(5000), paused_at=at(300)
        )
        assert elapsed == 300

    def test_paused_value_does_not_change_over_time(self):
        first = compute_elapsed_seconds(
            SessionState.PAUSED, T0, at(400), paused_at=at(300), paused_seconds=50
        )
        later = compute_elapsed_seconds(
            SessionState.PAUSED, T0, at(9000), paused_at=at(300), paused_seconds=50
        )
        assert first == later == 250

    def test_paused_without_pause_time_is_zero(self):
        assert compute_elapsed_seconds(SessionState.PAUSED, T0, at(100)) == 0

    def test_pause_before_start_is_zero(self):
        elapsed = compute_elapsed_seconds(
            SessionState.ACTIVE, T0, at(600), paused_at=at(-60), resumed_at=at(10)
        )
        assert elapsed == 0

    def test_resume_before_pause_is_zero(self):
        elapsed = compute_elapsed_seconds(
            SessionState.ACTIVE, T0, at(600), paused_at=at(300), resumed_at=at(200)
        )
        assert elapsed == 0

    def test_never_negative(self):
        assert compute_elapsed_seconds(SessionState.ACTIVE, T0, at(-30)) == 0
        assert compute_elapsed_seconds(
            SessionState.ACTIVE, T0, at(100), paused_seconds=500
        ) == 0

    def test_accepts_state_strings(self):
        assert compute_elapsed_seconds("active", T0, at(42)) == 42

    def test_monotonic_while_active(self):
        values = [
            compute_elapsed_seconds(
                SessionState.ACTIVE, T0, at(s), paused_at=at(100), resumed_at=at(150),
                paused_seconds=50,
            )
            for s in range(150, 2000, 97)
        ]
        assert values == sorted(values)


class TestElapsedFromSession:
    """Tests for measuring stored sessions."""

    def test_completed_measured_at_end(self, session_factory):
        session = session_factory(duration=45, started_at=T0)
        assert elapsed_from_session(session, now=at(99999)) == 45 * 60

    def test_open_session_measured_now(self, session_factory):
        session = session_factory(state=SessionState.ACTIVE, started_at=T0)
        assert elapsed_from_session(session, now=at(90)) == 90


class TestFormatting:
    """Tests for elapsed-time formatting."""

    def test_minutes_and_seconds(self):
        assert format_elapsed(0) == "0:00"
        assert format_elapsed(65) == "1:05"
        assert format_elapsed(3599) == "59:59"

    def test_hours(self):
        assert format_elapsed(3725) == "1:02:05"

    def test_negative_clamped(self):
        assert format_elapsed(-5) == "0:00"

    def test_elapsed_minutes_floors(self):
        assert elapsed_minutes(119) == 1
        assert elapsed_minutes(1800) == 30


class TestSessionTimer:
    """Tests for SessionTimer outside an event loop."""

    @pytest.fixture
    def timer(self, clock):
        return SessionTimer(clock=clock)

    def test_idle_timer(self, timer):
        assert timer.state is None
        assert timer.refresh() == 0
        assert timer.formatted == "0:00"

    def test_start_and_refresh(self, timer, clock):
        timer.start()
        clock.advance(90)
        assert timer.refresh() == 90
        assert timer.is_running
        assert not timer.is_ticking

    def test_pause_freezes_elapsed(self, timer, clock):
        timer.start()
        clock.advance(120)
        timer.pause()
        clock.advance(600)
        assert timer.refresh() == 120
        assert timer.is_paused

    def test_resume_excludes_pause(self, timer, clock):
        timer.start()
        clock.advance(100)
        timer.pause()
        clock.advance(100)
        timer.resume()
        clock.advance(50)
        timer.pause()
        clock.advance(200)
        timer.resume()
        clock.advance(25)
        assert timer.refresh() == 175

    def test_pause_and_resume_are_noops_in_wrong_state(self, timer, clock):
        timer.resume()
        assert timer.state is None
        timer.start()
        timer.resume()
        assert timer.is_running
        timer.pause()
        paused_at = timer.paused_at
        clock.advance(10)
        timer.pause()
        assert timer.paused_at == paused_at

    def test_stop_while_paused(self, timer, clock):
        timer.start()
        clock.advance(300)
        timer.pause()
        clock.advance(300)
        timer.stop()
        clock.advance(300)
        assert timer.state == SessionState.COMPLETED
        assert timer.refresh() == 300
        assert timer.total_minutes == 5

    def test_reset(self, timer, clock):
        timer.start()
        clock.advance(30)
        timer.refresh()
        timer.reset()
        assert timer.state is None
        assert timer.elapsed == 0

    def test_from_session(self, clock, session_factory):
        session = session_factory(
            state=SessionState.PAUSED,
            started_at=clock() - timedelta(minutes=20),
            paused_at=clock() - timedelta(minutes=5),
        )
        timer = SessionTimer.from_session(session, clock=clock)
        assert timer.is_paused
        assert timer.elapsed == 15 * 60


class TestSessionTimerTicking:
    """Tests for the background tick task."""

    @pytest.mark.asyncio
    async def test_ticks_while_running(self, clock):
        ticks = []
        timer = SessionTimer(clock=clock, tick_interval=0.01, on_tick=ticks.append)
        timer.start()
        assert timer.is_ticking

        clock.advance(5)
        await asyncio.sleep(0.05)
        timer.close()

        assert ticks
        assert ticks[-1] == 5

    @pytest.mark.asyncio
    async def test_pause_cancels_ticker(self, clock):
        timer = SessionTimer(clock=clock, tick_interval=0.01)
        timer.start()
        timer.pause()
        assert not timer.is_ticking

        timer.resume()
        assert timer.is_ticking
        timer.stop()
        assert not timer.is_ticking

    @pytest.mark.asyncio
    async def test_reset_and_close_cancel_ticker(self, clock):
        timer = SessionTimer(clock=clock, tick_interval=0.01)
        timer.start()
        timer.reset()
        assert not timer.is_ticking

        timer.start()
        timer.close()
        assert not timer.is_ticking
        assert timer.is_running

    @pytest.mark.asyncio
    async def test_context_manager_stops_ticking(self, clock):
        async with SessionTimer(clock=clock, tick_interval=0.01) as timer:
            timer.start()
            assert timer.is_ticking
        assert not timer.is_ticking
