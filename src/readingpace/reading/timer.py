"""Session timer.

Computes elapsed *active* reading time for a session, excluding time spent
paused, and keeps a live value up to date once per second while the session
is running.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from ..db.schemas import SessionResponse, SessionState

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def compute_elapsed_seconds(
    state: Union[SessionState, str],
    started_at: datetime,
    now: datetime,
    paused_at: Optional[datetime] = None,
    resumed_at: Optional[datetime] = None,
    paused_seconds: Optional[int] = None,
) -> int:
    """Compute active reading seconds for a session.

    Args:
        state: Session state (active, paused or completed)
        started_at: When the session started
        now: The instant to measure at (``ended_at`` for completed sessions)
        paused_at: Most recent pause
        resumed_at: Most recent resume following a pause
        paused_seconds: Total length of all closed pause intervals. When None,
            only the last ``resumed_at - paused_at`` interval is subtracted.

    Returns:
        Whole seconds of active reading, never negative. Inconsistent inputs
        (resume before pause, pause before start) yield 0.
    """
    state = SessionState(state)

    if paused_at is not None and paused_at < started_at:
        return 0

    if state == SessionState.PAUSED:
        if paused_at is None:
            return 0
        # Frozen at the moment of pausing
        total = (paused_at - started_at).total_seconds()
        total -= paused_seconds or 0
    else:
        total = (now - started_at).total_seconds()
        if paused_seconds is not None:
            total -= paused_seconds
        elif paused_at is not None and resumed_at is not None:
            if resumed_at < paused_at:
                return 0
            total -= (resumed_at - paused_at).total_seconds()

    return max(0, int(total))


def elapsed_from_session(session: SessionResponse, now: Optional[datetime] = None) -> int:
    """Active reading seconds for a session record.

    Completed sessions are measured at ``ended_at``; open sessions at ``now``.
    """
    if session.state == SessionState.COMPLETED and session.ended_at is not None:
        at = session.ended_at
    else:
        at = now or utc_now()

    return compute_elapsed_seconds(
        session.state,
        session.started_at,
        at,
        paused_at=session.paused_at,
        resumed_at=session.resumed_at,
        paused_seconds=session.paused_seconds,
    )


def format_elapsed(seconds: int) -> str:
    """Format seconds as H:MM:SS, or M:SS when under an hour."""
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def elapsed_minutes(seconds: int) -> int:
    """Whole minutes in an elapsed seconds value."""
    return max(0, int(seconds)) // 60


class SessionTimer:
    """Live elapsed-time tracker for one reading session.

    While the session is running and not paused, an asyncio task refreshes
    the elapsed value every ``tick_interval`` seconds and reports it through
    ``on_tick``. The task is cancelled on pause, stop, reset and close, and
    when leaving ``async with``. Outside a running event loop the timer still
    works but does not tick; call ``refresh()`` to sample the clock.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        tick_interval: float = 1.0,
        on_tick: Optional[Callable[[int], None]] = None,
    ):
        self._clock = clock or utc_now
        self.tick_interval = tick_interval
        self.on_tick = on_tick

        self._state: Optional[SessionState] = None
        self._started_at: Optional[datetime] = None
        self._paused_at: Optional[datetime] = None
        self._resumed_at: Optional[datetime] = None
        self._paused_seconds: int = 0
        self._ended_at: Optional[datetime] = None
        self._elapsed: int = 0
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_session(cls, session: SessionResponse, **kwargs) -> "SessionTimer":
        """Create a timer picking up an existing session."""
        timer = cls(**kwargs)
        timer.sync(session)
        return timer

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> Optional[SessionState]:
        return self._state

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def paused_at(self) -> Optional[datetime]:
        return self._paused_at

    @property
    def elapsed(self) -> int:
        """Last sampled active seconds."""
        return self._elapsed

    @property
    def is_running(self) -> bool:
        return self._state == SessionState.ACTIVE

    @property
    def is_paused(self) -> bool:
        return self._state == SessionState.PAUSED

    @property
    def is_ticking(self) -> bool:
        """Whether a tick task is currently scheduled."""
        return self._task is not None and not self._task.done()

    @property
    def formatted(self) -> str:
        return format_elapsed(self._elapsed)

    @property
    def total_minutes(self) -> int:
        return elapsed_minutes(self._elapsed)

    def refresh(self) -> int:
        """Sample the clock and update the elapsed value."""
        if self._state is None or self._started_at is None:
            self._elapsed = 0
            return self._elapsed

        now = self._ended_at if self._state == SessionState.COMPLETED else self._clock()
        self._elapsed = compute_elapsed_seconds(
            self._state,
            self._started_at,
            now,
            paused_at=self._paused_at,
            resumed_at=self._resumed_at,
            paused_seconds=self._paused_seconds,
        )
        return self._elapsed

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def sync(self, session: SessionResponse) -> None:
        """Adopt the timing fields of a session record."""
        self._state = session.state
        self._started_at = session.started_at
        self._paused_at = session.paused_at
        self._resumed_at = session.resumed_at
        self._paused_seconds = session.paused_seconds
        self._ended_at = session.ended_at
        if self._state == SessionState.COMPLETED and self._ended_at is None:
            self._ended_at = self._clock()
        self.refresh()
        self._update_ticker()

    def start(self) -> None:
        """Start timing from zero."""
        self._cancel_ticker()
        self._state = SessionState.ACTIVE
        self._started_at = self._clock()
        self._paused_at = None
        self._resumed_at = None
        self._paused_seconds = 0
        self._ended_at = None
        self._elapsed = 0
        self._update_ticker()

    def pause(self) -> None:
        """Freeze the elapsed value. No-op unless running."""
        if self._state != SessionState.ACTIVE:
            return
        self._paused_at = self._clock()
        self._state = SessionState.PAUSED
        self.refresh()
        self._update_ticker()

    def resume(self) -> None:
        """Continue timing after a pause. No-op unless paused."""
        if self._state != SessionState.PAUSED:
            return
        now = self._clock()
        if self._paused_at is not None:
            self._paused_seconds += max(0, int((now - self._paused_at).total_seconds()))
        self._resumed_at = now
        self._state = SessionState.ACTIVE
        self.refresh()
        self._update_ticker()

    def stop(self) -> None:
        """Stop timing, keeping the final elapsed value."""
        if self._state not in (SessionState.ACTIVE, SessionState.PAUSED):
            return
        now = self._clock()
        if self._state == SessionState.PAUSED and self._paused_at is not None:
            self._paused_seconds += max(0, int((now - self._paused_at).total_seconds()))
            self._resumed_at = now
        self._ended_at = now
        self._state = SessionState.COMPLETED
        self.refresh()
        self._update_ticker()

    def reset(self) -> None:
        """Clear the timer back to idle."""
        self._cancel_ticker()
        self._state = None
        self._started_at = None
        self._paused_at = None
        self._resumed_at = None
        self._paused_seconds = 0
        self._ended_at = None
        self._elapsed = 0

    def close(self) -> None:
        """Tear down the ticker without changing timing state."""
        self._cancel_ticker()

    async def __aenter__(self) -> "SessionTimer":
        self._update_ticker()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Ticker
    # ------------------------------------------------------------------

    def _update_ticker(self) -> None:
        if self._state != SessionState.ACTIVE:
            self._cancel_ticker()
            return
        if self.is_ticking:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._task = loop.create_task(self._tick_loop())

    def _cancel_ticker(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self.refresh()
            if self.on_tick:
                self.on_tick(self._elapsed)
