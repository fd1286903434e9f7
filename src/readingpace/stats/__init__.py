"""Reading forecasts, streaks, goals and aggregate statistics."""

from .forecast import (
    ProgressForecast,
    ReadingPace,
    ReadingState,
    ReadingStats,
    calculate_progress_forecast,
    calculate_reading_speed,
    calculate_reading_stats,
    get_progress_percentage,
    needs_attention,
)
from .goals import GoalConfig, GoalStore
from .overview import StatsEngine, StatsOverview
from .streaks import calculate_current_streak, calculate_longest_streak

__all__ = [
    "ProgressForecast",
    "ReadingPace",
    "ReadingState",
    "ReadingStats",
    "calculate_progress_forecast",
    "calculate_reading_speed",
    "calculate_reading_stats",
    "get_progress_percentage",
    "needs_attention",
    "GoalConfig",
    "GoalStore",
    "StatsEngine",
    "StatsOverview",
    "calculate_current_streak",
    "calculate_longest_streak",
]
