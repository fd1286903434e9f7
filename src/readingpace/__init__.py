"""Reading session tracking with pace forecasts and reading statistics."""

__version__ = "0.1.0"
