"""Configuration management for readingpace.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Storage
    db_path: Path
    goals_path: Path

    # Session timer
    tick_interval: float  # seconds

    # Lifecycle requests
    request_timeout: Optional[float]  # seconds, None = wait forever

    # Analytics
    daily_page_target: int
    stats_days: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        base_dir = Path.home() / ".readingpace"

        db_path = Path(
            os.environ.get("READINGPACE_DB_PATH", str(base_dir / "reading.db"))
        ).expanduser()
        goals_path = Path(
            os.environ.get("READINGPACE_GOALS_PATH", str(base_dir / "goals.json"))
        ).expanduser()

        timeout = float(os.environ.get("READINGPACE_REQUEST_TIMEOUT", "10.0"))

        return cls(
            db_path=db_path,
            goals_path=goals_path,
            tick_interval=float(os.environ.get("READINGPACE_TICK_INTERVAL", "1.0")),
            request_timeout=timeout if timeout > 0 else None,
            daily_page_target=int(os.environ.get("READINGPACE_DAILY_PAGE_TARGET", "10")),
            stats_days=int(os.environ.get("READINGPACE_STATS_DAYS", "30")),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check database directory is writable
        if not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.tick_interval <= 0:
            errors.append(f"Tick interval must be positive, got {self.tick_interval}")

        if self.daily_page_target < 1:
            errors.append(f"Daily page target must be at least 1, got {self.daily_page_target}")

        if self.stats_days < 1:
            errors.append(f"Stats range must be at least 1 day, got {self.stats_days}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
