"""Reading goal configuration.

Goals are a page target, a minutes target, and a daily bite-size page
target, persisted to a small JSON file.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_TARGET_PAGES = 1000
DEFAULT_TARGET_MINUTES = 1800
DEFAULT_BITE_TARGET = 10


@dataclass
class GoalConfig:
    """Targets the statistics overview measures progress against."""

    target_pages: int = DEFAULT_TARGET_PAGES
    target_minutes: int = DEFAULT_TARGET_MINUTES
    bite_target_per_day: int = DEFAULT_BITE_TARGET

    def __post_init__(self):
        if self.target_pages < 0 or self.target_minutes < 0:
            raise ValueError("Goal targets cannot be negative")
        if self.bite_target_per_day < 1:
            raise ValueError("Daily target must be at least 1 page")

    def to_dict(self) -> dict:
        """Convert to dictionary for persistence."""
        return {
            "target_pages": self.target_pages,
            "target_minutes": self.target_minutes,
            "bite_target_per_day": self.bite_target_per_day,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GoalConfig":
        """Create from dictionary, filling missing keys with defaults."""
        return cls(
            target_pages=int(data.get("target_pages", DEFAULT_TARGET_PAGES)),
            target_minutes=int(data.get("target_minutes", DEFAULT_TARGET_MINUTES)),
            bite_target_per_day=int(data.get("bite_target_per_day", DEFAULT_BITE_TARGET)),
        )


class GoalStore:
    """Loads and saves the goal configuration."""

    def __init__(self, goals_file: Optional[Path] = None):
        """Initialize goal store.

        Args:
            goals_file: Path to persist goals (default: configured goals path)
        """
        if goals_file is None:
            from ..config import get_config

            goals_file = get_config().goals_path
        self.goals_file = Path(goals_file)

    def load(self) -> GoalConfig:
        """Load goals, falling back to defaults if the file is missing or bad."""
        if not self.goals_file.exists():
            return GoalConfig()
        try:
            with open(self.goals_file, "r") as f:
                return GoalConfig.from_dict(json.load(f))
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
            return GoalConfig()

    def save(self, goals: GoalConfig) -> None:
        """Save goals to file."""
        self.goals_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.goals_file, "w") as f:
            json.dump(goals.to_dict(), f, indent=2)

    def update(
        self,
        target_pages: Optional[int] = None,
        target_minutes: Optional[int] = None,
        bite_target_per_day: Optional[int] = None,
    ) -> GoalConfig:
        """Change some targets and persist the result."""
        current = self.load()
        goals = GoalConfig(
            target_pages=current.target_pages if target_pages is None else target_pages,
            target_minutes=current.target_minutes if target_minutes is None else target_minutes,
            bite_target_per_day=(
                current.bite_target_per_day
                if bite_target_per_day is None
                else bite_target_per_day
            ),
        )
        self.save(goals)
        return goals
