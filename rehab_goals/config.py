"""
Rehab Goals: Configuration
==========================
Centralised settings for the breakdown and cascade engines.
Loads overrides from the project-level .env file.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# ── Paths ───────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# ── Load .env ───────────────────────────────────────────────────────────
load_dotenv(PROJECT_ROOT / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    """
    Engine settings.

    Attributes:
        app_version:             Version reported by the health endpoints.
        log_level:               Root logging level.
        log_file:                Optional log file path.
        months_per_long_term:    Default monthly children of a long-term goal.
        weeks_per_month:         Default weekly children of a monthly goal.
        expected_weekly_slots:   Denominator for a long-term goal's actual
                                 completion rate (6 months x 4 weeks).
        high_completion_ratio:   History ratio above which a shorter schedule
                                 is suggested.
        low_completion_ratio:    History ratio below which extra buffer is
                                 suggested.
    """
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    months_per_long_term: int = 6
    weeks_per_month: int = 4
    expected_weekly_slots: int = 24
    high_completion_ratio: float = 0.8
    low_completion_ratio: float = 0.5

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            app_version=os.getenv("REHAB_APP_VERSION", cls.app_version),
            log_level=os.getenv("REHAB_LOG_LEVEL", cls.log_level),
            log_file=os.getenv("REHAB_LOG_FILE") or None,
            months_per_long_term=_env_int("REHAB_MONTHS_PER_LONG_TERM", cls.months_per_long_term),
            weeks_per_month=_env_int("REHAB_WEEKS_PER_MONTH", cls.weeks_per_month),
            expected_weekly_slots=_env_int("REHAB_EXPECTED_WEEKLY_SLOTS", cls.expected_weekly_slots),
            high_completion_ratio=_env_float("REHAB_HIGH_COMPLETION_RATIO", cls.high_completion_ratio),
            low_completion_ratio=_env_float("REHAB_LOW_COMPLETION_RATIO", cls.low_completion_ratio),
        )


settings = Settings.from_env()
