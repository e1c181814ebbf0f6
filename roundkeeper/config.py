from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


def _bool_from_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_from_env(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


@dataclass(frozen=True)
class ScheduleSettings:
    """Weekly deadline: ``weekday`` uses Monday=0 .. Sunday=6."""

    timezone: str = "Europe/Copenhagen"
    weekday: int = 5
    hour: int = 17
    minute: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.weekday <= 6:
            raise ValueError(f"weekday must be between 0 and 6, got {self.weekday}")
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour must be between 0 and 23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"minute must be between 0 and 59, got {self.minute}")


@dataclass(frozen=True)
class SchedulerSettings:
    retry_backoff_seconds: int = 300
    min_sleep_seconds: int = 1
    run_once: bool = False
    schedule: ScheduleSettings = ScheduleSettings()

    def copy(self, **updates) -> "SchedulerSettings":
        return replace(self, **updates)


def load_from_environment() -> SchedulerSettings:
    schedule = ScheduleSettings(
        timezone=os.getenv("SCHEDULE__TIMEZONE", "Europe/Copenhagen"),
        weekday=_int_from_env(os.getenv("SCHEDULE__WEEKDAY"), 5),
        hour=_int_from_env(os.getenv("SCHEDULE__HOUR"), 17),
        minute=_int_from_env(os.getenv("SCHEDULE__MINUTE"), 0),
    )

    return SchedulerSettings(
        retry_backoff_seconds=_int_from_env(os.getenv("RETRY_BACKOFF_SECONDS"), 300),
        run_once=_bool_from_env(os.getenv("RUN_ONCE"), False),
        schedule=schedule,
    )


@lru_cache(maxsize=1)
def load_config(dotenv_path: Optional[str] = None) -> SchedulerSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        default_path = pathlib.Path(".env")
        if default_path.exists():
            load_dotenv(default_path)
    return load_from_environment()
