from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class FlaskSettings:
    secret_key: str = "weeklotto-dev-secret"
    debug: bool = True


@dataclass(frozen=True)
class LotterySettings:
    draw_window_hours: int = 24
    currency: str = "DKK"


@dataclass(frozen=True)
class AppSettings:
    flask: FlaskSettings
    lottery: LotterySettings
    database_url: str
    admin_api_key: Optional[str]


def _int_from_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {key} must be an integer, got {value!r}") from exc


@lru_cache(maxsize=1)
def load_settings(dotenv_path: Optional[str] = None) -> AppSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        load_dotenv()

    flask_settings = FlaskSettings(
        secret_key=os.getenv("FLASK_SECRET_KEY", "weeklotto-dev-secret"),
        debug=os.getenv("FLASK_DEBUG", "1") == "1",
    )

    draw_window_hours = _int_from_env("DRAW_WINDOW_HOURS", 24)
    if draw_window_hours <= 0:
        raise RuntimeError("DRAW_WINDOW_HOURS must be positive")

    lottery_settings = LotterySettings(
        draw_window_hours=draw_window_hours,
        currency=os.getenv("CURRENCY", "DKK"),
    )

    database_url = os.getenv("DATABASE_URL", "sqlite:///weeklotto.db")
    admin_api_key = os.getenv("ADMIN_API_KEY") or None

    return AppSettings(
        flask=flask_settings,
        lottery=lottery_settings,
        database_url=database_url,
        admin_api_key=admin_api_key,
    )
