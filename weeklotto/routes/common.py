from __future__ import annotations

import datetime as dt
from functools import lru_cache
from typing import Type, TypeVar

from flask import request
from pydantic import BaseModel

from ..config import load_settings
from ..services import BoardService, Ledger, PlayerRepository, RoundLifecycle

ModelT = TypeVar("ModelT", bound=BaseModel)


@lru_cache(maxsize=1)
def get_round_lifecycle() -> RoundLifecycle:
    settings = load_settings()
    return RoundLifecycle(draw_window=dt.timedelta(hours=settings.lottery.draw_window_hours))


@lru_cache(maxsize=1)
def get_board_service() -> BoardService:
    return BoardService(currency=load_settings().lottery.currency)


@lru_cache(maxsize=1)
def get_ledger() -> Ledger:
    return Ledger()


@lru_cache(maxsize=1)
def get_player_repo() -> PlayerRepository:
    return PlayerRepository()


def reset_services() -> None:
    for factory in (get_round_lifecycle, get_board_service, get_ledger, get_player_repo):
        factory.cache_clear()


def parse_body(model: Type[ModelT]) -> ModelT:
    payload = request.get_json(force=True, silent=True) or {}
    return model.model_validate(payload)
