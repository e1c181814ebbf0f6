from __future__ import annotations

import asyncio
import datetime as dt
from typing import List, Optional

from weeklotto.models import Round, RoundStatus
from weeklotto.services import RoundLifecycle

from .types import RoundSnapshot


def _snapshot(round_: Round) -> RoundSnapshot:
    return RoundSnapshot(
        round_id=round_.id,
        status=RoundStatus(round_.status),
        week_start=round_.week_start,
        draw_deadline=round_.draw_deadline,
        created_at=round_.created_at,
    )


class RoundStoreClient:
    """Async wrapper around ``RoundLifecycle``; database work runs on worker threads."""

    def __init__(self, lifecycle: Optional[RoundLifecycle] = None) -> None:
        self._lifecycle = lifecycle or RoundLifecycle()

    async def close_expired_rounds(self, now: dt.datetime) -> List[str]:
        return await asyncio.to_thread(self._lifecycle.close_expired_rounds, now)

    async def list_open_rounds(self) -> List[RoundSnapshot]:
        rounds = await asyncio.to_thread(self._lifecycle.open_rounds)
        return [_snapshot(round_) for round_ in rounds]

    async def close_round(self, round_id: str) -> RoundSnapshot:
        round_ = await asyncio.to_thread(self._lifecycle.close_round, round_id)
        return _snapshot(round_)

    async def create_round(self, week_start: dt.date, draw_deadline: dt.datetime) -> RoundSnapshot:
        round_ = await asyncio.to_thread(self._lifecycle.create_round, week_start, draw_deadline)
        return _snapshot(round_)
