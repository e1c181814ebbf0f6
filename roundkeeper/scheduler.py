from __future__ import annotations

import asyncio
import calendar
import datetime as dt
import logging
from typing import Awaitable, Callable, List, Optional, Protocol

from weeklotto.models import utcnow

from .config import SchedulerSettings
from .schedule import next_deadline, seconds_until, week_start_for
from .types import CycleResult, RoundSnapshot


class RoundStoreProtocol(Protocol):
    async def close_expired_rounds(self, now: dt.datetime) -> List[str]:
        ...

    async def list_open_rounds(self) -> List[RoundSnapshot]:
        ...

    async def close_round(self, round_id: str) -> RoundSnapshot:
        ...

    async def create_round(self, week_start: dt.date, draw_deadline: dt.datetime) -> RoundSnapshot:
        ...


class RoundScheduler:
    """Closes rounds at the weekly deadline and keeps exactly one round open.

    Nothing about the next run is persisted: each iteration derives the next
    deadline from the wall clock, so a process that was down through a
    deadline catches up on its first cycle.
    """

    def __init__(
        self,
        settings: SchedulerSettings,
        store: RoundStoreProtocol,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], dt.datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._store = store
        self._logger = logger or logging.getLogger("roundkeeper.scheduler")
        self._clock = clock
        self._sleep = sleep

    async def run_forever(self) -> None:
        schedule = self._settings.schedule
        self._logger.info(
            "Round scheduler started; weekly deadline %s %02d:%02d %s, retry backoff=%ss",
            calendar.day_name[schedule.weekday],
            schedule.hour,
            schedule.minute,
            schedule.timezone,
            self._settings.retry_backoff_seconds,
        )
        try:
            while True:
                try:
                    result = await self.run_cycle()
                    delay = self._seconds_until_next_cycle(result)
                except Exception as exc:
                    self._logger.exception("Weekly cycle failed: %s", exc)
                    delay = self._settings.retry_backoff_seconds
                self._logger.debug("Next cycle in %.0f seconds", delay)
                await self._sleep(delay)
        except asyncio.CancelledError:
            self._logger.info("Round scheduler cancelled; stopping.")
            raise

    async def run_once(self) -> CycleResult:
        return await self.run_cycle()

    async def run_cycle(self) -> CycleResult:
        now = self._clock()
        schedule = self._settings.schedule
        result = CycleResult()

        result.closed_round_ids = await self._store.close_expired_rounds(now)
        for round_id in result.closed_round_ids:
            self._logger.info("Closed round %s; admin has the draw window to enter numbers.", round_id)

        open_rounds = sorted(
            await self._store.list_open_rounds(),
            key=lambda snapshot: (snapshot.created_at, snapshot.draw_deadline),
            reverse=True,
        )

        if not open_rounds:
            deadline = next_deadline(now, schedule)
            created = await self._store.create_round(week_start_for(deadline, schedule), deadline)
            result.created_round_id = created.round_id
            result.open_round = created
            self._logger.info(
                "Opened round %s for week starting %s; deadline %s UTC",
                created.round_id,
                created.week_start.isoformat(),
                created.draw_deadline.isoformat(),
            )
            return result

        keep, extras = open_rounds[0], open_rounds[1:]
        if extras:
            self._logger.warning(
                "Found %d open rounds; keeping %s and closing %s",
                len(open_rounds),
                keep.round_id,
                ", ".join(snapshot.round_id for snapshot in extras),
            )
            for snapshot in extras:
                await self._store.close_round(snapshot.round_id)
                result.repaired_round_ids.append(snapshot.round_id)

        result.open_round = keep
        return result

    def _seconds_until_next_cycle(self, result: CycleResult) -> float:
        now = self._clock()
        target = next_deadline(now, self._settings.schedule)
        if result.open_round is not None and result.open_round.draw_deadline > now:
            target = min(target, result.open_round.draw_deadline)
        return max(float(self._settings.min_sleep_seconds), seconds_until(target, now))
