from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..db import session_scope
from ..errors import (
    AlreadySettled,
    DrawWindowExpired,
    NumberOutOfRange,
    NumbersAlreadyDrawn,
    RefundWindowNotYetOpen,
    RoundAlreadyOpen,
    RoundNotClosed,
    RoundNotFound,
    RoundNotOpen,
    RoundNotSettled,
)
from ..locks import keyed_lock, round_lock, with_round_lock
from ..models import Board, Round, RoundStatus, WinningNumbers, utcnow
from .boards import MAX_NUMBER, MIN_NUMBER, in_number_range
from .winning import is_winning

DEFAULT_DRAW_WINDOW = dt.timedelta(hours=24)

logger = logging.getLogger("weeklotto.rounds")


class RoundLifecycle:
    """Round state machine: open -> closed -> settled | voided.

    Every transition is a conditional UPDATE on the current status, so a
    concurrent transition on the same round makes one caller fail with a
    state conflict instead of silently overwriting the other.
    """

    def __init__(self, clock=utcnow, draw_window: dt.timedelta = DEFAULT_DRAW_WINDOW) -> None:
        self._clock = clock
        self._draw_window = draw_window

    @property
    def draw_window(self) -> dt.timedelta:
        return self._draw_window

    # ---- helpers -------------------------------------------------------

    def _load(self, session, round_id: str) -> Round:
        round_ = session.get(Round, round_id)
        if round_ is None:
            raise RoundNotFound(round_id)
        return round_

    def _transition(
        self, session, round_id: str, source: RoundStatus, target: RoundStatus, **columns
    ) -> bool:
        values = {Round.status: target.value}
        for name, value in columns.items():
            values[getattr(Round, name)] = value
        updated = (
            session.query(Round)
            .filter(Round.id == round_id, Round.status == source.value)
            .update(values, synchronize_session=False)
        )
        return updated == 1

    def _board_stats(self, session, round_ids: Optional[Iterable[str]] = None) -> Dict[str, dict]:
        query = session.query(
            Board.round_id.label("round_id"),
            func.count(Board.id).label("board_count"),
            func.sum(case((Board.is_winning.is_(True), 1), else_=0)).label("winning_board_count"),
        ).filter(Board.is_deleted.is_(False))
        if round_ids is not None:
            query = query.filter(Board.round_id.in_(list(round_ids)))
        rows = query.group_by(Board.round_id).all()
        return {
            row.round_id: {
                "board_count": int(row.board_count or 0),
                "winning_board_count": int(row.winning_board_count or 0),
            }
            for row in rows
        }

    def _summaries(self, session, rounds: List[Round]) -> List[dict]:
        ids = [r.id for r in rounds]
        stats = self._board_stats(session, ids)
        draws = {
            draw.round_id: draw.to_dict()
            for draw in session.query(WinningNumbers).filter(WinningNumbers.round_id.in_(ids)).all()
        }
        results = []
        for round_ in rounds:
            record = round_.to_dict()
            record.update(stats.get(round_.id, {"board_count": 0, "winning_board_count": 0}))
            record["winning_numbers"] = draws.get(round_.id)
            results.append(record)
        return results

    def _raise_round_conflict(self, session, round_id: str, settled_error) -> None:
        session.expire_all()
        current = self._load(session, round_id).round_status
        if current is RoundStatus.SETTLED:
            raise settled_error(round_id)
        raise RoundNotClosed(round_id, current.value)

    # ---- transitions ---------------------------------------------------

    def create_round(self, week_start: dt.date, draw_deadline: dt.datetime) -> Round:
        with keyed_lock("rounds", "open"):
            with session_scope() as session:
                existing = (
                    session.query(Round)
                    .filter(Round.status == RoundStatus.OPEN.value)
                    .order_by(Round.created_at.desc())
                    .first()
                )
                if existing is not None:
                    raise RoundAlreadyOpen(existing.id)

                round_ = Round(
                    id=str(uuid.uuid4()),
                    week_start=week_start,
                    draw_deadline=draw_deadline,
                    status=RoundStatus.OPEN.value,
                    created_at=self._clock(),
                )
                session.add(round_)
                session.flush()
                session.refresh(round_)
                session.expunge(round_)
        logger.info("Round %s opened; deadline %s UTC", round_.id, draw_deadline.isoformat())
        return round_

    def close_round(self, round_id: str) -> Round:
        with round_lock(round_id):
            with session_scope() as session:
                round_ = self._load(session, round_id)
                if round_.round_status is not RoundStatus.OPEN:
                    raise RoundNotOpen(round_id, round_.status)
                if not self._transition(
                    session, round_id, RoundStatus.OPEN, RoundStatus.CLOSED, closed_at=self._clock()
                ):
                    raise RoundNotOpen(round_id)
                session.refresh(round_)
                session.expunge(round_)
        logger.info("Round %s closed", round_id)
        return round_

    def close_expired_rounds(self, now: Optional[dt.datetime] = None) -> List[str]:
        now = now or self._clock()
        closed: List[str] = []
        with session_scope() as session:
            expired = (
                session.query(Round)
                .filter(Round.status == RoundStatus.OPEN.value, Round.draw_deadline <= now)
                .all()
            )
            for round_ in expired:
                if self._transition(
                    session, round_.id, RoundStatus.OPEN, RoundStatus.CLOSED, closed_at=now
                ):
                    closed.append(round_.id)
        for round_id in closed:
            logger.info("Round %s closed at its deadline; awaiting winning numbers", round_id)
        return closed

    def draw_numbers(self, round_id: str, n1: int, n2: int, n3: int) -> dict:
        drawn = [n1, n2, n3]
        with round_lock(round_id):
            with session_scope() as session:
                now = self._clock()
                round_ = with_round_lock(round_id, session).first()
                if round_ is None:
                    raise RoundNotFound(round_id)

                status = round_.round_status
                if status is RoundStatus.SETTLED or session.get(WinningNumbers, round_id) is not None:
                    raise NumbersAlreadyDrawn(round_id)
                if status is not RoundStatus.CLOSED:
                    raise RoundNotClosed(round_id, status.value)
                if not all(in_number_range(n) for n in drawn):
                    raise NumberOutOfRange(MIN_NUMBER, MAX_NUMBER)

                window_closes_at = round_.draw_deadline + self._draw_window
                if now > window_closes_at:
                    raise DrawWindowExpired(round_id, window_closes_at)

                if not self._transition(session, round_id, RoundStatus.CLOSED, RoundStatus.SETTLED):
                    self._raise_round_conflict(session, round_id, NumbersAlreadyDrawn)

                winning = WinningNumbers(
                    round_id=round_id, number1=n1, number2=n2, number3=n3, drawn_at=now
                )
                session.add(winning)

                boards = (
                    session.query(Board)
                    .filter(Board.round_id == round_id, Board.is_deleted.is_(False))
                    .all()
                )
                winners = 0
                for board in boards:
                    board.is_winning = is_winning(board.get_numbers(), drawn)
                    if board.is_winning:
                        winners += 1

                try:
                    session.flush()
                except IntegrityError as exc:
                    raise NumbersAlreadyDrawn(round_id) from exc

        logger.info(
            "Round %s settled with %s; %s of %s boards win", round_id, drawn, winners, len(boards)
        )
        return {
            "round_id": round_id,
            "winning_numbers": drawn,
            "drawn_at": now.isoformat(),
            "total_boards": len(boards),
            "winning_board_count": winners,
        }

    def refund(self, round_id: str) -> dict:
        with round_lock(round_id):
            with session_scope() as session:
                now = self._clock()
                round_ = with_round_lock(round_id, session).first()
                if round_ is None:
                    raise RoundNotFound(round_id)

                status = round_.round_status
                if status is RoundStatus.SETTLED or session.get(WinningNumbers, round_id) is not None:
                    raise AlreadySettled(round_id)
                if status is not RoundStatus.CLOSED:
                    raise RoundNotClosed(round_id, status.value)

                window_closes_at = round_.draw_deadline + self._draw_window
                if now <= window_closes_at:
                    remaining = (window_closes_at - now).total_seconds() / 3600
                    raise RefundWindowNotYetOpen(round_id, remaining)

                if not self._transition(
                    session, round_id, RoundStatus.CLOSED, RoundStatus.VOIDED, voided_at=now
                ):
                    self._raise_round_conflict(session, round_id, AlreadySettled)

                refunded = (
                    session.query(Board)
                    .filter(Board.round_id == round_id, Board.is_deleted.is_(False))
                    .update(
                        {Board.is_deleted: True, Board.deleted_at: now},
                        synchronize_session=False,
                    )
                )

        logger.info("Round %s voided; %s boards refunded", round_id, refunded)
        return {"round_id": round_id, "refunded_board_count": refunded}

    # ---- queries -------------------------------------------------------

    def current_open_round(self) -> Optional[dict]:
        with session_scope() as session:
            round_ = (
                session.query(Round)
                .filter(Round.status == RoundStatus.OPEN.value)
                .order_by(Round.created_at.desc())
                .first()
            )
            if round_ is None:
                return None
            return self._summaries(session, [round_])[0]

    def get_round(self, round_id: str) -> dict:
        with session_scope() as session:
            round_ = self._load(session, round_id)
            return self._summaries(session, [round_])[0]

    def list_rounds(self) -> List[dict]:
        with session_scope() as session:
            rounds = (
                session.query(Round)
                .order_by(Round.week_start.desc(), Round.created_at.desc())
                .all()
            )
            return self._summaries(session, rounds)

    def open_rounds(self) -> List[Round]:
        """Every open round, most recently created first."""
        with session_scope() as session:
            rounds = (
                session.query(Round)
                .filter(Round.status == RoundStatus.OPEN.value)
                .order_by(Round.created_at.desc(), Round.draw_deadline.desc())
                .all()
            )
            for round_ in rounds:
                session.expunge(round_)
            return rounds

    def winning_boards(self, round_id: str) -> List[Board]:
        with session_scope() as session:
            self._load(session, round_id)
            if session.get(WinningNumbers, round_id) is None:
                raise RoundNotSettled(round_id)
            boards = (
                session.query(Board)
                .filter(
                    Board.round_id == round_id,
                    Board.is_deleted.is_(False),
                    Board.is_winning.is_(True),
                )
                .order_by(Board.created_at)
                .all()
            )
            for board in boards:
                session.expunge(board)
            return boards
