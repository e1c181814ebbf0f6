from __future__ import annotations

import datetime as dt
import logging
import uuid
from decimal import Decimal
from typing import Any, Callable, Dict, List, Sequence

from ..db import session_scope
from ..errors import (
    BoardNotFound,
    DuplicateNumbers,
    InsufficientBalance,
    InvalidFieldCount,
    NumberCountMismatch,
    NumberOutOfRange,
    PlayerInactive,
    PlayerNotFound,
    RoundNotFound,
    RoundNotOpen,
)
from ..locks import player_lock, with_player_lock
from ..models import Board, Round, RoundStatus, utcnow
from .ledger import compute_balance
from .players import load_player

# Board price by number of chosen fields, in the configured currency.
PRICE_TABLE: Dict[int, Decimal] = {
    5: Decimal("20.00"),
    6: Decimal("40.00"),
    7: Decimal("80.00"),
    8: Decimal("160.00"),
}

MIN_NUMBER = 1
MAX_NUMBER = 16

logger = logging.getLogger("weeklotto.boards")


def price_for(field_count: int) -> Decimal:
    try:
        return PRICE_TABLE[field_count]
    except (KeyError, TypeError):
        raise InvalidFieldCount(field_count) from None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def in_number_range(value: Any) -> bool:
    return _is_int(value) and MIN_NUMBER <= value <= MAX_NUMBER


def validate_selection(field_count: Any, numbers: Sequence[Any]) -> List[int]:
    """Check a board selection; the first rule broken decides the error."""
    if not _is_int(field_count) or field_count not in PRICE_TABLE:
        raise InvalidFieldCount(field_count)
    if len(numbers) != field_count:
        raise NumberCountMismatch(field_count, len(numbers))
    if len(set(numbers)) != len(numbers):
        raise DuplicateNumbers()
    if not all(in_number_range(n) for n in numbers):
        raise NumberOutOfRange(MIN_NUMBER, MAX_NUMBER)
    return sorted(numbers)


class BoardService:
    def __init__(self, clock: Callable[[], dt.datetime] = utcnow, currency: str = "DKK") -> None:
        self._clock = clock
        self._currency = currency

    def purchase(
        self, player_id: str, round_id: str, field_count: int, numbers: Sequence[int]
    ) -> Board:
        selection = validate_selection(field_count, list(numbers))
        price = PRICE_TABLE[field_count]

        with player_lock(player_id):
            with session_scope() as session:
                now = self._clock()
                round_ = session.get(Round, round_id)
                if round_ is None:
                    raise RoundNotFound(round_id)
                if round_.status != RoundStatus.OPEN.value or now >= round_.draw_deadline:
                    raise RoundNotOpen(round_id, round_.status)

                player = with_player_lock(player_id, session).first()
                if player is None:
                    raise PlayerNotFound(player_id)
                if not player.is_active:
                    raise PlayerInactive(player_id)

                available = compute_balance(session, player_id)
                if available < price:
                    raise InsufficientBalance(price, available, self._currency)

                board = Board(
                    id=str(uuid.uuid4()),
                    player_id=player_id,
                    round_id=round_id,
                    field_count=field_count,
                    price=price,
                    is_winning=False,
                    created_at=now,
                )
                board.set_numbers(selection)
                session.add(board)
                session.flush()
                session.refresh(board)
                session.expunge(board)

        logger.info(
            "Board %s bought by player %s in round %s for %s", board.id, player_id, round_id, price
        )
        return board

    def get_board(self, board_id: str) -> Board:
        with session_scope() as session:
            board = (
                session.query(Board)
                .filter(Board.id == board_id, Board.is_deleted.is_(False))
                .first()
            )
            if board is None:
                raise BoardNotFound(board_id)
            session.expunge(board)
            return board

    def list_player_boards(self, player_id: str) -> List[Board]:
        with session_scope() as session:
            load_player(session, player_id)
            boards = (
                session.query(Board)
                .filter(Board.player_id == player_id, Board.is_deleted.is_(False))
                .order_by(Board.created_at.desc())
                .all()
            )
            for board in boards:
                session.expunge(board)
            return boards

    def list_round_boards(self, round_id: str) -> List[Board]:
        with session_scope() as session:
            if session.get(Round, round_id) is None:
                raise RoundNotFound(round_id)
            boards = (
                session.query(Board)
                .filter(Board.round_id == round_id, Board.is_deleted.is_(False))
                .order_by(Board.created_at)
                .all()
            )
            for board in boards:
                session.expunge(board)
            return boards
