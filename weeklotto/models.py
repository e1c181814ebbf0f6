from __future__ import annotations

import datetime as dt
import json
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

CENT = Decimal("0.01")


def utcnow() -> dt.datetime:
    """Naive UTC timestamp; every column in this schema stores naive UTC."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[dt.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def money(value) -> Decimal:
    return Decimal(value if value is not None else 0).quantize(CENT)


class RoundStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    SETTLED = "settled"
    VOIDED = "voided"

    @property
    def display_name(self) -> str:
        return DISPLAY_STATUS[self]


DISPLAY_STATUS = {
    RoundStatus.OPEN: "Open",
    RoundStatus.CLOSED: "Closed-PendingNumbers",
    RoundStatus.SETTLED: "Completed",
    RoundStatus.VOIDED: "Refunded",
}


class Player(Base):
    __tablename__ = "players"

    id = Column(String(36), primary_key=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone_number = Column(String(32), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "player_id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone_number": self.phone_number,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }


class Round(Base):
    __tablename__ = "rounds"

    id = Column(String(36), primary_key=True)
    week_start = Column(Date, nullable=False)
    draw_deadline = Column(DateTime, nullable=False)
    status = Column(String(16), nullable=False, default=RoundStatus.OPEN.value)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    closed_at = Column(DateTime, nullable=True)
    voided_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_rounds_status", "status"),)

    @property
    def round_status(self) -> RoundStatus:
        return RoundStatus(self.status)

    def to_dict(self) -> dict:
        return {
            "round_id": self.id,
            "week_start": self.week_start.isoformat(),
            "draw_deadline": _iso(self.draw_deadline),
            "status": self.status,
            "display_status": self.round_status.display_name,
            "created_at": _iso(self.created_at),
        }


class WinningNumbers(Base):
    __tablename__ = "winning_numbers"

    round_id = Column(String(36), ForeignKey("rounds.id"), primary_key=True)
    number1 = Column(Integer, nullable=False)
    number2 = Column(Integer, nullable=False)
    number3 = Column(Integer, nullable=False)
    drawn_at = Column(DateTime, default=utcnow, nullable=False)

    def get_numbers(self) -> List[int]:
        return [self.number1, self.number2, self.number3]

    def to_dict(self) -> dict:
        return {
            "round_id": self.round_id,
            "numbers": self.get_numbers(),
            "drawn_at": _iso(self.drawn_at),
        }


class Board(Base):
    __tablename__ = "boards"

    id = Column(String(36), primary_key=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False)
    round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False)
    field_count = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    numbers = Column(Text, nullable=False)
    is_winning = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_boards_player_id", "player_id"),
        Index("ix_boards_round_id", "round_id"),
    )

    def set_numbers(self, numbers: List[int]) -> None:
        self.numbers = json.dumps(sorted(numbers))

    def get_numbers(self) -> List[int]:
        return json.loads(self.numbers)

    def to_dict(self) -> dict:
        return {
            "board_id": self.id,
            "player_id": self.player_id,
            "round_id": self.round_id,
            "field_count": self.field_count,
            "price": str(money(self.price)),
            "numbers": self.get_numbers(),
            "is_winning": self.is_winning,
            "created_at": _iso(self.created_at),
        }


class Deposit(Base):
    __tablename__ = "deposits"

    id = Column(String(36), primary_key=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    external_ref = Column(String(50), nullable=False)
    is_approved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    approved_at = Column(DateTime, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_deposits_player_id", "player_id"),)

    @property
    def status(self) -> str:
        if self.is_deleted:
            return "Dismissed"
        return "Approved" if self.is_approved else "Pending"

    def to_dict(self) -> dict:
        return {
            "deposit_id": self.id,
            "player_id": self.player_id,
            "amount": str(money(self.amount)),
            "external_ref": self.external_ref,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "approved_at": _iso(self.approved_at),
        }
