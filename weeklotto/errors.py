"""
Business rule errors raised by the lottery services.

Every error carries a ``kind`` (the category the caller reacts to), an HTTP
``status_code`` used by the web layer, and a ``details`` dict that is merged
into the JSON error body.
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, Optional


class LotteryError(Exception):
    """Base class for every lottery error"""

    kind = "LotteryError"
    status_code = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.message, "kind": self.kind, "code": type(self).__name__}
        payload.update(self.details)
        return payload


class ValidationError(LotteryError):
    """Malformed input"""

    kind = "ValidationError"
    status_code = 400


class StateConflict(LotteryError):
    """The target is not in the lifecycle state the operation needs"""

    kind = "StateConflict"
    status_code = 409


class NotFound(LotteryError):
    kind = "NotFound"
    status_code = 404


class InsufficientResource(LotteryError):
    kind = "InsufficientResource"
    status_code = 402


class TimingViolation(LotteryError):
    """The operation is outside its allowed time window"""

    kind = "TimingViolation"
    status_code = 409


# ============ Validation ============

class InvalidFieldCount(ValidationError):
    def __init__(self, field_count: Any) -> None:
        super().__init__(
            f"Field count must be between 5 and 8, got {field_count}", field_count=field_count
        )


class NumberCountMismatch(ValidationError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Expected {expected} numbers, but got {actual}", expected=expected, actual=actual
        )


class DuplicateNumbers(ValidationError):
    def __init__(self) -> None:
        super().__init__("All numbers must be unique - no duplicates allowed")


class NumberOutOfRange(ValidationError):
    def __init__(self, low: int = 1, high: int = 16) -> None:
        super().__init__(f"All numbers must be between {low} and {high}", low=low, high=high)


class InvalidAmount(ValidationError):
    """Deposit amount is non-positive, too large or too precise"""


class InvalidReference(ValidationError):
    """External payment reference is empty or too long"""


# ============ State conflicts ============

class RoundNotOpen(StateConflict):
    def __init__(self, round_id: str, status: Optional[str] = None) -> None:
        super().__init__(
            f"Round {round_id} is not open for purchases", round_id=round_id, status=status
        )


class RoundNotClosed(StateConflict):
    def __init__(self, round_id: str, status: str) -> None:
        super().__init__(
            f"Round {round_id} must be closed for this action (status={status})",
            round_id=round_id,
            status=status,
        )


class RoundAlreadyOpen(StateConflict):
    def __init__(self, round_id: str) -> None:
        super().__init__(f"Round {round_id} is already open", round_id=round_id)


class NumbersAlreadyDrawn(StateConflict):
    def __init__(self, round_id: str) -> None:
        super().__init__(
            f"Winning numbers have already been drawn for round {round_id}", round_id=round_id
        )


class AlreadySettled(StateConflict):
    def __init__(self, round_id: str) -> None:
        super().__init__(
            f"Cannot refund round {round_id}: winning numbers have already been drawn",
            round_id=round_id,
        )


class RoundNotSettled(StateConflict):
    def __init__(self, round_id: str) -> None:
        super().__init__(f"Round {round_id} has not been drawn yet", round_id=round_id)


class AlreadyApproved(StateConflict):
    def __init__(self, deposit_id: str) -> None:
        super().__init__(f"Deposit {deposit_id} is already approved", deposit_id=deposit_id)


class PlayerInactive(StateConflict):
    def __init__(self, player_id: str) -> None:
        super().__init__(f"Player {player_id} is not active", player_id=player_id)


# ============ Not found ============

class PlayerNotFound(NotFound):
    def __init__(self, player_id: str) -> None:
        self.player_id = player_id
        super().__init__(f"Player {player_id} not found", player_id=player_id)


class RoundNotFound(NotFound):
    def __init__(self, round_id: str) -> None:
        self.round_id = round_id
        super().__init__(f"Round {round_id} not found", round_id=round_id)


class DepositNotFound(NotFound):
    def __init__(self, deposit_id: str) -> None:
        self.deposit_id = deposit_id
        super().__init__(f"Deposit {deposit_id} not found", deposit_id=deposit_id)


class BoardNotFound(NotFound):
    def __init__(self, board_id: str) -> None:
        self.board_id = board_id
        super().__init__(f"Board {board_id} not found", board_id=board_id)


# ============ Resources and timing ============

class InsufficientBalance(InsufficientResource):
    def __init__(self, required: Decimal, available: Decimal, currency: str = "DKK") -> None:
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            f"Insufficient balance. Required: {required} {currency}, Available: {available} {currency}",
            required=str(required),
            available=str(available),
            shortfall=str(self.shortfall),
        )


class DrawWindowExpired(TimingViolation):
    def __init__(self, round_id: str, window_closed_at: dt.datetime) -> None:
        self.window_closed_at = window_closed_at
        super().__init__(
            f"The window to enter winning numbers closed at {window_closed_at.isoformat()} UTC. "
            "Refund the round instead.",
            round_id=round_id,
            window_closed_at=window_closed_at.isoformat(),
        )


class RefundWindowNotYetOpen(TimingViolation):
    def __init__(self, round_id: str, hours_remaining: float) -> None:
        self.hours_remaining = hours_remaining
        super().__init__(
            f"Cannot refund yet. {hours_remaining:.1f} hours remaining in the draw window.",
            round_id=round_id,
            hours_remaining=round(hours_remaining, 1),
        )
