from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class PlayerCreateRequest(BaseModel):
    full_name: str
    email: str
    phone_number: str
    is_active: bool = Field(False, description="New players start inactive until an admin activates them.")


class PlayerActiveRequest(BaseModel):
    is_active: bool


class PlayerResponse(BaseModel):
    player_id: str
    full_name: str
    email: str
    phone_number: str
    is_active: bool
    created_at: str


class BoardPurchaseRequest(BaseModel):
    player_id: str
    round_id: str
    field_count: int = Field(..., description="5, 6, 7 or 8 numbers on the board.")
    numbers: List[int] = Field(..., description="Distinct numbers between 1 and 16.")


class BoardResponse(BaseModel):
    board_id: str
    player_id: str
    round_id: str
    field_count: int
    price: str
    numbers: List[int]
    is_winning: bool = False
    created_at: str


class BoardPurchaseResponse(BaseModel):
    board: BoardResponse
    new_balance: str


class BalanceResponse(BaseModel):
    player_id: str
    balance: str
    currency: str


class DepositRequest(BaseModel):
    player_id: str
    amount: Decimal
    external_ref: str = Field(..., description="Reference id of the external payment.")

    @field_validator("external_ref")
    @classmethod
    def strip_reference(cls, value: str) -> str:
        return value.strip()


class ApproveDepositRequest(BaseModel):
    amount: Optional[Decimal] = Field(None, description="Corrected amount, if it differs from the request.")


class DepositResponse(BaseModel):
    deposit_id: str
    player_id: str
    amount: str
    external_ref: str
    status: str
    created_at: str
    approved_at: Optional[str] = None


class DrawNumbersRequest(BaseModel):
    number1: int
    number2: int
    number3: int


class WinningNumbersResponse(BaseModel):
    round_id: str
    numbers: List[int]
    drawn_at: str


class RoundResponse(BaseModel):
    round_id: str
    week_start: str
    draw_deadline: str
    status: str
    display_status: str
    created_at: str
    board_count: int = 0
    winning_board_count: int = 0
    winning_numbers: Optional[WinningNumbersResponse] = None


class DrawResultResponse(BaseModel):
    round_id: str
    winning_numbers: List[int]
    drawn_at: str
    total_boards: int
    winning_board_count: int


class RefundResponse(BaseModel):
    round_id: str
    refunded_board_count: int


class WinningBoardsResponse(BaseModel):
    round_id: str
    winning_numbers: List[int]
    winning_boards: List[BoardResponse]


class PricingResponse(BaseModel):
    currency: str
    prices: Dict[str, str]
    draw_window_hours: int
