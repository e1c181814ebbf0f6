from __future__ import annotations

from flask import Blueprint, jsonify

from ..schemas import BoardResponse, RoundResponse, WinningBoardsResponse
from .common import get_round_lifecycle

bp = Blueprint("rounds", __name__)


@bp.get("")
def list_rounds():
    rounds = get_round_lifecycle().list_rounds()
    return jsonify([RoundResponse(**record).model_dump() for record in rounds])


@bp.get("/current")
def current_round():
    record = get_round_lifecycle().current_open_round()
    if record is None:
        return jsonify({"error": "No active round found", "kind": "NotFound"}), 404
    return jsonify(RoundResponse(**record).model_dump())


@bp.get("/<round_id>")
def get_round(round_id: str):
    record = get_round_lifecycle().get_round(round_id)
    return jsonify(RoundResponse(**record).model_dump())


@bp.get("/<round_id>/winning-boards")
def winning_boards(round_id: str):
    lifecycle = get_round_lifecycle()
    boards = lifecycle.winning_boards(round_id)
    record = lifecycle.get_round(round_id)
    response = WinningBoardsResponse(
        round_id=round_id,
        winning_numbers=record["winning_numbers"]["numbers"],
        winning_boards=[BoardResponse(**board.to_dict()) for board in boards],
    )
    return jsonify(response.model_dump())
