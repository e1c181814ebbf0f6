from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..schemas import BoardPurchaseRequest, BoardPurchaseResponse, BoardResponse
from .common import get_board_service, get_ledger, parse_body

bp = Blueprint("boards", __name__)


@bp.get("")
def list_boards():
    player_id = request.args.get("player_id")
    if not player_id:
        return jsonify({"error": "player_id query parameter is required"}), 400
    boards = get_board_service().list_player_boards(player_id)
    return jsonify([BoardResponse(**board.to_dict()).model_dump() for board in boards])


@bp.post("")
def purchase_board():
    data = parse_body(BoardPurchaseRequest)

    board = get_board_service().purchase(
        player_id=data.player_id,
        round_id=data.round_id,
        field_count=data.field_count,
        numbers=data.numbers,
    )
    new_balance = get_ledger().balance(data.player_id)

    response = BoardPurchaseResponse(
        board=BoardResponse(**board.to_dict()),
        new_balance=str(new_balance),
    )
    return jsonify(response.model_dump()), 201


@bp.get("/<board_id>")
def get_board(board_id: str):
    board = get_board_service().get_board(board_id)
    return jsonify(BoardResponse(**board.to_dict()).model_dump())
