from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..config import load_settings
from ..schemas import (
    ApproveDepositRequest,
    BoardResponse,
    DepositResponse,
    DrawNumbersRequest,
    DrawResultResponse,
    PlayerActiveRequest,
    PlayerCreateRequest,
    PlayerResponse,
    RefundResponse,
)
from .common import get_board_service, get_ledger, get_player_repo, get_round_lifecycle, parse_body

bp = Blueprint("admin", __name__)


def _require_admin() -> bool:
    settings = load_settings()
    api_key = settings.admin_api_key
    if api_key:
        provided = request.headers.get("X-Admin-Token")
        if provided != api_key:
            return False
    return True


@bp.before_request
def verify_admin():
    if not _require_admin():
        return jsonify({"error": "unauthorized"}), 401
    return None


# ---- players ---------------------------------------------------------------

@bp.get("/players")
def list_players():
    players = get_player_repo().list_players()
    return jsonify([PlayerResponse(**player.to_dict()).model_dump() for player in players])


@bp.post("/players")
def create_player():
    data = parse_body(PlayerCreateRequest)
    player = get_player_repo().create_player(
        full_name=data.full_name,
        email=data.email,
        phone_number=data.phone_number,
        is_active=data.is_active,
    )
    return jsonify(PlayerResponse(**player.to_dict()).model_dump()), 201


@bp.post("/players/<player_id>/active")
def set_player_active(player_id: str):
    data = parse_body(PlayerActiveRequest)
    player = get_player_repo().set_active(player_id, data.is_active)
    current_app.logger.info("Player %s active=%s", player_id, data.is_active)
    return jsonify(PlayerResponse(**player.to_dict()).model_dump())


# ---- deposits --------------------------------------------------------------

@bp.get("/deposits/pending")
def list_pending_deposits():
    deposits = get_ledger().list_pending_deposits()
    return jsonify([DepositResponse(**deposit.to_dict()).model_dump() for deposit in deposits])


@bp.post("/deposits/<deposit_id>/approve")
def approve_deposit(deposit_id: str):
    data = parse_body(ApproveDepositRequest)
    deposit = get_ledger().approve_deposit(deposit_id, data.amount)
    return jsonify(DepositResponse(**deposit.to_dict()).model_dump())


@bp.post("/deposits/<deposit_id>/dismiss")
def dismiss_deposit(deposit_id: str):
    deposit = get_ledger().dismiss_deposit(deposit_id)
    return jsonify({"deposit_id": deposit.id, "status": deposit.status})


# ---- rounds ----------------------------------------------------------------

@bp.get("/rounds/<round_id>/boards")
def list_round_boards(round_id: str):
    boards = get_board_service().list_round_boards(round_id)
    return jsonify([BoardResponse(**board.to_dict()).model_dump() for board in boards])


@bp.post("/rounds/<round_id>/draw")
def draw_winning_numbers(round_id: str):
    data = parse_body(DrawNumbersRequest)
    result = get_round_lifecycle().draw_numbers(round_id, data.number1, data.number2, data.number3)
    current_app.logger.info(
        "Round %s drawn: %s winning boards of %s",
        round_id,
        result["winning_board_count"],
        result["total_boards"],
    )
    return jsonify(DrawResultResponse(**result).model_dump())


@bp.post("/rounds/<round_id>/refund")
def refund_round(round_id: str):
    result = get_round_lifecycle().refund(round_id)
    current_app.logger.info("Round %s refunded: %s boards", round_id, result["refunded_board_count"])
    return jsonify(RefundResponse(**result).model_dump())
