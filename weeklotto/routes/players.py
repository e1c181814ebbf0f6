from __future__ import annotations

from flask import Blueprint, jsonify

from ..config import load_settings
from ..schemas import BalanceResponse, DepositResponse, PlayerResponse
from .common import get_ledger, get_player_repo

bp = Blueprint("players", __name__)


@bp.get("/<player_id>")
def get_player(player_id: str):
    player = get_player_repo().get_player(player_id)
    return jsonify(PlayerResponse(**player.to_dict()).model_dump())


@bp.get("/<player_id>/balance")
def get_balance(player_id: str):
    balance = get_ledger().balance(player_id)
    response = BalanceResponse(
        player_id=player_id,
        balance=str(balance),
        currency=load_settings().lottery.currency,
    )
    return jsonify(response.model_dump())


@bp.get("/<player_id>/deposits")
def list_deposits(player_id: str):
    deposits = get_ledger().list_player_deposits(player_id)
    return jsonify([DepositResponse(**deposit.to_dict()).model_dump() for deposit in deposits])
