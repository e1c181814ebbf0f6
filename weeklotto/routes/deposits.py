from __future__ import annotations

from flask import Blueprint, jsonify

from ..schemas import DepositRequest, DepositResponse
from .common import get_ledger, parse_body

bp = Blueprint("deposits", __name__)


@bp.post("")
def request_deposit():
    data = parse_body(DepositRequest)
    deposit = get_ledger().record_deposit(data.player_id, data.amount, data.external_ref)
    return jsonify(DepositResponse(**deposit.to_dict()).model_dump()), 201
