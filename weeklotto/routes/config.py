from __future__ import annotations

from flask import Blueprint, jsonify

from ..config import load_settings
from ..schemas import PricingResponse
from ..services import PRICE_TABLE

bp = Blueprint("config", __name__)


@bp.get("/config")
def get_config():
    settings = load_settings()
    response = PricingResponse(
        currency=settings.lottery.currency,
        prices={str(fields): str(price) for fields, price in sorted(PRICE_TABLE.items())},
        draw_window_hours=settings.lottery.draw_window_hours,
    )
    return jsonify(response.model_dump())
