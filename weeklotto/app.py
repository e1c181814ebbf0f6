from __future__ import annotations

import json

from flask import Flask, jsonify
from pydantic import ValidationError as RequestValidationError
from werkzeug.exceptions import HTTPException

from .config import load_settings
from .db import init_db
from .errors import LotteryError
from .routes.admin import bp as admin_bp
from .routes.boards import bp as boards_bp
from .routes.config import bp as config_bp
from .routes.deposits import bp as deposits_bp
from .routes.health import bp as health_bp
from .routes.players import bp as players_bp
from .routes.rounds import bp as rounds_bp


def create_app() -> Flask:
    settings = load_settings()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.flask.secret_key
    init_db()

    app.register_blueprint(health_bp)
    app.register_blueprint(config_bp)
    app.register_blueprint(players_bp, url_prefix="/players")
    app.register_blueprint(boards_bp, url_prefix="/boards")
    app.register_blueprint(deposits_bp, url_prefix="/deposits")
    app.register_blueprint(rounds_bp, url_prefix="/rounds")
    app.register_blueprint(admin_bp, url_prefix="/admin/api")

    @app.errorhandler(LotteryError)
    def handle_lottery_error(exc: LotteryError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(RequestValidationError)
    def handle_request_error(exc: RequestValidationError):
        return jsonify({
            "error": "invalid request body",
            "kind": "ValidationError",
            "fields": json.loads(exc.json()),
        }), 400

    @app.errorhandler(Exception)
    def handle_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("Unhandled error: %s", exc)
        return jsonify({"error": str(exc)}), 500

    return app
