"""
app/__init__.py — Flask application factory.

create_app(config_name) builds a fully wired app and touches nothing at
import time, so tests can create isolated instances and Alembic can load
the metadata without starting a server.

Wiring order:
  1. Config from config_by_name[config_name] (production is validated)
  2. Logging level from LOG_LEVEL
  3. Extensions (SQLAlchemy, Marshmallow) and the receipt store
  4. Model imports so the metadata is complete
  5. Blueprints under /api/v1
  6. Error handlers and dev CORS headers

Money leaves the server as strings: DecimalJSONProvider renders Decimal
via str(), so Decimal("10.50") is sent as "10.50".
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError

from backend.config import config_by_name, validate_production_config


class DecimalJSONProvider(DefaultJSONProvider):
    """jsonify() with Decimal written as str, never as a float."""

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Args:
        config_name: "development", "testing" or "production". Unknown
                     names fall back to development.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)

    _configure_logging(app)

    from backend.app.extensions import db, ma
    from backend.app.services.receipt_storage import ReceiptStorage
    db.init_app(app)
    ma.init_app(app)
    app.extensions["receipt_storage"] = ReceiptStorage(
        app.config["RECEIPT_BASE_URL"],
        app.config["RECEIPT_STORAGE_DIR"],
    )

    # Side-effect imports: every table must be on db.metadata.
    with app.app_context():
        from backend.app.models import (  # noqa: F401
            friend,
            group,
            group_balance,
            group_join_link,
            membership,
            refresh_token,
            tag,
            transaction,
            transaction_balance,
            transaction_draft,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """Applies LOG_LEVEL to the app logger and to every backend.* module logger."""
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    app.logger.setLevel(level)
    package_logger = logging.getLogger("backend")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s"
        ))
        package_logger.addHandler(handler)


def _register_blueprints(app: Flask) -> None:
    from backend.app.routes.auth import auth_bp
    from backend.app.routes.balances import balances_bp
    from backend.app.routes.drafts import drafts_bp
    from backend.app.routes.groups import groups_bp
    from backend.app.routes.transactions import transactions_bp
    from backend.app.routes.users import users_bp

    app.register_blueprint(auth_bp,         url_prefix="/api/v1/auth")
    app.register_blueprint(groups_bp,       url_prefix="/api/v1/groups")
    # Owns both /groups/<id>/transactions and /transactions/<id>.
    app.register_blueprint(transactions_bp, url_prefix="/api/v1")
    app.register_blueprint(balances_bp,     url_prefix="/api/v1/groups")
    app.register_blueprint(users_bp,        url_prefix="/api/v1/users")
    app.register_blueprint(drafts_bp,       url_prefix="/api/v1/drafts")


# ── Error handling ─────────────────────────────────────────────────────────

def _first_error(messages, field: str | None = None) -> tuple[str | None, str]:
    """
    Walks marshmallow's nested messages down to the first leaf.

    {"balances": {0: {"amount": ["X"]}}} → ("balances.0.amount", "X")
    """
    if isinstance(messages, dict):
        for key, value in messages.items():
            if key == "_schema":
                return _first_error(value, field)
            child = str(key) if field is None else f"{field}.{key}"
            return _first_error(value, child)
        return field, "Invalid input."
    if isinstance(messages, list):
        if not messages:
            return field, "Invalid value."
        return _first_error(messages[0], field)
    return field, str(messages)


def _register_error_handlers(app: Flask) -> None:
    """
    AppError        → its own status and code
    ValidationError → 400, first offending field only
    Exception       → 500 INTERNAL_ERROR; the traceback stays in the log
    """
    from backend.app.errors import AppError, ErrorCode

    known_codes = {v for k, v in vars(ErrorCode).items() if not k.startswith("_")}

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        field, raw_message = _first_error(error.messages)

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        body = {"error": {"code": code, "message": message}}
        if field is not None:
            body["error"]["field"] = field
        return jsonify(body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """Permissive CORS in DEBUG/TESTING only, for a frontend on another local port."""

    @app.after_request
    def add_cors_headers(response):
        if app.config.get("DEBUG") or app.config.get("TESTING"):
            origin = request.headers.get("Origin")
            response.headers["Access-Control-Allow-Origin"] = origin or "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response


def _code_to_message(code: str) -> str:
    """Prose for schema errors whose message is the bare error code."""
    _messages = {
        "INVALID_AMOUNT_PRECISION": "Amounts may have at most 2 decimal places.",
        "INVALID_SPLIT_MODE": "split_mode must be 'direct', 'equal' or 'custom'.",
        "SPLITS_SENT_FOR_EQUAL_MODE": "Do not send splits when split_mode is 'equal'.",
        "DUPLICATE_SPLIT_USER": "The same user_id appears more than once in splits.",
        "MISSING_FIELD": "A required field is missing.",
    }
    return _messages.get(code, "Invalid input.")
