"""
routes/auth.py — Authentication route handlers.

Each handler: validate the body with its schema, call ONE service inside a
unit of work, return {"data": ..., "warnings": []}. AppError propagates to
the global handler in app/__init__.py.

Endpoints (url_prefix=/api/v1/auth):
  POST   /auth/register  → 201
  POST   /auth/login     → 200
  POST   /auth/refresh   → 200
  POST   /auth/logout    → 200
  GET    /auth/me        → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.auth_schema import LoginSchema, RefreshTokenSchema, RegisterSchema
from backend.app.services import auth_service
from backend.app.services.unit_of_work import unit_of_work

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    """No auth required."""
    data = RegisterSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        result = auth_service.register_user(
            username=data["username"],
            email=data["email"],
            password=data["password"],
            session=session,
        )
    return jsonify({"data": result, "warnings": []}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """No auth required."""
    data = LoginSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        result = auth_service.login_user(
            username=data["username"],
            password=data["password"],
            session=session,
        )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    data = RefreshTokenSchema().load(request.get_json(force=True) or {})
    result = auth_service.refresh_access_token(
        raw_refresh_token=data["refresh_token"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    data = RefreshTokenSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        auth_service.logout_user(
            raw_refresh_token=data["refresh_token"],
            session=session,
        )
    return jsonify({"data": {"message": "Logged out successfully."}, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    result = auth_service.get_current_user(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
