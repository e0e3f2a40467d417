"""
routes/users.py — Profile and friend-list route handlers.

Endpoints (url_prefix=/api/v1/users):
  PATCH  /users/me                      → 200  update username / photo
  GET    /users/by-username/:username   → 200  public profile lookup
  GET    /users/me/friends              → 200  list friends
  POST   /users/me/friends/:id          → 201  add friend (200 if already a friend)
  PATCH  /users/me/friends/:id          → 200  change remark
  DELETE /users/me/friends/:id          → 200  remove friend
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.user_schema import FriendRemarkSchema, UpdateProfileSchema
from backend.app.services import user_service
from backend.app.services.unit_of_work import unit_of_work

users_bp = Blueprint("users", __name__)


def _json_body() -> dict:
    return request.get_json(force=True, silent=True) or {}


@users_bp.route("/me", methods=["PATCH"])
@require_auth
def update_me():
    data = UpdateProfileSchema().load(_json_body())
    with unit_of_work(db.session) as session:
        result = user_service.update_profile(g.user_id, data, session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/by-username/<string:username>", methods=["GET"])
@require_auth
def get_user_by_username(username: str):
    result = user_service.get_user_by_username(username, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me/friends", methods=["GET"])
@require_auth
def list_friends():
    result = user_service.list_friends(g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me/friends/<int:friend_user_id>", methods=["POST"])
@require_auth
def add_friend(friend_user_id: int):
    data = FriendRemarkSchema().load(_json_body())
    with unit_of_work(db.session) as session:
        result, created = user_service.add_friend(
            g.user_id, friend_user_id, session, remark=data["remark"],
        )
    return jsonify({"data": result, "warnings": []}), 201 if created else 200


@users_bp.route("/me/friends/<int:friend_user_id>", methods=["PATCH"])
@require_auth
def update_friend(friend_user_id: int):
    data = FriendRemarkSchema().load(_json_body())
    with unit_of_work(db.session) as session:
        result = user_service.update_friend_remark(
            g.user_id, friend_user_id, data["remark"], session,
        )
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/me/friends/<int:friend_user_id>", methods=["DELETE"])
@require_auth
def remove_friend(friend_user_id: int):
    with unit_of_work(db.session) as session:
        user_service.remove_friend(g.user_id, friend_user_id, session)
    return jsonify({"data": {"removed": True, "friend_user_id": friend_user_id}, "warnings": []}), 200
