"""
routes/groups.py — Group, membership and join-link route handlers.

Layer rules:
  - Parse, validate, call ONE service inside a unit of work, return envelope.
  - No business logic. No DB queries.

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups/                       → 201  create group (200 on dedup hit)
  GET    /groups/?q=                    → 200  list caller's groups
  GET    /groups/:id                    → 200  group + members
  POST   /groups/:id/members            → 201  add member (owner only)
  DELETE /groups/:id/members/:uid       → 200  remove member (owner or self)
  POST   /groups/:id/join-links         → 201  create join link (member)
  GET    /groups/join/:link             → 200  group summary behind a link
  POST   /groups/join/:link             → 200  join via link
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.group_schema import AddMemberSchema, CreateGroupSchema
from backend.app.services import group_service
from backend.app.services.unit_of_work import unit_of_work

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    """Caller becomes owner and member."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        result, created = group_service.create_group(
            name=data["name"],
            owner_id=g.user_id,
            session=session,
            photo=data["photo"],
            member_ids=data["member_ids"],
            deduplicate=data["deduplicate"],
        )
    return jsonify({"data": result, "warnings": []}), 201 if created else 200


@groups_bp.route("/", methods=["GET"])
@require_auth
def list_groups():
    result = group_service.list_groups(
        user_id=g.user_id,
        session=db.session,
        q=request.args.get("q") or None,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    result = group_service.get_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
@require_auth
def add_member(group_id: int):
    """Owner only."""
    data = AddMemberSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        result = group_service.add_member(
            group_id=group_id,
            caller_id=g.user_id,
            target_user_id=data["user_id"],
            session=session,
        )
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/<int:group_id>/members/<int:user_id>", methods=["DELETE"])
@require_auth
def remove_member(group_id: int, user_id: int):
    """Owner removes anyone; members remove themselves. Refused while balances are open."""
    with unit_of_work(db.session) as session:
        group_service.remove_member(
            group_id=group_id,
            caller_id=g.user_id,
            target_user_id=user_id,
            session=session,
        )
    return jsonify({
        "data": {"group_id": group_id, "user_id": user_id, "removed": True},
        "warnings": [],
    }), 200


@groups_bp.route("/<int:group_id>/join-links", methods=["POST"])
@require_auth
def create_join_link(group_id: int):
    with unit_of_work(db.session) as session:
        result = group_service.create_join_link(group_id, g.user_id, session)
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/join/<string:link_id>", methods=["GET"])
@require_auth
def get_join_link(link_id: str):
    result = group_service.get_join_link_info(link_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/join/<string:link_id>", methods=["POST"])
@require_auth
def join_by_link(link_id: str):
    with unit_of_work(db.session) as session:
        result = group_service.join_by_link(link_id, g.user_id, session)
    return jsonify({"data": result, "warnings": []}), 200
