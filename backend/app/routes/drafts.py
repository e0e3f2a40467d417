"""
routes/drafts.py — Transaction draft route handlers.

Drafts are visible to their owner only.

Endpoints (url_prefix=/api/v1/drafts):
  POST   /drafts/             → 201  create
  GET    /drafts/             → 200  list own drafts
  GET    /drafts/:id          → 200  detail
  PUT    /drafts/:id          → 200  replace
  DELETE /drafts/:id          → 200  delete
  POST   /drafts/:id/publish  → 201  turn into a transaction (draft removed)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.models.transaction_draft import TransactionDraft
from backend.app.routes.transactions import serialize_transaction
from backend.app.schemas.draft_schema import DraftSchema
from backend.app.services import draft_service, tag_service
from backend.app.services.unit_of_work import unit_of_work

drafts_bp = Blueprint("drafts", __name__)


def _serialize_draft(draft: TransactionDraft) -> dict:
    return {
        "id": draft.id,
        "user_id": draft.user_id,
        "group_id": draft.group_id,
        "name": draft.name,
        "icon": draft.icon,
        "amount": draft.amount,
        "currency": draft.currency,
        "transaction_time": draft.transaction_time.isoformat() if draft.transaction_time else None,
        "created_at": draft.created_at.isoformat() if draft.created_at else None,
        "geo_coordinate": draft.geo_coordinate,
        "photo": draft.photo,
        "tags": tag_service.serialize_tags(draft.tags),
        "balances": [{"user_id": b.user_id, "amount": b.amount} for b in draft.balances],
    }


@drafts_bp.route("/", methods=["POST"])
@require_auth
def create_draft():
    data = DraftSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        draft = draft_service.create_draft(g.user_id, data, session)
    return jsonify({"data": _serialize_draft(draft), "warnings": []}), 201


@drafts_bp.route("/", methods=["GET"])
@require_auth
def list_drafts():
    drafts = draft_service.list_drafts(g.user_id, db.session)
    return jsonify({"data": [_serialize_draft(d) for d in drafts], "warnings": []}), 200


@drafts_bp.route("/<int:draft_id>", methods=["GET"])
@require_auth
def get_draft(draft_id: int):
    draft = draft_service.get_draft(draft_id, g.user_id, db.session)
    return jsonify({"data": _serialize_draft(draft), "warnings": []}), 200


@drafts_bp.route("/<int:draft_id>", methods=["PUT"])
@require_auth
def update_draft(draft_id: int):
    data = DraftSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        draft = draft_service.update_draft(draft_id, g.user_id, data, session)
    return jsonify({"data": _serialize_draft(draft), "warnings": []}), 200


@drafts_bp.route("/<int:draft_id>", methods=["DELETE"])
@require_auth
def delete_draft(draft_id: int):
    with unit_of_work(db.session) as session:
        draft_service.delete_draft(draft_id, g.user_id, session)
    return jsonify({"data": {"id": draft_id, "deleted": True}, "warnings": []}), 200


@drafts_bp.route("/<int:draft_id>/publish", methods=["POST"])
@require_auth
def publish_draft(draft_id: int):
    with unit_of_work(db.session) as session:
        transaction = draft_service.publish_draft(draft_id, g.user_id, session)
    return jsonify({"data": serialize_transaction(transaction), "warnings": []}), 201
