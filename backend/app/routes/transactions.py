"""
routes/transactions.py — Transaction route handlers.

Registered at url_prefix=/api/v1 because this blueprint owns both the
group-scoped paths (/groups/:id/transactions) and the transaction-ID paths
(/transactions/:id).

Layer rules:
  - Parse, validate, call ONE service inside a unit of work, return envelope.
  - Receipt files are released only after the unit of work has committed.

Endpoints:
  POST   /groups/:id/transactions   → 201  create (ledger updated)
  GET    /groups/:id/transactions   → 200  list, newest first (?currency=USD)
  GET    /transactions/:id          → 200  detail with balances
  PATCH  /transactions/:id          → 200  partial update (ledger moved)
  DELETE /transactions/:id          → 200  hard delete (ledger reverted)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.models.transaction import Transaction
from backend.app.schemas.transaction_schema import (
    CreateTransactionSchema,
    DeleteTransactionSchema,
    PatchTransactionSchema,
)
from backend.app.services import tag_service, transaction_service
from backend.app.services.unit_of_work import unit_of_work

transactions_bp = Blueprint("transactions", __name__)


def _iso(value):
    return value.isoformat() if value is not None else None


def serialize_transaction(transaction: Transaction) -> dict:
    """Plain dict for JSON output. Amounts stay Decimal; the JSON provider writes strings."""
    return {
        "id": transaction.id,
        "group_id": transaction.group_id,
        "created_by_user_id": transaction.created_by_user_id,
        "name": transaction.name,
        "icon": transaction.icon,
        "amount": transaction.amount,
        "currency": transaction.currency,
        "split_mode": transaction.split_mode.value,
        "transaction_time": _iso(transaction.transaction_time),
        "created_at": _iso(transaction.created_at),
        "updated_at": _iso(transaction.updated_at),
        "geo_coordinate": transaction.geo_coordinate,
        "photo": transaction.photo,
        "version": transaction.version_id,
        "tags": tag_service.serialize_tags(transaction.tags),
        "balances": [
            {"user_id": b.user_id, "amount": b.amount}
            for b in transaction.balances
        ],
    }


def _release_receipt(url: str | None) -> None:
    if url:
        current_app.extensions["receipt_storage"].release(url)


# ── Group-scoped routes ────────────────────────────────────────────────────

@transactions_bp.route("/groups/<int:group_id>/transactions", methods=["POST"])
@require_auth
def create_transaction(group_id: int):
    data = CreateTransactionSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        transaction = transaction_service.create_transaction(
            group_id=group_id,
            caller_id=g.user_id,
            data=data,
            session=session,
        )
    return jsonify({"data": serialize_transaction(transaction), "warnings": []}), 201


@transactions_bp.route("/groups/<int:group_id>/transactions", methods=["GET"])
@require_auth
def list_transactions(group_id: int):
    transactions = transaction_service.list_transactions(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        currency=request.args.get("currency") or None,
    )
    return jsonify({
        "data": [serialize_transaction(t) for t in transactions],
        "warnings": [],
    }), 200


# ── Transaction-ID routes ──────────────────────────────────────────────────

@transactions_bp.route("/transactions/<int:transaction_id>", methods=["GET"])
@require_auth
def get_transaction(transaction_id: int):
    transaction = transaction_service.get_transaction(
        transaction_id=transaction_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": serialize_transaction(transaction), "warnings": []}), 200


@transactions_bp.route("/transactions/<int:transaction_id>", methods=["PATCH"])
@require_auth
def edit_transaction(transaction_id: int):
    data = PatchTransactionSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        transaction, released_photo = transaction_service.edit_transaction(
            transaction_id=transaction_id,
            caller_id=g.user_id,
            data=data,
            session=session,
        )
    _release_receipt(released_photo)
    return jsonify({"data": serialize_transaction(transaction), "warnings": []}), 200


@transactions_bp.route("/transactions/<int:transaction_id>", methods=["DELETE"])
@require_auth
def delete_transaction(transaction_id: int):
    data = DeleteTransactionSchema().load(request.get_json(force=True, silent=True) or {})
    with unit_of_work(db.session) as session:
        photo = transaction_service.delete_transaction(
            transaction_id=transaction_id,
            caller_id=g.user_id,
            session=session,
            version=data["version"],
        )
    _release_receipt(photo)
    return jsonify({
        "data": {"id": transaction_id, "deleted": True},
        "warnings": [],
    }), 200
