"""
routes/balances.py — Balance route handlers.

Endpoints (url_prefix=/api/v1/groups):
  GET  /groups/:id/balances            → 200  pairwise rows, net positions,
                                              simplified debts per currency
  POST /groups/:id/balances/recompute  → 200  rebuild the ledger (owner only)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.services import ledger_service
from backend.app.services.unit_of_work import unit_of_work

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/<int:group_id>/balances", methods=["GET"])
@require_auth
def get_balances(group_id: int):
    """
    Membership is checked inside ledger_service.get_balance_response(). A
    currency whose nets do not sum to zero is reported as a 500.
    """
    result = ledger_service.get_balance_response(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@balances_bp.route("/<int:group_id>/balances/recompute", methods=["POST"])
@require_auth
def recompute_balances(group_id: int):
    with unit_of_work(db.session) as session:
        result = ledger_service.rebuild_group_ledger(
            group_id=group_id,
            caller_id=g.user_id,
            session=session,
        )
    return jsonify({"data": result, "warnings": []}), 200
