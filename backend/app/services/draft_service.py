"""
services/draft_service.py — Private, unfinished transactions.

A draft belongs to the user who created it; nobody else can see it. Every
field is optional and drafts never touch the ledger, so their balances do
not have to sum to zero yet.

When a draft names a group:
  - the owner must be a member of it (FORBIDDEN, 403)
  - every balance user must be a member (BALANCE_USER_NOT_MEMBER, 422)

With or without a group, each merged balance must fit a money column
(AMOUNT_OUT_OF_RANGE, 422).

publish_draft() hands a complete draft to transaction_service and deletes
it in the same unit of work, so either the transaction exists and the draft
is gone, or nothing changed.

Layer rules:
  - No Flask imports. Only flush; the route commits.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from backend.app.errors import AppError, ErrorCode
from backend.app.models.transaction import SplitMode, Transaction
from backend.app.models.transaction_draft import TransactionDraft, TransactionDraftBalance
from backend.app.services import group_service, split_service, tag_service, transaction_service


_DRAFT_FIELDS = (
    "group_id",
    "name",
    "icon",
    "amount",
    "currency",
    "transaction_time",
    "geo_coordinate",
    "photo",
)

_REQUIRED_TO_PUBLISH = ("group_id", "name", "amount", "currency")


def _is_blank(value) -> bool:
    # Whitespace-only strings count as missing, whatever wrote them.
    return value is None or (isinstance(value, str) and not value.strip())


def _get_own_draft(draft_id: int, caller_id: int, session: Session) -> TransactionDraft:
    """
    Raises:
      AppError(DRAFT_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — the draft belongs to someone else
    """
    draft = session.get(TransactionDraft, draft_id)
    if draft is None:
        raise AppError(
            ErrorCode.DRAFT_NOT_FOUND,
            f"Draft {draft_id} does not exist.",
            404,
        )
    if draft.user_id != caller_id:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "You can only access your own drafts.",
            403,
        )
    return draft


def _validate_group_scope(data: dict, caller_id: int, session: Session) -> None:
    if data.get("currency") is not None:
        split_service.validate_currency(data["currency"])

    group_id = data.get("group_id")
    if group_id is None:
        return

    group_service.get_group_or_404(group_id, session)
    group_service.require_member(group_id, caller_id, session)

    balances = data.get("balances") or []
    if balances:
        member_ids = group_service.get_member_ids(group_id, session)
        split_service.validate_members(balances, member_ids, group_id)


def _write_fields(draft: TransactionDraft, data: dict, session: Session) -> None:
    entries = split_service.merge_entries(data.get("balances") or [])
    split_service.validate_range(entries)

    for field in _DRAFT_FIELDS:
        setattr(draft, field, data.get(field))

    draft.tags = tag_service.resolve_tags(data.get("tags"), session)

    draft.balances.clear()
    session.flush()
    draft.balances.extend(
        TransactionDraftBalance(user_id=e["user_id"], amount=e["amount"])
        for e in entries
    )


# ── Public service functions ───────────────────────────────────────────────

def create_draft(caller_id: int, data: dict, session: Session) -> TransactionDraft:
    _validate_group_scope(data, caller_id, session)

    draft = TransactionDraft(user_id=caller_id)
    session.add(draft)
    _write_fields(draft, data, session)
    session.flush()
    return draft


def list_drafts(caller_id: int, session: Session) -> list[TransactionDraft]:
    """The caller's drafts, newest first."""
    stmt = (
        select(TransactionDraft)
        .where(TransactionDraft.user_id == caller_id)
        .options(selectinload(TransactionDraft.balances), selectinload(TransactionDraft.tags))
        .order_by(TransactionDraft.created_at.desc(), TransactionDraft.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


def get_draft(draft_id: int, caller_id: int, session: Session) -> TransactionDraft:
    return _get_own_draft(draft_id, caller_id, session)


def update_draft(
        draft_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> TransactionDraft:
    """Full replacement (PUT): fields missing from data are cleared."""
    draft = _get_own_draft(draft_id, caller_id, session)
    _validate_group_scope(data, caller_id, session)
    _write_fields(draft, data, session)
    session.flush()
    return draft


def delete_draft(draft_id: int, caller_id: int, session: Session) -> None:
    draft = _get_own_draft(draft_id, caller_id, session)
    session.delete(draft)
    session.flush()


def publish_draft(draft_id: int, caller_id: int, session: Session) -> Transaction:
    """
    Turns a complete draft into a transaction (direct split) and deletes it.

    Raises:
      AppError(DRAFT_INCOMPLETE, 422) — group, name, amount, currency or
                                        balances missing or blank
      plus every error of transaction_service.create_transaction().
    """
    draft = _get_own_draft(draft_id, caller_id, session)

    missing = [f for f in _REQUIRED_TO_PUBLISH if _is_blank(getattr(draft, f))]
    if not draft.balances:
        missing.append("balances")
    if missing:
        raise AppError(
            ErrorCode.DRAFT_INCOMPLETE,
            f"Draft {draft_id} is missing: {', '.join(missing)}.",
            422,
            field=missing[0],
        )

    data = {
        "name": draft.name,
        "icon": draft.icon or "",
        "amount": draft.amount,
        "currency": draft.currency,
        "split_mode": SplitMode.DIRECT,
        "transaction_time": draft.transaction_time,
        "geo_coordinate": draft.geo_coordinate,
        "photo": draft.photo,
        "tags": [{"name": t.name, "icon": t.icon} for t in draft.tags],
        "balances": [{"user_id": b.user_id, "amount": b.amount} for b in draft.balances],
    }
    transaction = transaction_service.create_transaction(
        group_id=draft.group_id,
        caller_id=caller_id,
        data=data,
        session=session,
    )

    session.delete(draft)
    session.flush()
    return transaction
