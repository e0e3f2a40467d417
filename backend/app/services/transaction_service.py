"""
services/transaction_service.py — Transaction lifecycle: create, edit, delete.

Lifecycle: none → created → (edited)* → deleted. Deletion is a hard delete;
a deleted id answers TRANSACTION_NOT_FOUND like one that never existed.

Every mutation runs the same sequence inside the caller's unit of work:
  1. Validate (existence 404, membership 403, payload 422). Nothing is
     written until all of it passes.
  2. Lock the group row (group_service.lock_group) so mutations of one group
     never interleave their ledger updates.
  3. Write the transaction and its balance rows.
  4. Move the ledger: revert the old contribution (under the OLD currency),
     apply the new one (under the NEW currency).
  5. Bump the group's transaction_count / last_activity_time.

Edits:
  - Moving a transaction to another group is refused (GROUP_REASSIGNMENT, 422).
  - The client may send `version` (the value it read). A mismatch is
    CONCURRENT_MODIFICATION (409). Independently, Transaction.version_id is
    SQLAlchemy's version counter, so a write racing past the check still
    fails at flush with StaleDataError, which unit_of_work maps to 409.
  - The split is re-specified as a whole: send split_mode with its inputs,
    or balances alone (direct). Changing only currency moves the existing
    balances to the new currency's ledger rows.

Authorization:
  - Any member of the transaction's group may read, edit or delete it.

Layer rules:
  - No Flask imports. Only flush; routes commit through unit_of_work.
  - Receipt files are not touched here. Delete and photo-replacing edits
    return the URL to release, and the route releases it after commit.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from backend.app.errors import AppError, ErrorCode
from backend.app.models.transaction import SplitMode, Transaction
from backend.app.models.transaction_balance import TransactionBalance
from backend.app.services import group_service, ledger_service, split_service, tag_service


_SPLIT_INPUT_FIELDS = ("split_mode", "balances", "splits", "paid_by_user_id", "participant_ids")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _get_transaction_or_404(transaction_id: int, session: Session) -> Transaction:
    """Returns the Transaction or raises TRANSACTION_NOT_FOUND (404)."""
    transaction = session.get(Transaction, transaction_id)
    if transaction is None:
        raise AppError(
            ErrorCode.TRANSACTION_NOT_FOUND,
            f"Transaction {transaction_id} does not exist.",
            404,
        )
    return transaction


def entries_of(transaction: Transaction) -> list[dict]:
    """Stored balances of a transaction as resolver entries."""
    return [{"user_id": b.user_id, "amount": b.amount} for b in transaction.balances]


def _balance_rows(entries: list[dict]) -> list[TransactionBalance]:
    return [TransactionBalance(user_id=e["user_id"], amount=e["amount"]) for e in entries]


def _touch_group(group, now: datetime, count_delta: int = 0) -> None:
    # Best-effort counters; never allowed below zero.
    group.transaction_count = max((group.transaction_count or 0) + count_delta, 0)
    group.last_activity_time = now


def _check_version(transaction: Transaction, version: int | None) -> None:
    if version is not None and version != transaction.version_id:
        raise AppError(
            ErrorCode.CONCURRENT_MODIFICATION,
            f"Transaction {transaction.id} is at version {transaction.version_id}, "
            f"not {version}. Reload it and try again.",
            409,
            field="version",
        )


# ── Create ─────────────────────────────────────────────────────────────────

def create_transaction(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> Transaction:
    """
    Records a new transaction and applies it to the group ledger.

    Args:
        group_id:  The group this transaction belongs to.
        caller_id: The authenticated user (from flask.g).
        data:      Validated dict from CreateTransactionSchema.

    Raises:
        AppError(GROUP_NOT_FOUND, 404)
        AppError(FORBIDDEN, 403)                  — caller is not a member
        AppError(PAYER_NOT_MEMBER, 422)
        AppError(BALANCE_USER_NOT_MEMBER, 422)
        AppError(SPLIT_SUM_MISMATCH, 422)
        AppError(BALANCE_SUM_NONZERO, 422)
        AppError(INVALID_CURRENCY, 422)
    """
    group_service.get_group_or_404(group_id, session)
    group_service.require_member(group_id, caller_id, session)

    member_ids = group_service.get_member_ids(group_id, session)
    entries = split_service.build_balances(data, member_ids, group_id)

    group = group_service.lock_group(group_id, session)
    now = _now()

    transaction = Transaction(
        group_id=group_id,
        created_by_user_id=caller_id,
        name=data["name"],
        icon=data.get("icon") or "",
        amount=data["amount"],
        currency=data["currency"],
        split_mode=data.get("split_mode", SplitMode.DIRECT),
        transaction_time=data.get("transaction_time") or now,
        geo_coordinate=data.get("geo_coordinate"),
        photo=data.get("photo"),
        tags=tag_service.resolve_tags(data.get("tags"), session),
        balances=_balance_rows(entries),
    )
    session.add(transaction)
    session.flush()

    ledger_service.apply_transaction(group_id, transaction.currency, entries, session)

    _touch_group(group, now, count_delta=+1)
    session.flush()
    return transaction


# ── Read ───────────────────────────────────────────────────────────────────

def get_transaction(transaction_id: int, caller_id: int, session: Session) -> Transaction:
    """Caller must be a member of the transaction's group (FORBIDDEN, 403)."""
    transaction = _get_transaction_or_404(transaction_id, session)
    group_service.require_member(transaction.group_id, caller_id, session)
    return transaction


def list_transactions(
        group_id: int,
        caller_id: int,
        session: Session,
        currency: str | None = None,
) -> list[Transaction]:
    """Transactions of a group, newest transaction_time first."""
    group_service.get_group_or_404(group_id, session)
    group_service.require_member(group_id, caller_id, session)

    stmt = (
        select(Transaction)
        .where(Transaction.group_id == group_id)
        .options(selectinload(Transaction.balances), selectinload(Transaction.tags))
        .order_by(Transaction.transaction_time.desc(), Transaction.id.desc())
    )
    if currency is not None:
        stmt = stmt.where(Transaction.currency == split_service.validate_currency(currency))

    return list(session.execute(stmt).scalars().all())


# ── Edit ───────────────────────────────────────────────────────────────────

def _resolve_new_entries(
        transaction: Transaction,
        data: dict,
        member_ids: list[int],
) -> list[dict] | None:
    """
    New balances for an edit, or None when the split is left as is.
    """
    if not any(field in data for field in _SPLIT_INPUT_FIELDS):
        if "amount" in data and transaction.split_mode != SplitMode.DIRECT:
            raise AppError(
                ErrorCode.MISSING_FIELD,
                f"Changing the amount of a '{transaction.split_mode.value}' split "
                f"requires sending the split again.",
                400,
                field="split_mode",
            )
        return None

    payload = dict(data)
    payload.setdefault("split_mode", SplitMode.DIRECT)
    payload.setdefault("amount", transaction.amount)
    payload.setdefault("currency", transaction.currency)
    return split_service.build_balances(payload, member_ids, transaction.group_id)


def edit_transaction(
        transaction_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> tuple[Transaction, str | None]:
    """
    Partially updates a transaction and moves its ledger contribution.

    Args:
        transaction_id: The transaction to edit.
        caller_id:      Authenticated user making the edit (from flask.g).
        data:           Validated partial dict from PatchTransactionSchema.

    Returns:
        (transaction, released_photo) — released_photo is the superseded
        receipt URL when the photo changed, else None.

    Raises:
        AppError(TRANSACTION_NOT_FOUND, 404)
        AppError(FORBIDDEN, 403)
        AppError(GROUP_REASSIGNMENT, 422)
        AppError(CONCURRENT_MODIFICATION, 409)
        plus every split validation error of create_transaction().
    """
    transaction = _get_transaction_or_404(transaction_id, session)
    group_id = transaction.group_id
    group_service.require_member(group_id, caller_id, session)

    if "group_id" in data and data["group_id"] != group_id:
        raise AppError(
            ErrorCode.GROUP_REASSIGNMENT,
            "A transaction cannot be moved to another group.",
            422,
            field="group_id",
        )

    _check_version(transaction, data.get("version"))

    if "currency" in data:
        split_service.validate_currency(data["currency"])

    member_ids = group_service.get_member_ids(group_id, session)
    new_entries = _resolve_new_entries(transaction, data, member_ids)

    # ── Writes start here ──────────────────────────────────────────────────
    group = group_service.lock_group(group_id, session)
    now = _now()

    old_currency = transaction.currency
    old_entries = entries_of(transaction)
    new_currency = data.get("currency", old_currency)
    ledger_moves = new_entries is not None or new_currency != old_currency

    if ledger_moves:
        ledger_service.revert_transaction(group_id, old_currency, old_entries, session)

    tags = tag_service.resolve_tags(data["tags"], session) if "tags" in data else None

    for field in ("name", "icon", "amount", "currency", "transaction_time", "geo_coordinate"):
        if field in data:
            setattr(transaction, field, data[field])

    released_photo = None
    if "photo" in data and data["photo"] != transaction.photo:
        released_photo = transaction.photo
        transaction.photo = data["photo"]

    if tags is not None:
        transaction.tags = tags

    transaction.updated_at = now

    if new_entries is not None:
        transaction.split_mode = data.get("split_mode", SplitMode.DIRECT)
        # Old rows must be gone before new rows with the same keys go in.
        transaction.balances.clear()
        session.flush()
        transaction.balances.extend(_balance_rows(new_entries))

    session.flush()

    if ledger_moves:
        entries = new_entries if new_entries is not None else old_entries
        ledger_service.apply_transaction(group_id, new_currency, entries, session)

    _touch_group(group, now)
    session.flush()
    return transaction, released_photo


# ── Delete ─────────────────────────────────────────────────────────────────

def delete_transaction(
        transaction_id: int,
        caller_id: int,
        session: Session,
        version: int | None = None,
) -> str | None:
    """
    Hard-deletes a transaction and removes its ledger contribution.

    Returns:
        The receipt URL to release once the deletion is committed, or None.

    Raises:
        AppError(TRANSACTION_NOT_FOUND, 404)
        AppError(FORBIDDEN, 403)
        AppError(CONCURRENT_MODIFICATION, 409)
    """
    transaction = _get_transaction_or_404(transaction_id, session)
    group_id = transaction.group_id
    group_service.require_member(group_id, caller_id, session)
    _check_version(transaction, version)

    group = group_service.lock_group(group_id, session)

    ledger_service.revert_transaction(
        group_id, transaction.currency, entries_of(transaction), session,
    )

    photo = transaction.photo
    session.delete(transaction)
    session.flush()

    _touch_group(group, _now(), count_delta=-1)
    session.flush()
    return photo
