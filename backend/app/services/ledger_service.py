"""
services/ledger_service.py — The persisted group balance ledger.

GroupBalance rows are a materialized view over a group's transactions:
for every (group, currency), the rows must equal what compute_ledger() yields
from the group's current transactions in that currency. This module is the
ONLY writer of GroupBalance rows.

How a transaction moves the ledger:
  1. balance_service.simplify_debts() turns the transaction's signed balances
     into debtor → creditor transfers.
  2. pairwise_deltas() maps each transfer onto its canonical pair row
     (user_id < friend_user_id; positive = friend owes user).
  3. apply_transaction() adds the deltas; revert_transaction() subtracts the
     very same deltas. A row that reaches zero is deleted.

Because the resolver is deterministic and accumulation is plain addition,
apply → revert restores the previous state exactly, and the incremental
rows always equal a full recomputation. verify_group_ledger() checks that;
recompute_group_ledger() rebuilds from scratch if it ever does not hold.

Layer rules:
  - No Flask imports.
  - Only flush; the caller's unit of work commits.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from backend.app.errors import AppError, ErrorCode
from backend.app.models.group_balance import GroupBalance
from backend.app.models.membership import Membership
from backend.app.models.transaction import MAX_MONEY, Transaction
from backend.app.models.user import User
from backend.app.services import balance_service


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

PairKey = tuple[int, int]
LedgerKey = tuple[int, int, str]


# ── Pure functions ─────────────────────────────────────────────────────────

def pairwise_deltas(entries: list[dict]) -> dict[PairKey, Decimal]:
    """
    Canonical pair deltas for one transaction.

    Args:
        entries: [{"user_id", "amount"}] signed balances summing to zero.

    Returns:
        {(low_id, high_id): delta}. delta > 0 means high_id owes low_id more;
        delta < 0 means low_id owes high_id more. Zero deltas are omitted.
    """
    net = balance_service.net_from_entries(entries)
    deltas: dict[PairKey, Decimal] = defaultdict(Decimal)

    for t in balance_service.simplify_debts(net):
        creditor, debtor, amount = t["to_user_id"], t["from_user_id"], t["amount"]
        if creditor < debtor:
            deltas[(creditor, debtor)] += amount
        else:
            deltas[(debtor, creditor)] -= amount

    return {key: amt for key, amt in deltas.items() if amt != ZERO}


def compute_ledger(transactions: Iterable[tuple[str, list[dict]]]) -> dict[LedgerKey, Decimal]:
    """
    Full recomputation of a group's ledger.

    Args:
        transactions: (currency, entries) for every current transaction.

    Returns:
        {(user_id, friend_user_id, currency): balance} without zero entries.
    """
    ledger: dict[LedgerKey, Decimal] = defaultdict(Decimal)
    for currency, entries in transactions:
        for (user_id, friend_id), delta in pairwise_deltas(entries).items():
            ledger[(user_id, friend_id, currency)] += delta
    return {key: amt for key, amt in ledger.items() if amt != ZERO}


# ── Incremental maintenance ────────────────────────────────────────────────

def _check_range(key: dict, balance: Decimal) -> None:
    if abs(balance) > MAX_MONEY:
        raise AppError(
            ErrorCode.AMOUNT_OUT_OF_RANGE,
            f"Balance between users {key['user_id']} and {key['friend_user_id']} "
            f"would exceed {MAX_MONEY} {key['currency']}.",
            422,
        )


def _accumulate(
        group_id: int,
        currency: str,
        entries: list[dict],
        sign: int,
        session: Session,
) -> None:
    planned = []
    for (user_id, friend_id), delta in sorted(pairwise_deltas(entries).items()):
        key = {
            "group_id": group_id,
            "user_id": user_id,
            "friend_user_id": friend_id,
            "currency": currency,
        }
        row = session.get(GroupBalance, key)
        change = delta if sign > 0 else -delta
        new_balance = change if row is None else row.balance + change
        _check_range(key, new_balance)
        planned.append((key, row, new_balance))

    # Nothing is written unless every pair stays in range.
    for key, row, new_balance in planned:
        if row is None:
            session.add(GroupBalance(balance=new_balance, **key))
        elif new_balance == ZERO:
            session.delete(row)
        else:
            row.balance = new_balance

    session.flush()


def apply_transaction(
        group_id: int,
        currency: str,
        entries: list[dict],
        session: Session,
) -> None:
    """Adds a transaction's pairwise deltas to the ledger rows of `currency`."""
    _accumulate(group_id, currency, entries, +1, session)


def revert_transaction(
        group_id: int,
        currency: str,
        entries: list[dict],
        session: Session,
) -> None:
    """
    Subtracts a transaction's pairwise deltas.

    `currency` and `entries` must be the values the transaction was applied
    with, i.e. read before any edit touches them.
    """
    _accumulate(group_id, currency, entries, -1, session)


# ── Materialized view maintenance ──────────────────────────────────────────

def _current_transactions(group_id: int, session: Session) -> list[tuple[str, list[dict]]]:
    stmt = (
        select(Transaction)
        .where(Transaction.group_id == group_id)
        .options(selectinload(Transaction.balances))
        .order_by(Transaction.id)
    )
    return [
        (
            t.currency,
            [{"user_id": b.user_id, "amount": b.amount} for b in t.balances],
        )
        for t in session.execute(stmt).scalars().all()
    ]


def load_ledger(group_id: int, session: Session) -> dict[LedgerKey, Decimal]:
    """Stored ledger rows of a group in compute_ledger() form."""
    rows = session.execute(
        select(GroupBalance).where(GroupBalance.group_id == group_id)
    ).scalars().all()
    return {(r.user_id, r.friend_user_id, r.currency): r.balance for r in rows}


def verify_group_ledger(group_id: int, session: Session) -> list[dict]:
    """
    Compares stored rows with a full recomputation.

    Returns one {"user_id", "friend_user_id", "currency", "stored", "expected"}
    dict per disagreeing key. An empty list means the ledger is consistent.
    """
    stored = load_ledger(group_id, session)
    expected = compute_ledger(_current_transactions(group_id, session))

    mismatches = []
    for key in sorted(set(stored) | set(expected)):
        if stored.get(key, ZERO) != expected.get(key, ZERO):
            user_id, friend_id, currency = key
            mismatches.append({
                "user_id": user_id,
                "friend_user_id": friend_id,
                "currency": currency,
                "stored": stored.get(key, ZERO),
                "expected": expected.get(key, ZERO),
            })
    return mismatches


def recompute_group_ledger(group_id: int, session: Session) -> dict:
    """
    Rebuilds every ledger row of a group from its current transactions.

    Idempotent: running it on a consistent ledger changes nothing.

    Returns: {"group_id", "rows": rows written, "corrected": keys that disagreed}
    """
    mismatches = verify_group_ledger(group_id, session)
    if mismatches:
        logger.warning(
            "Ledger of group %s disagreed with its transactions on %d row(s); rebuilding.",
            group_id,
            len(mismatches),
        )

    session.execute(delete(GroupBalance).where(GroupBalance.group_id == group_id))

    ledger = compute_ledger(_current_transactions(group_id, session))
    for (user_id, friend_id, currency), balance in sorted(ledger.items()):
        session.add(GroupBalance(
            group_id=group_id,
            user_id=user_id,
            friend_user_id=friend_id,
            currency=currency,
            balance=balance,
        ))
    session.flush()

    logger.info("Recomputed ledger of group %s: %d row(s).", group_id, len(ledger))
    return {"group_id": group_id, "rows": len(ledger), "corrected": len(mismatches)}


def rebuild_group_ledger(group_id: int, caller_id: int, session: Session) -> dict:
    """
    Owner-triggered recompute_group_ledger(), under the group lock.

    Raises:
        AppError(GROUP_NOT_FOUND, 404)
        AppError(FORBIDDEN, 403) — caller is not the group owner
    """
    from backend.app.services import group_service  # local import to avoid circular dep

    group = group_service.get_group_or_404(group_id, session)
    if group.owner_user_id != caller_id:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the group owner may rebuild the ledger.",
            403,
        )
    group_service.lock_group(group_id, session)
    return recompute_group_ledger(group_id, session)


def member_has_balance(group_id: int, user_id: int, session: Session) -> bool:
    """True if the user appears on either side of any ledger row of the group."""
    row = session.execute(
        select(GroupBalance.group_id)
        .where(
            GroupBalance.group_id == group_id,
            (GroupBalance.user_id == user_id) | (GroupBalance.friend_user_id == user_id),
        )
        .limit(1)
    ).first()
    return row is not None


# ── Read model ─────────────────────────────────────────────────────────────

def oriented_rows(ledger: dict[LedgerKey, Decimal]) -> list[dict]:
    """
    Stored canonical rows turned so that balance is always positive:
    `user_id` is owed `balance` by `friend_user_id`.
    """
    rows = []
    for (user_id, friend_id, currency), balance in ledger.items():
        if balance > 0:
            rows.append({
                "user_id": user_id,
                "friend_user_id": friend_id,
                "currency": currency,
                "balance": balance,
            })
        elif balance < 0:
            rows.append({
                "user_id": friend_id,
                "friend_user_id": user_id,
                "currency": currency,
                "balance": -balance,
            })
    rows.sort(key=lambda r: (r["currency"], r["user_id"], r["friend_user_id"]))
    return rows


def net_positions_by_currency(ledger: dict[LedgerKey, Decimal]) -> dict[str, dict[int, Decimal]]:
    """
    {currency: {user_id: net}} from ledger rows.

    Raises LEDGER_INVARIANT_VIOLATION (500) if a currency's nets do not sum
    to zero, which would mean the stored rows are corrupt.
    """
    by_currency: dict[str, dict[int, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
    for (user_id, friend_id, currency), balance in ledger.items():
        by_currency[currency][user_id] += balance
        by_currency[currency][friend_id] -= balance

    result: dict[str, dict[int, Decimal]] = {}
    for currency, nets in by_currency.items():
        total = sum(nets.values(), ZERO)
        if total != ZERO:
            logger.error("Ledger nets for %s sum to %s.", currency, total)
            raise AppError(
                ErrorCode.LEDGER_INVARIANT_VIOLATION,
                f"Balance integrity check failed for {currency}: sum was {total} "
                f"(expected 0.00).",
                500,
            )
        result[currency] = {uid: amt for uid, amt in nets.items() if amt != ZERO}
    return result


def get_balance_response(group_id: int, caller_id: int, session: Session) -> dict:
    """
    Builds the payload for GET /groups/:id/balances.

    Returns:
        {
          "group_id": int,
          "balances": [{"user_id", "user_name", "friend_user_id",
                        "friend_user_name", "currency", "balance"}],
          "currencies": [{"currency", "net_positions": [...],
                          "simplified_debts": [...]}],
        }

    Raises:
        AppError(GROUP_NOT_FOUND, 404)
        AppError(FORBIDDEN, 403)                     -- caller is not a member
        AppError(LEDGER_INVARIANT_VIOLATION, 500)    -- stored rows are corrupt
    """
    from backend.app.services import group_service  # local import to avoid circular dep

    group_service.get_group_or_404(group_id, session)
    group_service.require_member(group_id, caller_id, session)

    ledger = load_ledger(group_id, session)
    rows = oriented_rows(ledger)
    nets = net_positions_by_currency(ledger)

    user_ids = {r["user_id"] for r in rows} | {r["friend_user_id"] for r in rows}
    user_ids |= set(session.execute(
        select(Membership.user_id).where(Membership.group_id == group_id)
    ).scalars().all())
    names = dict(session.execute(
        select(User.id, User.username).where(User.id.in_(user_ids))
    ).all()) if user_ids else {}

    def _name(uid: int) -> str:
        return names.get(uid, f"user_{uid}")

    currencies = []
    for currency in sorted(nets):
        net = nets[currency]
        currencies.append({
            "currency": currency,
            "net_positions": [
                {"user_id": uid, "name": _name(uid), "balance": amt}
                for uid, amt in sorted(net.items())
            ],
            "simplified_debts": [
                {
                    "from_user_id": t["from_user_id"],
                    "from_name": _name(t["from_user_id"]),
                    "to_user_id": t["to_user_id"],
                    "to_name": _name(t["to_user_id"]),
                    "amount": t["amount"],
                }
                for t in balance_service.simplify_debts(net)
            ],
        })

    return {
        "group_id": group_id,
        "balances": [
            {
                "user_id": r["user_id"],
                "user_name": _name(r["user_id"]),
                "friend_user_id": r["friend_user_id"],
                "friend_user_name": _name(r["friend_user_id"]),
                "currency": r["currency"],
                "balance": r["balance"],
            }
            for r in rows
        ],
        "currencies": currencies,
    }
