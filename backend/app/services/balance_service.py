"""
services/balance_service.py — Net settlement resolver.

Turns one currency's signed per-user amounts into directed debtor → creditor
transfers that reproduce exactly the same net position for every user.

This file is the SINGLE SOURCE OF TRUTH for how net amounts become pairwise
debts. ledger_service applies its output per transaction and, on read, to the
group's aggregate net positions. Nothing else reimplements the matching.

Guarantees of simplify_debts(), for any input summing to zero:
  - net_positions(simplify_debts(net)) == net for every non-zero user.
  - No transfer has from_user_id == to_user_id.
  - At most (creditors + debtors - 1) transfers.
  - Output is fully deterministic: ties on magnitude break by user id, so the
    same input always yields the same transfers. The incremental ledger
    relies on this to stay equal to a full recomputation.

Layer rules:
  - No Flask imports. No DB access. Plain dicts in, plain lists out.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from backend.app.errors import AppError, ErrorCode


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _invariant_violation(message: str) -> AppError:
    logger.error("Settlement resolver invariant violated: %s", message)
    return AppError(ErrorCode.LEDGER_INVARIANT_VIOLATION, message, 500)


def net_from_entries(entries: list[dict]) -> dict[int, Decimal]:
    """Sums {"user_id", "amount"} entries into {user_id: net}. Zero nets are dropped."""
    net: dict[int, Decimal] = defaultdict(Decimal)
    for entry in entries:
        net[entry["user_id"]] += Decimal(entry["amount"])
    return {uid: amt for uid, amt in net.items() if amt != ZERO}


def net_positions(transfers: list[dict]) -> dict[int, Decimal]:
    """
    Inverse of simplify_debts(): credits minus debits per user.

    Each transfer adds `amount` to to_user_id and subtracts it from
    from_user_id. Users who net to zero are dropped.
    """
    net: dict[int, Decimal] = defaultdict(Decimal)
    for t in transfers:
        net[t["to_user_id"]] += t["amount"]
        net[t["from_user_id"]] -= t["amount"]
    return {uid: amt for uid, amt in net.items() if amt != ZERO}


def simplify_debts(net: dict[int, Decimal]) -> list[dict]:
    """
    Greedy two-pointer settlement of one currency's net positions.

    Matches the largest remaining creditor with the largest remaining debtor,
    emits min(credit, debt) from the debtor to the creditor, and advances
    whichever side reached zero.

    Args:
        net: {user_id: signed amount}. MUST sum to zero.

    Returns:
        [{"from_user_id": int, "to_user_id": int, "amount": Decimal}]
        An empty list means nobody owes anybody.

    Raises:
        AppError(LEDGER_INVARIANT_VIOLATION, 500) if the input does not sum to
        zero or the two sides do not run out together. Either one is a bug
        upstream; validation rejects non-zero-sum transactions long before.
    """
    total = sum(net.values(), ZERO)
    if total != ZERO:
        raise _invariant_violation(f"net positions sum to {total}, expected 0.00")

    # Largest magnitude first; user id breaks ties.
    creditors = sorted(
        ((uid, amt) for uid, amt in net.items() if amt > 0),
        key=lambda x: (-x[1], x[0]),
    )
    debtors = sorted(
        ((uid, -amt) for uid, amt in net.items() if amt < 0),
        key=lambda x: (-x[1], x[0]),
    )

    transfers: list[dict] = []
    i = j = 0

    while i < len(creditors) and j < len(debtors):
        cid, credit = creditors[i]
        did, debt = debtors[j]

        settled = min(credit, debt)
        # A user is never on both sides, so cid == did cannot happen for a
        # well-formed dict; the guard keeps self-pairs out regardless.
        if cid != did:
            transfers.append({
                "from_user_id": did,
                "to_user_id": cid,
                "amount": settled,
            })

        creditors[i] = (cid, credit - settled)
        debtors[j] = (did, debt - settled)

        if creditors[i][1] == ZERO:
            i += 1
        if debtors[j][1] == ZERO:
            j += 1

    if i != len(creditors) or j != len(debtors):
        raise _invariant_violation(
            f"cursors did not exhaust together "
            f"(creditors {i}/{len(creditors)}, debtors {j}/{len(debtors)})"
        )

    return transfers
