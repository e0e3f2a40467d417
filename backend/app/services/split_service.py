"""
services/split_service.py — Builds the signed per-participant balances of a transaction.

Every transaction is stored as TransactionBalance rows: one signed amount per
participant, summing to exactly zero. Positive = net creditor on this
transaction, negative = net debtor. This module turns the three request
shapes into that form and validates it before anything is written.

Split modes:
  direct — the caller sends the signed balances themselves.
  equal  — the caller sends paid_by_user_id and, optionally, participant_ids
           (default: all current members). Shares are amount / n rounded DOWN
           to the cent; the leftover cents go to the payer's share, or to the
           lowest-id participant when the payer is not sharing.
  custom — the caller sends paid_by_user_id and positive owed amounts per
           participant. The owed amounts must add up to `amount`.

Validation (all 422, raised before any write):
  PAYER_NOT_MEMBER         — payer is not a current group member
  BALANCE_USER_NOT_MEMBER  — a participant is not a current group member
  SPLIT_SUM_MISMATCH       — custom splits do not add up to amount
  BALANCE_SUM_NONZERO      — resulting balances do not sum to zero
  INVALID_CURRENCY         — currency is not a 3-letter uppercase code
  AMOUNT_OUT_OF_RANGE      — a merged balance is too large to store

Layer rules:
  - No Flask imports.
  - Pure functions over plain dicts; build_balances() is the only entry point
    that needs the member list, which the caller loads.
"""

from __future__ import annotations

import re
from decimal import Decimal, ROUND_DOWN

from backend.app.errors import AppError, ErrorCode
from backend.app.models.transaction import MAX_MONEY, SplitMode


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def validate_currency(currency: str) -> str:
    """Raises INVALID_CURRENCY (422) unless currency is a 3-letter uppercase code."""
    if not isinstance(currency, str) or not _CURRENCY_RE.match(currency):
        raise AppError(
            ErrorCode.INVALID_CURRENCY,
            f"Currency {currency!r} is not a 3-letter ISO code.",
            422,
            field="currency",
        )
    return currency


def merge_entries(entries: list[dict]) -> list[dict]:
    """
    Collapses entries for the same user into one and drops zero entries.

    Output is ordered by user_id so the stored rows are stable.
    """
    totals: dict[int, Decimal] = {}
    for entry in entries:
        uid = entry["user_id"]
        totals[uid] = totals.get(uid, ZERO) + Decimal(entry["amount"])

    return [
        {"user_id": uid, "amount": amt}
        for uid, amt in sorted(totals.items())
        if amt != ZERO
    ]


def compute_equal_balances(
        amount: Decimal,
        participant_ids: list[int],
        payer_id: int,
) -> list[dict]:
    """
    Equal split in signed form.

    Example: 10.00 paid by 1, shared by [1, 2, 3]
      shares: 1 → 3.34 (3.33 + 0.01 remainder), 2 → 3.33, 3 → 3.33
      result: 1 → +6.66, 2 → -3.33, 3 → -3.33
    """
    participants = sorted(set(participant_ids))
    if not participants:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            "An equal split needs at least one participant.",
            400,
            field="participant_ids",
        )

    n = len(participants)
    base = (amount / Decimal(n)).quantize(CENT, rounding=ROUND_DOWN)
    remainder = amount - (base * n)

    shares = {uid: base for uid in participants}
    if remainder > ZERO:
        remainder_owner = payer_id if payer_id in shares else participants[0]
        shares[remainder_owner] += remainder

    entries = [{"user_id": payer_id, "amount": amount}]
    entries.extend({"user_id": uid, "amount": -share} for uid, share in shares.items())
    return merge_entries(entries)


def compute_custom_balances(
        amount: Decimal,
        splits: list[dict],
        payer_id: int,
) -> list[dict]:
    """
    Custom split in signed form. `splits` holds what each participant owes.

    Raises SPLIT_SUM_MISMATCH (422) if the owed amounts do not add up to amount.
    """
    total = sum((s["amount"] for s in splits), ZERO)
    if total != amount:
        raise AppError(
            ErrorCode.SPLIT_SUM_MISMATCH,
            f"Split amounts ({total}) do not equal transaction amount ({amount}).",
            422,
            field="splits",
        )

    entries = [{"user_id": payer_id, "amount": amount}]
    entries.extend({"user_id": s["user_id"], "amount": -s["amount"]} for s in splits)
    return merge_entries(entries)


def validate_zero_sum(entries: list[dict]) -> None:
    """Raises BALANCE_SUM_NONZERO (422) unless the signed amounts sum to exactly zero."""
    total = sum((e["amount"] for e in entries), ZERO)
    if total != ZERO:
        raise AppError(
            ErrorCode.BALANCE_SUM_NONZERO,
            f"Balances must sum to zero; they sum to {total}.",
            422,
            field="balances",
        )


def validate_range(entries: list[dict]) -> None:
    """
    Raises AMOUNT_OUT_OF_RANGE (422) for a balance a money column cannot
    hold. Only merged direct entries can get there; request amounts are
    capped by the schema.
    """
    for entry in entries:
        if abs(entry["amount"]) > MAX_MONEY:
            raise AppError(
                ErrorCode.AMOUNT_OUT_OF_RANGE,
                f"Balance of user {entry['user_id']} exceeds {MAX_MONEY}.",
                422,
                field="balances",
            )


def validate_members(
        entries: list[dict],
        member_ids: list[int] | set[int],
        group_id: int,
) -> None:
    """Raises BALANCE_USER_NOT_MEMBER (422) for the first user outside the group."""
    member_set = set(member_ids)
    for entry in entries:
        if entry["user_id"] not in member_set:
            raise AppError(
                ErrorCode.BALANCE_USER_NOT_MEMBER,
                f"User {entry['user_id']} is not a member of group {group_id}.",
                422,
                field="balances",
            )


def _validate_payer(payer_id: int | None, member_ids: set[int], group_id: int) -> None:
    if payer_id is None:
        raise AppError(
            ErrorCode.MISSING_FIELD,
            "paid_by_user_id is required for equal and custom splits.",
            400,
            field="paid_by_user_id",
        )
    if payer_id not in member_ids:
        raise AppError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {payer_id} is not a member of group {group_id}.",
            422,
            field="paid_by_user_id",
        )


def build_balances(data: dict, member_ids: list[int], group_id: int) -> list[dict]:
    """
    Turns a validated create/edit payload into signed, merged, zero-sum balances.

    Args:
        data:       Validated dict from the transaction schema. Must carry
                    split_mode, amount and currency plus the mode's own fields.
        member_ids: Current members of the group.
        group_id:   Used in error messages only.

    Returns:
        [{"user_id": int, "amount": Decimal}] ordered by user_id, non-zero,
        summing to zero.
    """
    validate_currency(data["currency"])

    member_set = set(member_ids)
    split_mode = data.get("split_mode", SplitMode.DIRECT)
    amount: Decimal = data["amount"]

    if split_mode == SplitMode.EQUAL:
        payer_id = data.get("paid_by_user_id")
        _validate_payer(payer_id, member_set, group_id)
        participant_ids = data.get("participant_ids") or sorted(member_set)
        validate_members(
            [{"user_id": uid} for uid in participant_ids], member_set, group_id,
        )
        entries = compute_equal_balances(amount, participant_ids, payer_id)

    elif split_mode == SplitMode.CUSTOM:
        payer_id = data.get("paid_by_user_id")
        _validate_payer(payer_id, member_set, group_id)
        splits = data.get("splits") or []
        validate_members(splits, member_set, group_id)
        entries = compute_custom_balances(amount, splits, payer_id)

    else:
        raw = data.get("balances") or []
        validate_members(raw, member_set, group_id)
        entries = merge_entries(raw)

    validate_zero_sum(entries)
    validate_range(entries)
    return entries
