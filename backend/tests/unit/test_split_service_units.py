"""
tests/unit/test_split_service_units.py — build_balances() and its validators.

Every 422 a transaction payload can earn from split arithmetic or the member
list is raised here, before anything is written.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from backend.app.errors import AppError, ErrorCode
from backend.app.models.transaction import SplitMode
from backend.app.services import split_service


D = Decimal
MEMBERS = [1, 2, 3]


def _payload(**overrides) -> dict:
    data = {"amount": D("30.00"), "currency": "USD", "split_mode": SplitMode.DIRECT}
    data.update(overrides)
    return data


def _code(exc_info) -> str:
    return exc_info.value.code


# ── Currency ───────────────────────────────────────────────────────────────

@pytest.mark.parametrize("currency", ["USD", "EUR", "JPY"])
def test_valid_currency(currency):
    assert split_service.validate_currency(currency) == currency


@pytest.mark.parametrize("currency", ["usd", "US", "EURO", "", "U1D", None])
def test_invalid_currency(currency):
    with pytest.raises(AppError) as exc_info:
        split_service.validate_currency(currency)

    assert _code(exc_info) == ErrorCode.INVALID_CURRENCY
    assert exc_info.value.http_status == 422


# ── merge_entries ──────────────────────────────────────────────────────────

def test_merge_entries_sums_per_user_and_sorts():
    merged = split_service.merge_entries([
        {"user_id": 3, "amount": D("-5.00")},
        {"user_id": 1, "amount": D("10.00")},
        {"user_id": 3, "amount": D("-5.00")},
    ])

    assert merged == [
        {"user_id": 1, "amount": D("10.00")},
        {"user_id": 3, "amount": D("-10.00")},
    ]


def test_merge_entries_drops_users_that_cancel():
    merged = split_service.merge_entries([
        {"user_id": 1, "amount": D("4.00")},
        {"user_id": 1, "amount": D("-4.00")},
    ])

    assert merged == []


# ── Direct ─────────────────────────────────────────────────────────────────

def test_direct_merges_and_returns_sorted():
    entries = split_service.build_balances(
        _payload(balances=[
            {"user_id": 2, "amount": D("-10.00")},
            {"user_id": 1, "amount": D("30.00")},
            {"user_id": 2, "amount": D("-10.00")},
            {"user_id": 3, "amount": D("-10.00")},
        ]),
        MEMBERS,
        group_id=1,
    )

    assert entries == [
        {"user_id": 1, "amount": D("30.00")},
        {"user_id": 2, "amount": D("-20.00")},
        {"user_id": 3, "amount": D("-10.00")},
    ]


def test_direct_amount_is_not_compared_to_balances():
    entries = split_service.build_balances(
        _payload(amount=D("99.00"), balances=[
            {"user_id": 1, "amount": D("5.00")},
            {"user_id": 2, "amount": D("-5.00")},
        ]),
        MEMBERS,
        group_id=1,
    )

    assert len(entries) == 2


def test_direct_nonzero_sum():
    with pytest.raises(AppError) as exc_info:
        split_service.build_balances(
            _payload(balances=[
                {"user_id": 1, "amount": D("10.00")},
                {"user_id": 2, "amount": D("-9.99")},
            ]),
            MEMBERS,
            group_id=1,
        )

    assert _code(exc_info) == ErrorCode.BALANCE_SUM_NONZERO
    assert exc_info.value.field == "balances"


def test_direct_merged_balance_too_large():
    with pytest.raises(AppError) as exc_info:
        split_service.build_balances(
            _payload(balances=[
                {"user_id": 1, "amount": D("9999999999.99")},
                {"user_id": 1, "amount": D("0.01")},
                {"user_id": 2, "amount": D("-9999999999.99")},
                {"user_id": 2, "amount": D("-0.01")},
            ]),
            MEMBERS,
            group_id=1,
        )

    assert _code(exc_info) == ErrorCode.AMOUNT_OUT_OF_RANGE
    assert exc_info.value.http_status == 422


def test_largest_storable_balance_is_accepted():
    entries = split_service.build_balances(
        _payload(balances=[
            {"user_id": 1, "amount": D("9999999999.99")},
            {"user_id": 2, "amount": D("-9999999999.99")},
        ]),
        MEMBERS,
        group_id=1,
    )

    assert entries[0]["amount"] == D("9999999999.99")


def test_direct_user_outside_group():
    with pytest.raises(AppError) as exc_info:
        split_service.build_balances(
            _payload(balances=[
                {"user_id": 1, "amount": D("10.00")},
                {"user_id": 42, "amount": D("-10.00")},
            ]),
            MEMBERS,
            group_id=1,
        )

    assert _code(exc_info) == ErrorCode.BALANCE_USER_NOT_MEMBER


def test_currency_checked_before_members():
    with pytest.raises(AppError) as exc_info:
        split_service.build_balances(
            _payload(currency="usd", balances=[{"user_id": 42, "amount": D("0.00")}]),
            MEMBERS,
            group_id=1,
        )

    assert _code(exc_info) == ErrorCode.INVALID_CURRENCY


# ── Equal ──────────────────────────────────────────────────────────────────

def test_equal_defaults_to_all_members():
    entries = split_service.build_balances(
        _payload(split_mode=SplitMode.EQUAL, paid_by_user_id=2),
        MEMBERS,
        group_id=1,
    )

    assert entries == [
        {"user_id": 1, "amount": D("-10.00")},
        {"user_id": 2, "amount": D("20.00")},
        {"user_id": 3, "amount": D("-10.00")},
    ]


def test_equal_missing_payer():
    with pytest.raises(AppError) as exc_info:
        split_service.build_balances(_payload(split_mode=SplitMode.EQUAL), MEMBERS, group_id=1)

    assert _code(exc_info) == ErrorCode.MISSING_FIELD
    assert exc_info.value.http_status == 400
    assert exc_info.value.field == "paid_by_user_id"


def test_equal_payer_outside_group():
    with pytest.raises(AppError) as exc_info:
        split_service.build_balances(
            _payload(split_mode=SplitMode.EQUAL, paid_by_user_id=9),
            MEMBERS,
            group_id=1,
        )

    assert _code(exc_info) == ErrorCode.PAYER_NOT_MEMBER


def test_equal_participant_outside_group():
    with pytest.raises(AppError) as exc_info:
        split_service.build_balances(
            _payload(split_mode=SplitMode.EQUAL, paid_by_user_id=1, participant_ids=[1, 7]),
            MEMBERS,
            group_id=1,
        )

    assert _code(exc_info) == ErrorCode.BALANCE_USER_NOT_MEMBER


# ── Custom ─────────────────────────────────────────────────────────────────

def test_custom_split():
    entries = split_service.build_balances(
        _payload(
            split_mode=SplitMode.CUSTOM,
            paid_by_user_id=1,
            splits=[
                {"user_id": 1, "amount": D("5.00")},
                {"user_id": 2, "amount": D("15.00")},
                {"user_id": 3, "amount": D("10.00")},
            ],
        ),
        MEMBERS,
        group_id=1,
    )

    assert entries == [
        {"user_id": 1, "amount": D("25.00")},
        {"user_id": 2, "amount": D("-15.00")},
        {"user_id": 3, "amount": D("-10.00")},
    ]


def test_custom_sum_mismatch():
    with pytest.raises(AppError) as exc_info:
        split_service.compute_custom_balances(
            D("30.00"),
            [{"user_id": 2, "amount": D("10.00")}, {"user_id": 3, "amount": D("10.00")}],
            payer_id=1,
        )

    assert _code(exc_info) == ErrorCode.SPLIT_SUM_MISMATCH
    assert exc_info.value.field == "splits"
