"""
Unit tests for group_service branches that are lightly exercised by integration tests.

These tests run DB-free with mocked session/query behavior.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from backend.app.errors import AppError, ErrorCode
from backend.app.services import group_service


def _mock_scalars_all(session: MagicMock, rows: list) -> None:
    session.execute.return_value.scalars.return_value.all.return_value = rows


# ── members_id_hash ────────────────────────────────────────────────────────

def test_members_hash_is_sha256_of_sorted_ids():
    expected = hashlib.sha256(b"2,10,33").hexdigest()

    assert group_service.compute_members_hash([33, 2, 10]) == expected


def test_members_hash_ignores_duplicates_and_order():
    assert group_service.compute_members_hash([3, 1, 3, 2]) == group_service.compute_members_hash({1, 2, 3})


def test_members_hash_sorts_numerically_not_lexically():
    assert group_service.compute_members_hash([10, 9]) == hashlib.sha256(b"9,10").hexdigest()


# ── Lookups ────────────────────────────────────────────────────────────────

def test_get_group_or_404_raises_when_group_missing():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service.get_group_or_404(group_id=404, session=session)

    err = exc_info.value
    assert err.code == ErrorCode.GROUP_NOT_FOUND
    assert err.http_status == 404


def test_require_member_passes_when_membership_exists():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = object()

    group_service.require_member(group_id=1, user_id=10, session=session)

    session.execute.assert_called_once()


def test_require_member_raises_forbidden_when_missing():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service.require_member(group_id=1, user_id=999, session=session)

    err = exc_info.value
    assert err.code == ErrorCode.FORBIDDEN
    assert err.http_status == 403


def test_lock_group_missing_group():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service.lock_group(group_id=5, session=session)

    assert exc_info.value.code == ErrorCode.GROUP_NOT_FOUND


def test_list_groups_serializes_summaries():
    session = MagicMock()
    active = datetime(2026, 3, 1, tzinfo=timezone.utc)
    created = datetime(2026, 1, 1, tzinfo=timezone.utc)
    _mock_scalars_all(session, [
        SimpleNamespace(
            id=1, name="Trip", photo=None, owner_user_id=7,
            transaction_count=4, last_activity_time=active, created_at=created,
        ),
        SimpleNamespace(
            id=2, name="Rent", photo="p.png", owner_user_id=8,
            transaction_count=0, last_activity_time=None, created_at=created,
        ),
    ])

    result = group_service.list_groups(user_id=7, session=session)

    assert result == [
        {
            "id": 1, "name": "Trip", "photo": None, "owner_user_id": 7,
            "transaction_count": 4, "last_activity_time": active.isoformat(),
            "created_at": created.isoformat(),
        },
        {
            "id": 2, "name": "Rent", "photo": "p.png", "owner_user_id": 8,
            "transaction_count": 0, "last_activity_time": None,
            "created_at": created.isoformat(),
        },
    ]


# ── Membership changes ─────────────────────────────────────────────────────

def test_add_member_requires_owner():
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=1, owner_user_id=7)

    with pytest.raises(AppError) as exc_info:
        group_service.add_member(group_id=1, caller_id=8, target_user_id=9, session=session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN


def test_remove_other_member_as_non_owner_forbidden():
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=1, owner_user_id=7)

    with patch.object(group_service, "require_member"):
        with pytest.raises(AppError) as exc_info:
            group_service.remove_member(group_id=1, caller_id=8, target_user_id=9, session=session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    session.delete.assert_not_called()


def test_remove_member_with_open_balance_is_refused():
    session = MagicMock()
    group = SimpleNamespace(id=1, owner_user_id=7)
    session.get.return_value = group
    session.execute.return_value.scalar_one_or_none.return_value = object()

    with patch.object(group_service, "require_member"), \
            patch.object(group_service, "lock_group", return_value=group), \
            patch.object(group_service.ledger_service, "member_has_balance", return_value=True):
        with pytest.raises(AppError) as exc_info:
            group_service.remove_member(group_id=1, caller_id=7, target_user_id=9, session=session)

    assert exc_info.value.code == ErrorCode.MEMBER_HAS_OUTSTANDING_BALANCE
    assert exc_info.value.http_status == 409
    session.delete.assert_not_called()


def test_join_link_missing():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service.join_by_link("nope", caller_id=1, session=session)

    assert exc_info.value.code == ErrorCode.JOIN_LINK_NOT_FOUND
    assert exc_info.value.http_status == 404
