"""
tests/unit/test_validation_schemas.py — Unit tests for the marshmallow schemas.

What this file proves:
  - Every schema accepts valid input without raising
  - Field rules (type, length, enum, decimal precision) are enforced here
  - Split shape per mode is a schema concern (400); split arithmetic and
    membership are not tested here, they belong to split_service (422)
  - Error codes raised as messages match the constants in errors.py

Schemas inherit from marshmallow.Schema directly, so no application context
is needed.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from marshmallow import ValidationError

from backend.app.errors import ErrorCode
from backend.app.models.transaction import SplitMode
from backend.app.schemas.auth_schema import LoginSchema, RefreshTokenSchema, RegisterSchema
from backend.app.schemas.draft_schema import DraftSchema
from backend.app.schemas.group_schema import AddMemberSchema, CreateGroupSchema
from backend.app.schemas.transaction_schema import (
    CreateTransactionSchema,
    DeleteTransactionSchema,
    PatchTransactionSchema,
)
from backend.app.schemas.user_schema import FriendRemarkSchema, UpdateProfileSchema


def _messages(exc_info, field: str) -> list:
    return exc_info.value.messages[field]


# ═══════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════

class TestRegisterSchema:

    def _load(self, **overrides):
        data = {"username": "alice_99", "email": "alice@example.com", "password": "Secure123"}
        data.update(overrides)
        return RegisterSchema().load(data)

    def test_valid_payload(self):
        result = self._load()
        assert result["username"] == "alice_99"
        assert result["email"] == "alice@example.com"

    @pytest.mark.parametrize("username", ["ab", "a" * 51, "alice!", "al ice"])
    def test_bad_usernames(self, username):
        with pytest.raises(ValidationError) as exc:
            self._load(username=username)
        assert "username" in exc.value.messages

    def test_bad_email(self):
        with pytest.raises(ValidationError) as exc:
            self._load(email="not-an-email")
        assert "email" in exc.value.messages

    @pytest.mark.parametrize("password", ["Short1", "NoDigitsHere", "1234567890"])
    def test_weak_passwords(self, password):
        with pytest.raises(ValidationError) as exc:
            self._load(password=password)
        assert "password" in exc.value.messages

    def test_missing_everything(self):
        with pytest.raises(ValidationError) as exc:
            RegisterSchema().load({})
        assert set(exc.value.messages) == {"username", "email", "password"}


class TestLoginAndRefresh:

    def test_login_requires_both_fields(self):
        with pytest.raises(ValidationError) as exc:
            LoginSchema().load({"username": "alice"})
        assert "password" in exc.value.messages

    def test_refresh_token_required(self):
        with pytest.raises(ValidationError):
            RefreshTokenSchema().load({})


# ═══════════════════════════════════════════════════════════════════════════
# Groups and users
# ═══════════════════════════════════════════════════════════════════════════

class TestGroupSchemas:

    def test_defaults(self):
        result = CreateGroupSchema().load({"name": "Trip"})
        assert result == {"name": "Trip", "photo": None, "member_ids": [], "deduplicate": True}

    def test_whitespace_name_rejected(self):
        with pytest.raises(ValidationError) as exc:
            CreateGroupSchema().load({"name": "   "})
        assert "name" in exc.value.messages

    def test_member_ids_must_be_positive_ints(self):
        with pytest.raises(ValidationError) as exc:
            CreateGroupSchema().load({"name": "Trip", "member_ids": [1, 0]})
        assert "member_ids" in exc.value.messages

    def test_add_member_rejects_string_id(self):
        with pytest.raises(ValidationError) as exc:
            AddMemberSchema().load({"user_id": "5"})
        assert "user_id" in exc.value.messages


class TestUserSchemas:

    def test_profile_fields_are_optional(self):
        assert UpdateProfileSchema().load({}) == {}

    def test_profile_username_rules_match_registration(self):
        with pytest.raises(ValidationError) as exc:
            UpdateProfileSchema().load({"username": "x"})
        assert "username" in exc.value.messages

    def test_remark_defaults_to_none(self):
        assert FriendRemarkSchema().load({}) == {"remark": None}


# ═══════════════════════════════════════════════════════════════════════════
# Transactions
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateTransactionSchema:

    def _load(self, **overrides):
        data = {
            "name": "Dinner",
            "amount": "30.00",
            "currency": "USD",
            "balances": [{"user_id": 1, "amount": "30.00"}, {"user_id": 2, "amount": "-30.00"}],
        }
        data.update(overrides)
        return CreateTransactionSchema().load(data)

    def test_direct_is_the_default_mode(self):
        result = self._load()
        assert result["split_mode"] == SplitMode.DIRECT
        assert result["amount"] == Decimal("30.00")
        assert isinstance(result["balances"][0]["amount"], Decimal)
        assert result["icon"] == ""
        assert result["tags"] == []

    def test_amount_precision(self):
        with pytest.raises(ValidationError) as exc:
            self._load(amount="10.001")
        assert _messages(exc, "amount") == [ErrorCode.INVALID_AMOUNT_PRECISION]

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValidationError) as exc:
            self._load(amount=amount)
        assert "amount" in exc.value.messages

    @pytest.mark.parametrize("amount", ["1E+12", "10000000000.00"])
    def test_amount_beyond_money_column(self, amount):
        with pytest.raises(ValidationError) as exc:
            self._load(amount=amount)
        assert "amount" in exc.value.messages

    def test_largest_amount_accepted(self):
        result = self._load(amount="9999999999.99")
        assert result["amount"] == Decimal("9999999999.99")

    def test_balance_beyond_money_column(self):
        with pytest.raises(ValidationError) as exc:
            self._load(balances=[{"user_id": 2, "amount": "-10000000000.00"}])
        assert "balances" in exc.value.messages

    def test_balance_precision(self):
        with pytest.raises(ValidationError) as exc:
            self._load(balances=[{"user_id": 1, "amount": "0.005"}])
        assert "balances" in exc.value.messages

    def test_negative_balances_are_fine(self):
        result = self._load(balances=[{"user_id": 2, "amount": "-1.50"}])
        assert result["balances"][0]["amount"] == Decimal("-1.50")

    def test_unknown_split_mode(self):
        with pytest.raises(ValidationError) as exc:
            self._load(split_mode="shares")
        assert _messages(exc, "split_mode") == [ErrorCode.INVALID_SPLIT_MODE]

    def test_direct_requires_balances(self):
        with pytest.raises(ValidationError) as exc:
            self._load(balances=None)
        assert "balances" in exc.value.messages

    def test_direct_rejects_payer(self):
        with pytest.raises(ValidationError) as exc:
            self._load(paid_by_user_id=1)
        assert "paid_by_user_id" in exc.value.messages

    def test_equal_mode(self):
        result = self._load(split_mode="equal", balances=None, paid_by_user_id=1, participant_ids=[1, 2])
        assert result["split_mode"] == SplitMode.EQUAL
        assert result["participant_ids"] == [1, 2]

    def test_equal_requires_payer(self):
        with pytest.raises(ValidationError) as exc:
            self._load(split_mode="equal", balances=None)
        assert "paid_by_user_id" in exc.value.messages

    def test_equal_rejects_splits(self):
        with pytest.raises(ValidationError) as exc:
            self._load(
                split_mode="equal", balances=None, paid_by_user_id=1,
                splits=[{"user_id": 1, "amount": "30.00"}],
            )
        assert _messages(exc, "splits") == [ErrorCode.SPLITS_SENT_FOR_EQUAL_MODE]

    def test_equal_rejects_empty_participants(self):
        with pytest.raises(ValidationError) as exc:
            self._load(split_mode="equal", balances=None, paid_by_user_id=1, participant_ids=[])
        assert "participant_ids" in exc.value.messages

    def test_custom_mode(self):
        result = self._load(
            split_mode="custom", balances=None, paid_by_user_id=1,
            splits=[{"user_id": 1, "amount": "10.00"}, {"user_id": 2, "amount": "20.00"}],
        )
        assert [s["amount"] for s in result["splits"]] == [Decimal("10.00"), Decimal("20.00")]

    def test_custom_duplicate_user(self):
        with pytest.raises(ValidationError) as exc:
            self._load(
                split_mode="custom", balances=None, paid_by_user_id=1,
                splits=[{"user_id": 2, "amount": "10.00"}, {"user_id": 2, "amount": "20.00"}],
            )
        assert _messages(exc, "splits") == [ErrorCode.DUPLICATE_SPLIT_USER]

    def test_custom_split_amounts_must_be_positive(self):
        with pytest.raises(ValidationError) as exc:
            self._load(
                split_mode="custom", balances=None, paid_by_user_id=1,
                splits=[{"user_id": 2, "amount": "-10.00"}],
            )
        assert "splits" in exc.value.messages

    def test_naive_time_is_taken_as_utc(self):
        result = self._load(transaction_time="2026-02-01T12:00:00")
        assert result["transaction_time"].utcoffset().total_seconds() == 0

    def test_blank_tag_name(self):
        with pytest.raises(ValidationError) as exc:
            self._load(tags=[{"name": " "}])
        assert "tags" in exc.value.messages


class TestPatchTransactionSchema:

    def test_empty_patch(self):
        assert PatchTransactionSchema().load({}) == {}

    def test_only_given_keys_come_through(self):
        assert PatchTransactionSchema().load({"name": "Lunch", "version": 2}) == {"name": "Lunch", "version": 2}

    def test_balances_alone_are_direct(self):
        result = PatchTransactionSchema().load({"balances": [{"user_id": 1, "amount": "1.00"}]})
        assert "split_mode" not in result

    def test_split_inputs_without_mode(self):
        with pytest.raises(ValidationError) as exc:
            PatchTransactionSchema().load({"paid_by_user_id": 1})
        assert "split_mode" in exc.value.messages

    def test_mode_with_its_inputs(self):
        result = PatchTransactionSchema().load({"split_mode": "equal", "paid_by_user_id": 3})
        assert result["split_mode"] == SplitMode.EQUAL

    def test_version_must_be_positive(self):
        with pytest.raises(ValidationError):
            PatchTransactionSchema().load({"version": 0})

    def test_delete_body_version_optional(self):
        assert DeleteTransactionSchema().load({}) == {"version": None}


class TestDraftSchema:

    def test_everything_optional(self):
        result = DraftSchema().load({})
        assert result["group_id"] is None
        assert result["balances"] == []

    def test_unbalanced_balances_are_accepted(self):
        result = DraftSchema().load({"balances": [{"user_id": 1, "amount": "3.00"}]})
        assert result["balances"][0]["amount"] == Decimal("3.00")

    def test_precision_still_checked(self):
        with pytest.raises(ValidationError) as exc:
            DraftSchema().load({"amount": "1.999"})
        assert _messages(exc, "amount") == [ErrorCode.INVALID_AMOUNT_PRECISION]

    @pytest.mark.parametrize("name", ["", "   ", "\n"])
    def test_blank_name_rejected(self, name):
        with pytest.raises(ValidationError) as exc:
            DraftSchema().load({"name": name})
        assert "name" in exc.value.messages

    def test_null_name_allowed(self):
        assert DraftSchema().load({"name": None})["name"] is None
