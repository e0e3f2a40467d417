"""
schemas/transaction_schema.py — Marshmallow schemas for transaction endpoints.

Validation responsibility:
  - This file (400, request shape only):
      - Field types, lengths, decimal precision
      - Which split inputs go with which split_mode
      - SPLITS_SENT_FOR_EQUAL_MODE, DUPLICATE_SPLIT_USER, INVALID_SPLIT_MODE
  - services/split_service.py (422, needs arithmetic or the member list):
      - INVALID_CURRENCY, PAYER_NOT_MEMBER, BALANCE_USER_NOT_MEMBER,
        SPLIT_SUM_MISMATCH, BALANCE_SUM_NONZERO
  - services/transaction_service.py:
      - GROUP_REASSIGNMENT (422), version mismatch (409)

Split inputs per mode:
  direct  balances                          (signed, may repeat a user; merged)
  equal   paid_by_user_id, participant_ids? (no splits)
  custom  paid_by_user_id, splits           (positive owed amounts, unique users)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from datetime import timezone
from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from backend.app.errors import ErrorCode
from backend.app.models.transaction import MAX_MONEY, SplitMode


# ── Shared validators ──────────────────────────────────────────────────────

def validate_precision(value: Decimal) -> None:
    """
    At most 2 decimal places, and no larger than a money column holds.
    Extra digits are rejected, never rounded.
    """
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)
    if abs(value) > MAX_MONEY:
        raise ValidationError(f"Amount must be between -{MAX_MONEY} and {MAX_MONEY}.")


def validate_monetary_amount(value: Decimal) -> None:
    """Strictly positive, then the same checks as validate_precision()."""
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    validate_precision(value)


def validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _user_id_field(**kwargs) -> fields.Int:
    return fields.Int(
        strict=True,
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
        **kwargs,
    )


# ── Sub-schemas ────────────────────────────────────────────────────────────

class BalanceInputSchema(Schema):
    """One signed entry of a direct split. Positive = is owed, negative = owes."""

    user_id = _user_id_field(required=True)
    amount = fields.Decimal(required=True, validate=validate_precision)


class SplitInputSchema(Schema):
    """What one participant owes in a custom split."""

    user_id = _user_id_field(required=True)
    amount = fields.Decimal(required=True, validate=validate_monetary_amount)


class TagInputSchema(Schema):
    name = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=256), validate_non_empty_after_trim],
    )
    icon = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=256))


# ── Split shape rules ──────────────────────────────────────────────────────

def _reject(field: str, message: str) -> None:
    raise ValidationError({field: [message]})


def check_split_shape(data: dict, split_mode: SplitMode) -> None:
    """
    Request-shape rules for one split mode. Raises ValidationError (400).
    """
    balances = data.get("balances")
    splits = data.get("splits")
    paid_by = data.get("paid_by_user_id")
    participants = data.get("participant_ids")

    if split_mode == SplitMode.DIRECT:
        if not balances:
            _reject("balances", "balances is required when split_mode is 'direct'.")
        for name in ("splits", "paid_by_user_id", "participant_ids"):
            if data.get(name) is not None:
                _reject(name, f"{name} is not accepted when split_mode is 'direct'.")
        return

    if balances is not None:
        _reject("balances", "balances is only accepted when split_mode is 'direct'.")
    if paid_by is None:
        _reject("paid_by_user_id", f"paid_by_user_id is required when split_mode is '{split_mode.value}'.")

    if split_mode == SplitMode.EQUAL:
        if splits is not None:
            _reject("splits", ErrorCode.SPLITS_SENT_FOR_EQUAL_MODE)
        if participants is not None and not participants:
            _reject("participant_ids", "participant_ids must not be empty.")
        return

    # custom
    if participants is not None:
        _reject("participant_ids", "participant_ids is only accepted when split_mode is 'equal'.")
    if not splits:
        _reject("splits", "splits is required when split_mode is 'custom'.")
    user_ids = [s["user_id"] for s in splits]
    if len(user_ids) != len(set(user_ids)):
        _reject("splits", ErrorCode.DUPLICATE_SPLIT_USER)


# ── Create ─────────────────────────────────────────────────────────────────

class CreateTransactionSchema(Schema):
    """
    POST /groups/:id/transactions

    currency is taken as a plain string here; split_service checks the
    ISO pattern and answers INVALID_CURRENCY (422).
    """

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=256, error="Name must be between 1 and 256 characters."),
            validate_non_empty_after_trim,
        ],
    )
    icon = fields.Str(load_default="", validate=validate.Length(max=256))
    amount = fields.Decimal(required=True, validate=validate_monetary_amount)
    currency = fields.Str(required=True)

    split_mode = fields.Enum(
        SplitMode,
        load_default=SplitMode.DIRECT,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_MODE},
    )

    # Naive datetimes are taken as UTC. Defaults to now.
    transaction_time = fields.AwareDateTime(default_timezone=timezone.utc, load_default=None)
    geo_coordinate = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=128))
    photo = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=256))
    tags = fields.List(fields.Nested(TagInputSchema), load_default=list)

    balances = fields.List(fields.Nested(BalanceInputSchema), load_default=None)
    paid_by_user_id = _user_id_field(load_default=None)
    participant_ids = fields.List(_user_id_field(), load_default=None)
    splits = fields.List(fields.Nested(SplitInputSchema), load_default=None)

    @validates_schema
    def validate_split_shape(self, data: dict, **kwargs) -> None:
        check_split_shape(data, data.get("split_mode", SplitMode.DIRECT))


# ── Patch ──────────────────────────────────────────────────────────────────

class PatchTransactionSchema(Schema):
    """
    PATCH /transactions/:id

    Every field is optional; only provided keys reach the service.

    The split is all-or-nothing: send split_mode with that mode's inputs, or
    balances alone (taken as direct). split inputs without split_mode, other
    than balances, are rejected.

    group_id is accepted only so that a move to another group can be refused
    explicitly (GROUP_REASSIGNMENT). version is the value the client read.
    """

    group_id = fields.Int(strict=True)
    version = fields.Int(strict=True, validate=validate.Range(min=1))

    name = fields.Str(
        validate=[
            validate.Length(min=1, max=256, error="Name must be between 1 and 256 characters."),
            validate_non_empty_after_trim,
        ],
    )
    icon = fields.Str(validate=validate.Length(max=256))
    amount = fields.Decimal(validate=validate_monetary_amount)
    currency = fields.Str()

    split_mode = fields.Enum(
        SplitMode,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_MODE},
    )

    transaction_time = fields.AwareDateTime(default_timezone=timezone.utc)
    geo_coordinate = fields.Str(allow_none=True, validate=validate.Length(max=128))
    photo = fields.Str(allow_none=True, validate=validate.Length(max=256))
    tags = fields.List(fields.Nested(TagInputSchema))

    balances = fields.List(fields.Nested(BalanceInputSchema))
    paid_by_user_id = _user_id_field()
    participant_ids = fields.List(_user_id_field())
    splits = fields.List(fields.Nested(SplitInputSchema))

    @validates_schema
    def validate_split_shape(self, data: dict, **kwargs) -> None:
        split_mode = data.get("split_mode")
        if split_mode is None:
            for name in ("splits", "paid_by_user_id", "participant_ids"):
                if name in data:
                    _reject("split_mode", f"split_mode is required when {name} is sent.")
            if "balances" in data:
                check_split_shape(data, SplitMode.DIRECT)
            return
        check_split_shape(data, split_mode)


class DeleteTransactionSchema(Schema):
    """Optional body of DELETE /transactions/:id."""

    version = fields.Int(strict=True, validate=validate.Range(min=1), load_default=None)
