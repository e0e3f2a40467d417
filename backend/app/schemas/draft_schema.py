"""
schemas/draft_schema.py — Marshmallow schema for transaction drafts.

Drafts are deliberately loose: every field may be missing or null, and the
balances need not sum to zero. Types and precision are still checked so a
draft can always be published once it is complete.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from datetime import timezone

from marshmallow import Schema, fields, validate

from backend.app.schemas.transaction_schema import (
    BalanceInputSchema,
    TagInputSchema,
    validate_monetary_amount,
    validate_non_empty_after_trim,
)


class DraftSchema(Schema):
    """POST /drafts and PUT /drafts/:id (full replacement)."""

    group_id = fields.Int(strict=True, load_default=None, allow_none=True)
    name = fields.Str(
        load_default=None,
        allow_none=True,
        validate=[validate.Length(max=256), validate_non_empty_after_trim],
    )
    icon = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=256))
    amount = fields.Decimal(load_default=None, allow_none=True, validate=validate_monetary_amount)
    currency = fields.Str(load_default=None, allow_none=True)
    transaction_time = fields.AwareDateTime(
        default_timezone=timezone.utc,
        load_default=None,
        allow_none=True,
    )
    geo_coordinate = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=128))
    photo = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=256))
    tags = fields.List(fields.Nested(TagInputSchema), load_default=list)
    balances = fields.List(fields.Nested(BalanceInputSchema), load_default=list)
