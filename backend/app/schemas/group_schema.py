"""
schemas/group_schema.py — Marshmallow schemas for group and membership endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - services/group_service.py: existence (GROUP_NOT_FOUND, USER_NOT_FOUND),
    membership and ownership (FORBIDDEN), ALREADY_MEMBER,
    MEMBER_HAS_OUTSTANDING_BALANCE.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from backend.app.schemas.transaction_schema import validate_non_empty_after_trim


class CreateGroupSchema(Schema):
    """
    POST /groups

    member_ids: other users to add right away; the creator is always added.
    deduplicate: when true (default), an existing group of the caller with
    exactly the same members is returned instead of a new one.
    """

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            validate_non_empty_after_trim,
        ],
    )
    photo = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=256))
    member_ids = fields.List(
        fields.Int(strict=True, validate=validate.Range(min=1)),
        load_default=list,
    )
    deduplicate = fields.Bool(load_default=True)


class AddMemberSchema(Schema):
    """POST /groups/:id/members. Ownership and existence are service checks."""

    user_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(
            min=1,
            error="user_id must be a positive integer.",
        ),
    )
