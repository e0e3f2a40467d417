"""
schemas/user_schema.py — Marshmallow schemas for profile and friend endpoints.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from backend.app.schemas.auth_schema import USERNAME_VALIDATORS


class UpdateProfileSchema(Schema):
    """PATCH /users/me. Uniqueness of username is checked in user_service."""

    username = fields.Str(validate=USERNAME_VALIDATORS)
    photo = fields.Str(allow_none=True, validate=validate.Length(max=256))


class FriendRemarkSchema(Schema):
    """Body of POST and PATCH /users/me/friends/:id."""

    remark = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=256))
