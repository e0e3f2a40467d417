"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats, regex patterns.
  - services/auth_service.py: DUPLICATE_EMAIL / DUPLICATE_USERNAME (need a DB lookup).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           ma.Schema needs an app context and would break the unit tests.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates


# Shared with user_schema.UpdateProfileSchema.
USERNAME_VALIDATORS = [
    validate.Length(
        min=3,
        max=50,
        error="Username must be between 3 and 50 characters.",
    ),
    validate.Regexp(
        r"^[a-zA-Z0-9_]+$",
        error="Username may only contain letters, numbers, and underscores.",
    ),
]


class RegisterSchema(Schema):
    """
    POST /auth/register

      username : 3–50 chars, letters, digits and underscore
      email    : valid email, max 255 chars
      password : min 8 chars, at least one letter and one digit
    """

    username = fields.Str(required=True, validate=USERNAME_VALIDATORS)

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    password = fields.Str(required=True, load_only=True)

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")
        if not any(c.isalpha() for c in value):
            raise ValidationError("Password must contain at least one letter.")
        if not any(c.isdigit() for c in value):
            raise ValidationError("Password must contain at least one digit.")


class LoginSchema(Schema):
    """POST /auth/login. Username + password; correctness is a service check."""

    username = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class RefreshTokenSchema(Schema):
    """POST /auth/refresh and POST /auth/logout."""

    refresh_token = fields.Str(required=True)
