"""
middleware/auth_middleware.py — Bearer-token authentication for routes.

@require_auth resolves the caller from the Authorization header and stores
the id on flask.g.user_id before the view runs. It answers only "who is
calling" (401). Whether that caller may touch a group, transaction or draft
is decided by the services (403), which receive the id as a plain int.

Failures:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — not "Bearer <jwt>", bad signature, bad sub claim
  TOKEN_EXPIRED  (401) — signature fine, exp in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from backend.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """Route decorator: sets g.user_id or raises AppError (401)."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        g.user_id = _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Send 'Authorization: Bearer <token>'.",
            401,
        )

    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must look like 'Bearer <token>'.",
            401,
        )
    return token


def _decode(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "Access token expired. Exchange your refresh token at POST /auth/refresh.",
            401,
        )
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Access token could not be verified.",
            401,
        )


def _authenticate_request() -> int:
    """
    Returns the authenticated user id.

    Kept apart from the decorator so tests can call it inside a request
    context without a view function.
    """
    payload = _decode(_bearer_token())

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Access token carries no usable 'sub' claim.",
            401,
        )
