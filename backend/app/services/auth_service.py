"""
services/auth_service.py — Accounts, passwords and tokens.

Covers:
  - Registration and login (bcrypt password hashes, cost from BCRYPT_LOG_ROUNDS)
  - Access tokens: PyJWT, HS256, sub = user id as str, short TTL
  - Refresh tokens: random hex handed to the client once; only its SHA-256
    is stored. Logout revokes it. Refresh does not rotate it.

current_app.config is read for secrets and TTLs only. That is the one Flask
touchpoint in this module; everything else is plain session work.

Layer rules:
  - No imports from routes or schemas.
  - No flask.request / flask.g. Only flush; the route commits.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode
from backend.app.models.refresh_token import RefreshToken
from backend.app.models.user import User


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _create_access_token(user_id: int) -> str:
    """Signed JWT with sub, iat, exp and a random jti so two tokens never collide."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"],
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _create_refresh_token(user_id: int, session: Session) -> str:
    raw_token = secrets.token_hex(32)
    session.add(RefreshToken(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=datetime.now(timezone.utc) + current_app.config["JWT_REFRESH_TOKEN_EXPIRES"],
    ))
    session.flush()
    return raw_token


def _build_token_pair(user_id: int, session: Session) -> dict:
    return {
        "access_token": _create_access_token(user_id),
        "refresh_token": _create_refresh_token(user_id, session),
    }


def build_user_dict(user: User) -> dict:
    """Own-profile view of a user (includes email)."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "photo": user.photo,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _find_refresh_token(raw_refresh_token: str, session: Session) -> RefreshToken | None:
    return session.execute(
        select(RefreshToken).where(RefreshToken.token_hash == _hash_token(raw_refresh_token))
    ).scalar_one_or_none()


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        username: str,
        email: str,
        password: str,
        session: Session,
) -> dict:
    """
    Creates an account and signs the new user in.

    Raises:
      AppError(DUPLICATE_EMAIL, 409)
      AppError(DUPLICATE_USERNAME, 409)

    Returns: {"user": {...}, "access_token": "...", "refresh_token": "..."}
    """
    if session.execute(select(User.id).where(User.email == email)).first() is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    if session.execute(select(User.id).where(User.username == username)).first() is not None:
        raise AppError(
            ErrorCode.DUPLICATE_USERNAME,
            f"The username '{username}' is already taken.",
            409,
            field="username",
        )

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
    )
    session.add(user)
    session.flush()

    return {"user": build_user_dict(user), **_build_token_pair(user.id, session)}


def login_user(username: str, password: str, session: Session) -> dict:
    """
    Raises:
      AppError(INVALID_CREDENTIALS, 401) for an unknown username and for a
      wrong password alike, so usernames cannot be probed.
    """
    user = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()

    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The username or password is incorrect.",
            401,
        )

    return {"user": build_user_dict(user), **_build_token_pair(user.id, session)}


def refresh_access_token(raw_refresh_token: str, session: Session) -> dict:
    """
    Issues a new access token for a live refresh token.

    Raises:
      AppError(REFRESH_TOKEN_INVALID, 401) — unknown, revoked or expired.
    """
    record = _find_refresh_token(raw_refresh_token, session)
    now = datetime.now(timezone.utc)

    if record is None or record.revoked or _as_utc(record.expires_at) <= now:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid, expired, or has been revoked.",
            401,
        )

    return {"access_token": _create_access_token(record.user_id)}


def logout_user(raw_refresh_token: str, session: Session) -> None:
    """
    Revokes a refresh token. Outstanding access tokens stay valid until
    they expire.

    Raises:
      AppError(REFRESH_TOKEN_INVALID, 401) — unknown or already revoked.
    """
    record = _find_refresh_token(raw_refresh_token, session)

    if record is None or record.revoked:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid or has already been revoked.",
            401,
        )

    record.revoked = True
    session.flush()


def get_current_user(user_id: int, session: Session) -> dict:
    """
    Raises:
      AppError(USER_NOT_FOUND, 404) — the account behind a still-valid token is gone.
    """
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return build_user_dict(user)
