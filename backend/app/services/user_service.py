"""
services/user_service.py — Profiles and friend lists.

Friendships are one-directional: adding B to A's list does not put A on B's.
Each entry carries an optional private remark (a nickname only A sees).

Rules:
  - Adding yourself is SELF_FRIEND (422).
  - Adding someone already on the list is not an error; the remark is
    updated if one is given.
  - Updating or removing someone not on the list is FRIEND_NOT_FOUND (404).

Layer rules:
  - No Flask imports. Only flush; the route commits.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode
from backend.app.models.friend import Friend
from backend.app.models.user import User
from backend.app.services.auth_service import build_user_dict


def _get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return user


def build_public_user_dict(user: User) -> dict:
    """What other users may see. No email."""
    return {
        "id": user.id,
        "username": user.username,
        "photo": user.photo,
    }


def _build_friend_dict(friend: Friend) -> dict:
    payload = build_public_user_dict(friend.friend_user)
    payload["remark"] = friend.remark
    return payload


# ── Profile ────────────────────────────────────────────────────────────────

def update_profile(user_id: int, data: dict, session: Session) -> dict:
    """
    Changes username and/or photo.

    Raises:
      AppError(DUPLICATE_USERNAME, 409)
    """
    user = _get_user_or_404(user_id, session)

    new_username = data.get("username")
    if new_username is not None and new_username != user.username:
        taken = session.execute(
            select(User.id).where(User.username == new_username, User.id != user_id)
        ).first()
        if taken is not None:
            raise AppError(
                ErrorCode.DUPLICATE_USERNAME,
                f"The username '{new_username}' is already taken.",
                409,
                field="username",
            )
        user.username = new_username

    if "photo" in data:
        user.photo = data["photo"]

    session.flush()
    return build_user_dict(user)


def get_user_by_username(username: str, session: Session) -> dict:
    user = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User '{username}' not found.",
            404,
        )
    return build_public_user_dict(user)


# ── Friends ────────────────────────────────────────────────────────────────

def _get_friend(user_id: int, friend_user_id: int, session: Session) -> Friend | None:
    return session.get(Friend, {"user_id": user_id, "friend_user_id": friend_user_id})


def list_friends(user_id: int, session: Session) -> list[dict]:
    """The caller's friend list, alphabetical by username."""
    stmt = (
        select(Friend)
        .join(User, User.id == Friend.friend_user_id)
        .where(Friend.user_id == user_id)
        .order_by(User.username.asc())
    )
    return [_build_friend_dict(f) for f in session.execute(stmt).scalars().all()]


def add_friend(
        user_id: int,
        friend_user_id: int,
        session: Session,
        remark: str | None = None,
) -> tuple[dict, bool]:
    """
    Returns: (friend dict, created) — created is False if already a friend.

    Raises:
      AppError(SELF_FRIEND, 422)
      AppError(USER_NOT_FOUND, 404)
    """
    if user_id == friend_user_id:
        raise AppError(
            ErrorCode.SELF_FRIEND,
            "You cannot add yourself as a friend.",
            422,
        )
    _get_user_or_404(friend_user_id, session)

    friend = _get_friend(user_id, friend_user_id, session)
    created = friend is None
    if created:
        friend = Friend(user_id=user_id, friend_user_id=friend_user_id, remark=remark)
        session.add(friend)
    elif remark is not None:
        friend.remark = remark

    session.flush()
    return _build_friend_dict(friend), created


def update_friend_remark(
        user_id: int,
        friend_user_id: int,
        remark: str | None,
        session: Session,
) -> dict:
    friend = _get_friend(user_id, friend_user_id, session)
    if friend is None:
        raise AppError(
            ErrorCode.FRIEND_NOT_FOUND,
            f"User {friend_user_id} is not in your friend list.",
            404,
        )
    friend.remark = remark
    session.flush()
    return _build_friend_dict(friend)


def remove_friend(user_id: int, friend_user_id: int, session: Session) -> None:
    friend = _get_friend(user_id, friend_user_id, session)
    if friend is None:
        raise AppError(
            ErrorCode.FRIEND_NOT_FOUND,
            f"User {friend_user_id} is not in your friend list.",
            404,
        )
    session.delete(friend)
    session.flush()
