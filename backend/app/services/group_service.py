"""
services/group_service.py — Group, membership and join-link business logic.

Authorization rules:
  - Reading a group, creating a join link: any member
  - Adding a member:   group owner only
  - Removing a member: group owner may remove anyone; a member may remove self
  - Joining by link:   any authenticated user holding the link

Membership invariants kept here:
  - members_id_hash always reflects the current member set
    (sha256 of the sorted ids joined by ","). Every path that adds or removes
    a Membership calls _refresh_members_hash().
  - A member who still appears in any ledger row of the group cannot be
    removed (MEMBER_HAS_OUTSTANDING_BALANCE, 409). Their transactions would
    otherwise reference a non-member.

Shared helpers (get_group_or_404, require_member, get_member_ids, lock_group)
are used by transaction_service, ledger_service and draft_service too.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import hashlib
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode
from backend.app.models.group import Group
from backend.app.models.group_join_link import GroupJoinLink
from backend.app.models.membership import Membership
from backend.app.models.user import User
from backend.app.services import ledger_service


# ── Shared helpers ─────────────────────────────────────────────────────────

def get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def is_member(group_id: int, user_id: int, session: Session) -> bool:
    membership = session.execute(
        select(Membership).where(
            Membership.group_id == group_id,
            Membership.user_id == user_id,
        )
    ).scalar_one_or_none()
    return membership is not None


def require_member(group_id: int, user_id: int, session: Session) -> None:
    """
    Raises FORBIDDEN (403) if user_id is not a member of group_id.
    Non-members receive 403, not 404.
    """
    if not is_member(group_id, user_id, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group_id}.",
            403,
        )


def get_member_ids(group_id: int, session: Session) -> list[int]:
    """Returns the user_ids of all current members of a group."""
    stmt = select(Membership.user_id).where(Membership.group_id == group_id)
    return list(session.execute(stmt).scalars().all())


def lock_group(group_id: int, session: Session) -> Group:
    """
    Takes the group row lock (SELECT ... FOR UPDATE) for the rest of the
    current database transaction.

    Every ledger-touching unit of work calls this first, so mutations of the
    same group run one after another while different groups proceed in
    parallel. Dialects without row locks (SQLite) ignore FOR UPDATE.
    """
    group = session.execute(
        select(Group)
        .where(Group.id == group_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def compute_members_hash(member_ids) -> str:
    """sha256 hex of the sorted, de-duplicated member ids joined by ','."""
    joined = ",".join(str(uid) for uid in sorted(set(member_ids)))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def _refresh_members_hash(group: Group, session: Session) -> None:
    session.flush()
    group.members_id_hash = compute_members_hash(get_member_ids(group.id, session))
    session.flush()


def _get_members(group_id: int, session: Session) -> list[User]:
    stmt = (
        select(User)
        .join(Membership, User.id == Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.joined_at.asc(), User.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def _iso(value):
    return value.isoformat() if value is not None else None


def _build_group_summary(group: Group) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "photo": group.photo,
        "owner_user_id": group.owner_user_id,
        "transaction_count": group.transaction_count,
        "last_activity_time": _iso(group.last_activity_time),
        "created_at": _iso(group.created_at),
    }


def _build_group_dict(group: Group, members: list[User]) -> dict:
    """Serialises a Group with its member list to a plain dict."""
    payload = _build_group_summary(group)
    payload["members"] = [
        {
            "id": m.id,
            "username": m.username,
            "photo": m.photo,
        }
        for m in members
    ]
    return payload


# ── Groups ─────────────────────────────────────────────────────────────────

def create_group(
        name: str,
        owner_id: int,
        session: Session,
        photo: str | None = None,
        member_ids: list[int] | None = None,
        deduplicate: bool = True,
) -> tuple[dict, bool]:
    """
    Creates a new group. The creator becomes the owner and a member; any
    member_ids are added alongside.

    With deduplicate=True, a group the caller already belongs to with the
    exact same member set is returned instead of creating a twin.

    Raises:
      AppError(USER_NOT_FOUND, 404) — a member id does not exist

    Returns: (group dict, created) where created is False for a dedup hit.
    """
    all_ids = sorted(set(member_ids or []) | {owner_id})

    found = set(session.execute(
        select(User.id).where(User.id.in_(all_ids))
    ).scalars().all())
    for uid in all_ids:
        if uid not in found:
            raise AppError(
                ErrorCode.USER_NOT_FOUND,
                f"User {uid} does not exist.",
                404,
                field="member_ids",
            )

    members_hash = compute_members_hash(all_ids)

    if deduplicate:
        existing = session.execute(
            select(Group)
            .join(Membership, Group.id == Membership.group_id)
            .where(
                Group.members_id_hash == members_hash,
                Membership.user_id == owner_id,
            )
            .order_by(Group.id.asc())
            .limit(1)
        ).scalar_one_or_none()
        if existing is not None:
            return _build_group_dict(existing, _get_members(existing.id, session)), False

    group = Group(
        name=name,
        photo=photo,
        owner_user_id=owner_id,
        members_id_hash=members_hash,
    )
    session.add(group)
    session.flush()  # populate group.id before creating memberships

    for uid in all_ids:
        session.add(Membership(user_id=uid, group_id=group.id))
    session.flush()

    return _build_group_dict(group, _get_members(group.id, session)), True


def list_groups(user_id: int, session: Session, q: str | None = None) -> list[dict]:
    """
    Returns all groups the user is a member of, most recently active first.
    Groups without activity sort after active ones, newest first.

    q: optional case-insensitive substring filter on the group name.
    """
    stmt = (
        select(Group)
        .join(Membership, Group.id == Membership.group_id)
        .where(Membership.user_id == user_id)
    )
    if q:
        stmt = stmt.where(Group.name.icontains(q, autoescape=True))

    stmt = stmt.order_by(
        Group.last_activity_time.is_(None),
        Group.last_activity_time.desc(),
        Group.created_at.desc(),
        Group.id.desc(),
    )
    groups = session.execute(stmt).scalars().all()
    return [_build_group_summary(g) for g in groups]


def get_group(group_id: int, caller_id: int, session: Session) -> dict:
    """
    Returns full group details including current member list.
    Caller must be a member (FORBIDDEN 403, not 404).
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return _build_group_dict(group, _get_members(group_id, session))


# ── Membership ─────────────────────────────────────────────────────────────

def add_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
) -> dict:
    """
    Adds a user to a group. Only the group owner may call this.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)  — group does not exist
      AppError(FORBIDDEN, 403)        — caller is not the group owner
      AppError(USER_NOT_FOUND, 404)   — target user does not exist
      AppError(ALREADY_MEMBER, 409)   — user is already in the group
    """
    group = get_group_or_404(group_id, session)

    if caller_id != group.owner_user_id:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the group owner may add members.",
            403,
        )

    target_user = session.get(User, target_user_id)
    if target_user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} does not exist.",
            404,
        )

    if is_member(group_id, target_user_id, session):
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"User {target_user_id} is already a member of group {group_id}.",
            409,
        )

    group = lock_group(group_id, session)
    membership = Membership(user_id=target_user_id, group_id=group_id)
    session.add(membership)
    _refresh_members_hash(group, session)

    return {
        "group_id": group_id,
        "user_id": target_user_id,
        "username": target_user.username,
        "joined_at": _iso(membership.joined_at),
    }


def remove_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
) -> None:
    """
    Removes a user from a group.

    Authorization:
      - The group owner may remove any member (including themselves).
      - Any member may remove themselves.
      - A non-owner may not remove another member (FORBIDDEN, 403).

    Raises:
      AppError(GROUP_NOT_FOUND, 404)                 — group does not exist
      AppError(FORBIDDEN, 403)                       — caller not authorised
      AppError(USER_NOT_FOUND, 404)                  — target is not a member
      AppError(MEMBER_HAS_OUTSTANDING_BALANCE, 409)  — target still owes or is owed
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    is_owner = (caller_id == group.owner_user_id)
    is_self = (caller_id == target_user_id)

    if not (is_owner or is_self):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "You may only remove yourself from a group unless you are the owner.",
            403,
        )

    group = lock_group(group_id, session)

    membership = session.execute(
        select(Membership).where(
            Membership.group_id == group_id,
            Membership.user_id == target_user_id,
        )
    ).scalar_one_or_none()

    if membership is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} is not a member of group {group_id}.",
            404,
        )

    if ledger_service.member_has_balance(group_id, target_user_id, session):
        raise AppError(
            ErrorCode.MEMBER_HAS_OUTSTANDING_BALANCE,
            f"User {target_user_id} still has unsettled balances in group {group_id}.",
            409,
        )

    session.delete(membership)
    _refresh_members_hash(group, session)


# ── Join links ─────────────────────────────────────────────────────────────

def _get_join_link_or_404(link_id: str, session: Session) -> GroupJoinLink:
    link = session.get(GroupJoinLink, link_id)
    if link is None:
        raise AppError(
            ErrorCode.JOIN_LINK_NOT_FOUND,
            "This join link does not exist.",
            404,
        )
    return link


def create_join_link(group_id: int, caller_id: int, session: Session) -> dict:
    """Creates a join link for a group. Any member may do this."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    link = GroupJoinLink(
        id=uuid.uuid4().hex,
        group_id=group_id,
        created_by_user_id=caller_id,
    )
    session.add(link)
    session.flush()

    return {
        "id": link.id,
        "group_id": group_id,
        "created_by_user_id": caller_id,
        "created_at": _iso(link.created_at),
    }


def get_join_link_info(link_id: str, session: Session) -> dict:
    """Group summary shown before joining. Does not require membership."""
    link = _get_join_link_or_404(link_id, session)
    group = get_group_or_404(link.group_id, session)
    summary = _build_group_summary(group)
    summary["member_count"] = len(get_member_ids(group.id, session))
    return summary


def join_by_link(link_id: str, caller_id: int, session: Session) -> dict:
    """
    Adds the caller to the link's group. Joining a group one already belongs
    to is a no-op that returns the group.
    """
    link = _get_join_link_or_404(link_id, session)
    group = lock_group(link.group_id, session)

    if not is_member(group.id, caller_id, session):
        session.add(Membership(user_id=caller_id, group_id=group.id))
        _refresh_members_hash(group, session)

    return _build_group_dict(group, _get_members(group.id, session))
