"""
models/friend.py — Friend table definition.

A friendship is one-directional: (user_id, friend_user_id) means user_id has
friend_user_id in their list, with an optional private remark (nickname).
The reverse row is independent.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class Friend(db.Model):
    __tablename__ = "friends"

    __table_args__ = (
        CheckConstraint("user_id <> friend_user_id", name="ck_friends_not_self"),
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    friend_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    remark: Mapped[str | None] = mapped_column(String(256), nullable=True)

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="friends",
        foreign_keys=[user_id],
    )

    friend_user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[friend_user_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Friend user_id={self.user_id} friend_user_id={self.friend_user_id}>"
