"""
models/group_join_link.py — GroupJoinLink table definition.

A join link is an unguessable token that lets any authenticated user add
themselves to a group. Links do not expire.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class GroupJoinLink(db.Model):
    __tablename__ = "group_join_links"

    # uuid4 hex, generated by group_service.
    id: Mapped[str] = mapped_column(String(32), primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    group: Mapped["Group"] = relationship("Group")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return f"<GroupJoinLink id={self.id} group_id={self.group_id}>"
