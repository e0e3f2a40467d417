"""
models/tag.py — Tag table and its association tables.

Tags are shared across users and groups and looked up by name
(transaction_service gets-or-creates them). A tag is never deleted when the
last transaction using it goes away.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, String, Table
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.extensions import db


transaction_tags = Table(
    "transaction_tags",
    db.metadata,
    Column("transaction_id", ForeignKey("transactions.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

draft_tags = Table(
    "draft_tags",
    db.metadata,
    Column("draft_id", ForeignKey("transaction_drafts.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Tag(db.Model):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)

    icon: Mapped[str | None] = mapped_column(String(256), nullable=True)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Tag id={self.id} name={self.name!r}>"
