"""
models/group.py — Group table definition.

No business logic. No imports from services or routes.

Denormalized columns:
  - members_id_hash: sha256 of the sorted member ids. group_service keeps it
    in step with every membership change and uses it to spot a group with the
    exact same members at creation time.
  - transaction_count / last_activity_time: best-effort counters for sorting
    and search, maintained by transaction_service. They may drift; nothing
    reads them for correctness.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class Group(db.Model):
    __tablename__ = "groups"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    photo: Mapped[str | None] = mapped_column(String(256), nullable=True)

    owner_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    members_id_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    transaction_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    last_activity_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    owner: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[owner_user_id],
    )

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="group",
    )

    transactions: Mapped[list["Transaction"]] = relationship(  # noqa: F821
        "Transaction",
        back_populates="group",
    )

    # Read-only from here. Ledger rows are written by ledger_service only.
    balances: Mapped[list["GroupBalance"]] = relationship(  # noqa: F821
        "GroupBalance",
        back_populates="group",
        viewonly=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r}>"
