"""
models/group_balance.py — GroupBalance (ledger row) table definition.

The ledger is a materialized view over a group's transactions. It is written
by services/ledger_service.py and nothing else.

Canonical form:
  - One row per unordered pair per currency, stored with user_id < friend_user_id.
  - balance > 0: friend_user_id owes user_id that much.
    balance < 0: user_id owes friend_user_id the absolute value.
  - A pair that nets to zero has no row.

Both rules are also CHECK constraints so a bad write fails loudly.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class GroupBalance(db.Model):
    __tablename__ = "group_balances"

    __table_args__ = (
        CheckConstraint("user_id < friend_user_id", name="ck_group_balances_canonical_pair"),
        CheckConstraint("balance <> 0", name="ck_group_balances_nonzero"),
    )

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        primary_key=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    friend_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    currency: Mapped[str] = mapped_column(String(3), primary_key=True)

    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="balances",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<GroupBalance group_id={self.group_id} "
            f"{self.user_id}<->{self.friend_user_id} "
            f"{self.balance} {self.currency}>"
        )
