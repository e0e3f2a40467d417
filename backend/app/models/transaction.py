"""
models/transaction.py — Transaction table definition.

No business logic. No imports from services or routes.

Key design points:
  - `amount` is the display total (NUMERIC(12, 2), never Float). Who owes
    whom is carried entirely by the TransactionBalance rows, which sum to zero.
  - `currency` is a 3-letter ISO code. Changing it moves the transaction's
    ledger contribution from one currency to another (revert + re-apply).
  - `version_id` is the optimistic concurrency token. SQLAlchemy adds it to
    the WHERE clause of every UPDATE/DELETE and bumps it on UPDATE; a
    mismatch surfaces as StaleDataError at flush.
  - Deleting a transaction deletes the row; balances cascade with it.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.tag import transaction_tags

# Largest magnitude the NUMERIC(12, 2) money columns hold.
MAX_MONEY = Decimal("9999999999.99")


class SplitMode(str, enum.Enum):
    """How the caller described the split. Balances are always stored signed."""
    DIRECT = "direct"
    EQUAL  = "equal"
    CUSTOM = "custom"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'equal'), not names ('EQUAL')."""
    return [member.value for member in enum_cls]


class Transaction(db.Model):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_transactions_name_nonempty",
        ),
        CheckConstraint("LENGTH(currency) = 3", name="ck_transactions_currency_len"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    created_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(256), nullable=False)

    icon: Mapped[str] = mapped_column(
        String(256),
        nullable=False,
        default="",
        server_default="",
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    split_mode: Mapped[SplitMode] = mapped_column(
        Enum(
            SplitMode,
            name="split_mode_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=SplitMode.DIRECT,
    )

    transaction_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # "lat,lng" as entered by the client; not interpreted server-side.
    geo_coordinate: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Receipt image URL.
    photo: Mapped[str | None] = mapped_column(String(256), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="transactions",
    )

    balances: Mapped[list["TransactionBalance"]] = relationship(  # noqa: F821
        "TransactionBalance",
        back_populates="transaction",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TransactionBalance.user_id",
    )

    tags: Mapped[list["Tag"]] = relationship(  # noqa: F821
        "Tag",
        secondary=transaction_tags,
        order_by="Tag.name",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Transaction id={self.id} "
            f"group_id={self.group_id} "
            f"amount={self.amount} {self.currency}>"
        )
