"""
models/transaction_draft.py — TransactionDraft and TransactionDraftBalance.

A draft is a private, half-filled transaction owned by one user. Every field
is optional and drafts never touch the ledger. draft_service.publish_draft()
turns a complete draft into a real transaction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.tag import draft_tags


class TransactionDraft(db.Model):
    __tablename__ = "transaction_drafts"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    group_id: Mapped[int | None] = mapped_column(
        ForeignKey("groups.id", ondelete="SET NULL"),
        nullable=True,
    )

    name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(256), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    transaction_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    geo_coordinate: Mapped[str | None] = mapped_column(String(128), nullable=True)
    photo: Mapped[str | None] = mapped_column(String(256), nullable=True)

    balances: Mapped[list["TransactionDraftBalance"]] = relationship(
        "TransactionDraftBalance",
        back_populates="draft",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TransactionDraftBalance.user_id",
    )

    tags: Mapped[list["Tag"]] = relationship(  # noqa: F821
        "Tag",
        secondary=draft_tags,
        order_by="Tag.name",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<TransactionDraft id={self.id} user_id={self.user_id}>"


class TransactionDraftBalance(db.Model):
    __tablename__ = "transaction_draft_balances"

    draft_id: Mapped[int] = mapped_column(
        ForeignKey("transaction_drafts.id", ondelete="CASCADE"),
        primary_key=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    draft: Mapped["TransactionDraft"] = relationship(
        "TransactionDraft",
        back_populates="balances",
    )
