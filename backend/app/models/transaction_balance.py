"""
models/transaction_balance.py — TransactionBalance table definition.

One row per participant of a transaction: the participant's signed net
contribution. amount > 0 means others owe this user on this transaction;
amount < 0 means this user owes. The rows of one transaction sum to zero;
split_service enforces that before anything is written.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class TransactionBalance(db.Model):
    __tablename__ = "transaction_balances"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"),
        primary_key=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    transaction: Mapped["Transaction"] = relationship(  # noqa: F821
        "Transaction",
        back_populates="balances",
    )

    user: Mapped["User"] = relationship("User")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<TransactionBalance transaction_id={self.transaction_id} "
            f"user_id={self.user_id} amount={self.amount}>"
        )
