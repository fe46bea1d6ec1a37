"""
models/split.py — Split table definition.

One row per (expense, participant): the share of the expense owed by that
participant. A zero share is allowed (member listed on the expense but
excused from paying).

sum(splits.amount) == expense.amount is established by whoever writes
expenses. The balance service does not enforce it; it reports violations
(services/balance_validator.py).
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from divvy.app.extensions import db


class Split(db.Model):
    __tablename__ = "splits"

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
        CheckConstraint("amount >= 0", name="ck_splits_amount_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="splits",
    )

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="splits",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Split id={self.id} "
            f"expense_id={self.expense_id} "
            f"user_id={self.user_id} "
            f"amount={self.amount}>"
        )
