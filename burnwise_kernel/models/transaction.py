"""
Module: burnwise_kernel.models.transaction
Responsibility: ORM persistence for income and expense transactions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced (by TransactionService, mirrored as CHECKs):
    - amount > 0; rates are percentages in [0, 100].
    - vat_amount, withholding_amount and net_amount are derived from
      (type, amount, vat_rate, withholding_rate) and never edited directly.
    - Deleting the referenced party, project or milestone clears the
      reference; the transaction stays.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from burnwise_kernel.db.base import TrackedBase, UUIDString


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Transaction(TrackedBase):
    """
    A single income or expense.

    Contract:
        Valued in the base currency at ``transaction_date`` by
        TransactionAggregator; the stored amounts stay in ``currency``.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        CheckConstraint("vat_rate >= 0 AND vat_rate <= 100", name="ck_transaction_vat_rate_range"),
        CheckConstraint(
            "withholding_rate >= 0 AND withholding_rate <= 100",
            name="ck_transaction_withholding_rate_range",
        ),
        Index("idx_transaction_date", "transaction_date"),
        Index("idx_transaction_type", "transaction_type"),
        Index("idx_transaction_project", "project_id"),
        Index("idx_transaction_party", "party_id"),
    )

    transaction_type: Mapped[TransactionType] = mapped_column(String(20), nullable=False)

    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("parties.id", ondelete="SET NULL"),
        nullable=True,
    )

    project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )

    milestone_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("milestones.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Free-form bookkeeping category, e.g. "salaries" or "hosting"
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    vat_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    vat_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    withholding_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    withholding_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    net_amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    ref_no: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_type} {self.net_amount} {self.currency} "
            f"on {self.transaction_date}>"
        )
