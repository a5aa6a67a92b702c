"""
Module: burnwise_kernel.models.payment
Responsibility: ORM persistence for payments recorded against an
    installment, an unscheduled debt, or a project milestone.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A Payment row exists iff its effect is present in the related
      ledger entry's paid_amount (PaymentRecorder inserts after the ledger
      update and deletes after the reversal, in one transaction).
    - Payments are immutable once created; the only permitted change is
      deletion.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from burnwise_kernel.db.base import TrackedBase, UUIDString


class RelatedType(str, Enum):
    """What a payment settles."""

    INSTALLMENT = "installment"
    DEBT = "debt"
    MILESTONE = "milestone"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK = "bank"
    CARD = "card"
    OTHER = "other"


class Payment(TrackedBase):
    """
    A single payment.

    related_id is polymorphic (installments.id, debts.id or milestones.id
    depending on related_type), so it carries no foreign key; integrity is
    maintained by PaymentRecorder and by the cascade helpers in DebtService
    and ProjectService.
    """

    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("idx_payment_related", "related_type", "related_id"),
        Index("idx_payment_date", "payment_date"),
    )

    related_type: Mapped[RelatedType] = mapped_column(String(20), nullable=False)

    related_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    payment_date: Mapped[date] = mapped_column(nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    method: Mapped[PaymentMethod] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentMethod.BANK,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Payment {self.amount} {self.currency} -> "
            f"{self.related_type}:{self.related_id} on {self.payment_date}>"
        )
