"""
Module: burnwise_kernel.models.debt
Responsibility: ORM persistence for debts/receivables and their installment
    schedules.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/settlement.py (for the status enum) only.

Invariants enforced (by the ledger services, mirrored here as CHECKs):
    - 0 <= installment.paid_amount <= installment.amount.
    - 0 <= debt.direct_paid_amount <= debt.principal_amount.
    - installment.status is derived from (amount, paid_amount).
    - Deleting a debt cascades to its installments.

Concurrency:
    Installment and Debt carry a ``version`` column.  paid_amount changes are
    issued as ``UPDATE ... WHERE id = :id AND version = :expected``; the ORM
    objects are never mutated directly for payment effects.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from burnwise_kernel.db.base import TrackedBase, UUIDString, VersionedMixin
from burnwise_kernel.domain.settlement import SettlementStatus

if TYPE_CHECKING:
    from burnwise_kernel.models.party import Party


class DebtKind(str, Enum):
    """Direction of the obligation."""

    DEBT = "debt"  # We owe the party
    RECEIVABLE = "receivable"  # The party owes us


class DebtStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class ClosedReason(str, Enum):
    """Why a debt is closed.  Only SETTLED debts reopen on reversal."""

    SETTLED = "settled"
    CANCELLED = "cancelled"


class Debt(TrackedBase, VersionedMixin):
    """
    A debt or receivable against one party.

    Contract:
        Either split into an installment schedule or paid directly
        (``direct_paid_amount``), never both.  status is recomputed by the
        ledger after every payment effect; it is never edited directly
        except for explicit cancellation.
    """

    __tablename__ = "debts"

    __table_args__ = (
        CheckConstraint("principal_amount > 0", name="ck_debt_principal_positive"),
        CheckConstraint(
            "direct_paid_amount >= 0 AND direct_paid_amount <= principal_amount",
            name="ck_debt_direct_paid_range",
        ),
        Index("idx_debt_kind_status", "kind", "status"),
        Index("idx_debt_party", "party_id"),
    )

    kind: Mapped[DebtKind] = mapped_column(String(20), nullable=False)

    party_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("parties.id"),
        nullable=False,
    )

    principal_amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Percentage, e.g. 20 for 20% VAT
    vat_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    start_date: Mapped[date] = mapped_column(nullable=False)

    due_date: Mapped[date | None] = mapped_column(nullable=True)

    status: Mapped[DebtStatus] = mapped_column(
        String(20),
        nullable=False,
        default=DebtStatus.OPEN,
    )

    closed_reason: Mapped[ClosedReason | None] = mapped_column(String(20), nullable=True)

    # Payments recorded against the debt itself (unscheduled debts only)
    direct_paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    party: Mapped["Party"] = relationship()

    installments: Mapped[list["Installment"]] = relationship(
        back_populates="debt",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Installment.sequence",
    )

    def __repr__(self) -> str:
        return f"<Debt {self.kind} {self.principal_amount} {self.currency} [{self.status}]>"


class Installment(TrackedBase, VersionedMixin):
    """
    One scheduled due amount within a debt's repayment plan.

    Contract:
        amount and currency are fixed at creation.  paid_amount and status
        change only through InstallmentLedger.
    """

    __tablename__ = "installments"

    __table_args__ = (
        UniqueConstraint("debt_id", "sequence", name="uq_installment_sequence"),
        CheckConstraint("amount > 0", name="ck_installment_amount_positive"),
        CheckConstraint(
            "paid_amount >= 0 AND paid_amount <= amount",
            name="ck_installment_paid_range",
        ),
        Index("idx_installment_due", "due_date"),
        Index("idx_installment_status", "status"),
    )

    debt_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("debts.id", ondelete="CASCADE"),
        nullable=False,
    )

    # 1-based position within the schedule
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    due_date: Mapped[date] = mapped_column(nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[SettlementStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SettlementStatus.PENDING,
    )

    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    debt: Mapped[Debt] = relationship(back_populates="installments")

    def __repr__(self) -> str:
        return (
            f"<Installment #{self.sequence} {self.paid_amount}/{self.amount} "
            f"{self.currency} due {self.due_date} [{self.status}]>"
        )
