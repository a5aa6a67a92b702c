"""
Module: burnwise_kernel.models.project
Responsibility: ORM persistence for projects, their payment milestones and
    the grants that fund them.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/settlement.py only.

Invariants enforced (by MilestoneLedger / GrantService, mirrored as CHECKs):
    - 0 <= milestone.paid_amount <= milestone.expected_amount.
    - milestone.currency == project.currency.
    - sum of non-cancelled milestone amounts <= project.contract_amount.
    - 0 <= grant.received_amount <= grant.approved_amount.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from burnwise_kernel.db.base import TrackedBase, UUIDString, VersionedMixin
from burnwise_kernel.domain.settlement import SettlementStatus

if TYPE_CHECKING:
    from burnwise_kernel.models.party import Party


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class GrantProviderType(str, Enum):
    TUBITAK = "tubitak"
    KOSGEB = "kosgeb"
    SPONSOR = "sponsor"
    OTHER = "other"


class GrantStatus(str, Enum):
    """
    Grant lifecycle.

    PENDING -> APPROVED -> PARTIAL -> RECEIVED, or PENDING -> REJECTED.
    PARTIAL/RECEIVED are derived from received_amount once approved.
    """

    PENDING = "pending"
    APPROVED = "approved"
    PARTIAL = "partial"
    RECEIVED = "received"
    REJECTED = "rejected"


class Project(TrackedBase):
    """A contract with a customer, collected through milestones."""

    __tablename__ = "projects"

    __table_args__ = (
        CheckConstraint("contract_amount >= 0", name="ck_project_contract_non_negative"),
        Index("idx_project_party", "party_id"),
        Index("idx_project_status", "status"),
    )

    party_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("parties.id"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    contract_amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    start_date: Mapped[date] = mapped_column(nullable=False)

    end_date: Mapped[date | None] = mapped_column(nullable=True)

    status: Mapped[ProjectStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ProjectStatus.ACTIVE,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    party: Mapped["Party"] = relationship()

    milestones: Mapped[list["Milestone"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Milestone.expected_date",
    )

    grants: Mapped[list["ProjectGrant"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Project {self.title!r} {self.contract_amount} {self.currency}>"


class Milestone(TrackedBase, VersionedMixin):
    """A scheduled collection checkpoint against a project contract."""

    __tablename__ = "milestones"

    __table_args__ = (
        CheckConstraint("expected_amount > 0", name="ck_milestone_amount_positive"),
        CheckConstraint(
            "paid_amount >= 0 AND paid_amount <= expected_amount",
            name="ck_milestone_paid_range",
        ),
        Index("idx_milestone_project", "project_id"),
        Index("idx_milestone_expected", "expected_date"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    expected_date: Mapped[date] = mapped_column(nullable=False)

    expected_amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[SettlementStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SettlementStatus.PENDING,
    )

    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    is_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    project: Mapped[Project] = relationship(back_populates="milestones")

    def __repr__(self) -> str:
        return (
            f"<Milestone {self.title!r} {self.paid_amount}/{self.expected_amount} "
            f"{self.currency} [{self.status}]>"
        )


class ProjectGrant(TrackedBase, VersionedMixin):
    """Public or sponsor funding attached to a project."""

    __tablename__ = "project_grants"

    __table_args__ = (
        CheckConstraint("approved_amount >= 0", name="ck_grant_approved_non_negative"),
        CheckConstraint(
            "received_amount >= 0 AND received_amount <= approved_amount",
            name="ck_grant_received_range",
        ),
        Index("idx_grant_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    provider_name: Mapped[str] = mapped_column(String(255), nullable=False)

    provider_type: Mapped[GrantProviderType] = mapped_column(String(20), nullable=False)

    # Percentage of eligible cost the provider funds, e.g. 75
    funding_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    requested_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    approved_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    received_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[GrantStatus] = mapped_column(
        String(20),
        nullable=False,
        default=GrantStatus.PENDING,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    project: Mapped[Project] = relationship(back_populates="grants")

    def __repr__(self) -> str:
        return f"<ProjectGrant {self.provider_name!r} {self.received_amount}/{self.approved_amount}>"
