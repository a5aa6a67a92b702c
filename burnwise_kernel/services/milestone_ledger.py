"""
MilestoneLedger -- collection milestones against a project contract.

Milestones behave like installments: each has an expected amount, a paid
amount and a derived status, and payment effects go through a
version-checked compare-and-set with one retry.  The project row is locked
while a milestone of it is mutated.

Invariants enforced:
    - milestone.currency == project.currency.
    - sum of non-cancelled milestone amounts <= contract_amount + tolerance.
    - cancelled milestones accept no payments; a milestone holding payments
      cannot be cancelled.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from burnwise_kernel.domain.currency import CurrencyRegistry, has_currency_precision
from burnwise_kernel.domain.settlement import Settlement, SettlementStatus, effective_tolerance
from burnwise_kernel.exceptions import (
    ConcurrentModificationError,
    CurrencyMismatchError,
    MilestoneNotFoundError,
    PaymentNotFoundError,
    ProjectNotFoundError,
    ScheduleMismatchError,
    ValidationError,
)
from burnwise_kernel.logging_config import get_logger
from burnwise_kernel.models.payment import Payment, RelatedType
from burnwise_kernel.models.project import Milestone, Project
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.base import BaseService

logger = get_logger("services.milestone_ledger")


@dataclass(frozen=True)
class MilestoneSnapshot:
    id: UUID
    project_id: UUID
    title: str
    expected_date: date
    expected_amount: Decimal
    paid_amount: Decimal
    currency: str
    status: SettlementStatus
    is_cancelled: bool
    version: int

    @property
    def remaining(self) -> Decimal:
        return self.expected_amount - self.paid_amount

    @classmethod
    def from_model(cls, row: Milestone) -> MilestoneSnapshot:
        return cls(
            id=row.id,
            project_id=row.project_id,
            title=row.title,
            expected_date=row.expected_date,
            expected_amount=row.expected_amount,
            paid_amount=row.paid_amount,
            currency=row.currency,
            status=SettlementStatus(row.status),
            is_cancelled=row.is_cancelled,
            version=row.version,
        )


class MilestoneLedger(BaseService):
    """Milestone schedule and payment state of projects."""

    MAX_ATTEMPTS = 2

    def _get_project(self, project_id: UUID, lock: bool = False) -> Project:
        project = self._lock_row(Project, project_id) if lock else self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def _get_milestone(self, milestone_id: UUID, refresh: bool = False) -> Milestone:
        row = self.session.get(Milestone, milestone_id, populate_existing=refresh)
        if row is None:
            raise MilestoneNotFoundError(str(milestone_id))
        return row

    def get_milestone(self, milestone_id: UUID) -> MilestoneSnapshot:
        return MilestoneSnapshot.from_model(self._get_milestone(milestone_id, refresh=True))

    def milestones(self, project_id: UUID, include_cancelled: bool = False) -> list[MilestoneSnapshot]:
        stmt = (
            select(Milestone)
            .where(Milestone.project_id == project_id)
            .order_by(Milestone.expected_date, Milestone.created_at)
            .execution_options(populate_existing=True)
        )
        if not include_cancelled:
            stmt = stmt.where(Milestone.is_cancelled.is_(False))
        return [MilestoneSnapshot.from_model(row) for row in self.session.execute(stmt).scalars()]

    def add_milestone(
        self,
        project_id: UUID,
        title: str,
        expected_date: date,
        expected_amount: Decimal,
        currency: str,
        actor_id: UUID,
        notes: str | None = None,
    ) -> MilestoneSnapshot:
        """
        Add a collection milestone to a project.

        Raises:
            CurrencyMismatchError: currency differs from the project's.
            ScheduleMismatchError: the milestones would exceed the contract.
            ValidationError: non-positive amount or bad precision.
        """
        project = self._get_project(project_id, lock=True)
        currency = CurrencyRegistry.normalize(currency)
        if currency != project.currency:
            raise CurrencyMismatchError(project.currency, currency)
        if expected_amount <= 0:
            raise ValidationError("expected_amount", f"must be positive, got {expected_amount}")
        if not has_currency_precision(expected_amount, currency):
            raise ValidationError("expected_amount", f"{expected_amount} exceeds {currency} precision")

        scheduled = self.session.execute(
            select(func.coalesce(func.sum(Milestone.expected_amount), 0)).where(
                Milestone.project_id == project_id,
                Milestone.is_cancelled.is_(False),
            )
        ).scalar_one()
        total = Decimal(str(scheduled)) + expected_amount
        if total > project.contract_amount + effective_tolerance(currency, self.policy.tolerance):
            raise ScheduleMismatchError(
                str(project_id),
                project.contract_amount,
                total,
                "milestone amounts exceed the contract amount",
            )

        row = Milestone(
            project_id=project.id,
            title=title,
            expected_date=expected_date,
            expected_amount=expected_amount,
            currency=currency,
            status=SettlementStatus.PENDING.value,
            paid_amount=Decimal("0"),
            is_cancelled=False,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "milestone.created",
            "milestone",
            row.id,
            new_data={
                "project_id": project.id,
                "expected_date": expected_date,
                "expected_amount": expected_amount,
                "currency": currency,
            },
        )
        logger.info(
            "milestone_added",
            extra={
                "project_id": str(project.id),
                "milestone_id": str(row.id),
                "expected_amount": str(expected_amount),
            },
        )
        return MilestoneSnapshot.from_model(row)

    def cancel_milestone(self, milestone_id: UUID, actor_id: UUID) -> MilestoneSnapshot:
        """
        Take a milestone out of the plan.

        Raises:
            ValidationError: it holds payments or is already cancelled.
        """
        row = self._get_milestone(milestone_id)
        self._get_project(row.project_id, lock=True)
        row = self._get_milestone(milestone_id, refresh=True)
        if row.is_cancelled:
            raise ValidationError("milestone", f"milestone {milestone_id} is already cancelled")
        if row.paid_amount > 0:
            raise ValidationError(
                "milestone", f"milestone {milestone_id} holds payments; reverse them first"
            )
        if not self._compare_and_set(Milestone, row.id, row.version, {"is_cancelled": True}, actor_id):
            raise ConcurrentModificationError("milestone", str(milestone_id))
        AuditService(self.session).record(
            actor_id,
            "milestone.cancelled",
            "milestone",
            row.id,
            old_data={"is_cancelled": False},
            new_data={"is_cancelled": True},
        )
        logger.info("milestone_cancelled", extra={"milestone_id": str(milestone_id)})
        return self.get_milestone(milestone_id)

    def _mutate(
        self,
        milestone_id: UUID,
        change: Callable[[Settlement], Settlement],
        actor_id: UUID | None,
        event: str,
    ) -> MilestoneSnapshot:
        row = self._get_milestone(milestone_id)
        self._get_project(row.project_id, lock=True)

        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            if attempt > 1:
                row = self._get_milestone(milestone_id, refresh=True)
            before = Settlement("milestone", str(row.id), row.expected_amount, row.paid_amount)
            after = change(before)
            if self._compare_and_set(
                Milestone,
                row.id,
                row.version,
                {"paid_amount": after.paid_amount, "status": after.status.value},
                actor_id,
            ):
                logger.info(
                    event,
                    extra={
                        "milestone_id": str(row.id),
                        "project_id": str(row.project_id),
                        "paid_before": str(before.paid_amount),
                        "paid_after": str(after.paid_amount),
                        "status": after.status.value,
                        "attempt": attempt,
                    },
                )
                return self.get_milestone(milestone_id)
            logger.warning(
                "milestone_version_conflict",
                extra={"milestone_id": str(milestone_id), "attempt": attempt},
            )

        raise ConcurrentModificationError("milestone", str(milestone_id))

    def apply_payment(
        self,
        milestone_id: UUID,
        amount: Decimal,
        on_date: date,
        actor_id: UUID | None = None,
    ) -> MilestoneSnapshot:
        row = self._get_milestone(milestone_id, refresh=True)
        if row.is_cancelled:
            raise ValidationError("related_id", f"milestone {milestone_id} is cancelled")
        if amount <= 0:
            raise ValidationError("amount", f"must be positive, got {amount}")
        if not has_currency_precision(amount, row.currency):
            raise ValidationError("amount", f"{amount} exceeds {row.currency} precision")
        tolerance = effective_tolerance(row.currency, self.policy.tolerance)
        return self._mutate(
            milestone_id,
            lambda s: s.apply(amount, tolerance),
            actor_id,
            "milestone_payment_applied",
        )

    def reverse_amount(
        self,
        milestone_id: UUID,
        amount: Decimal,
        actor_id: UUID | None = None,
    ) -> MilestoneSnapshot:
        return self._mutate(
            milestone_id,
            lambda s: s.reverse(amount),
            actor_id,
            "milestone_payment_reversed",
        )

    def reverse_payment(self, payment_id: UUID, actor_id: UUID | None = None) -> MilestoneSnapshot:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        if payment.related_type != RelatedType.MILESTONE.value:
            raise ValidationError(
                "payment", f"payment {payment_id} settles a {payment.related_type}, not a milestone"
            )
        return self.reverse_amount(payment.related_id, payment.amount, actor_id)
