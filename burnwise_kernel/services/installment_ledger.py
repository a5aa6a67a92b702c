"""
InstallmentLedger -- schedule and payment state of one debt.

Responsibility:
    Creates a debt's installment schedule, applies and reverses payment
    effects on installments (and, for debts without a schedule, on the debt
    itself), answers status queries, and recomputes the debt's open/closed
    status after every change.

Architecture position:
    Kernel > Services.  Called by PaymentRecorder for payment effects and by
    DebtService for schedule management.  Never commits.

Invariants enforced:
    - 0 <= paid_amount <= amount for every installment, and status is
      derived from that pair (via domain.settlement).
    - A schedule sums to the principal within tolerance and no installment
      is due before the debt's start date; a failing schedule creates
      nothing.
    - A debt is either scheduled or paid directly, never both.
    - Debt closure is recomputed after every payment effect: closed/settled
      iff every installment is paid (or, unscheduled, the principal is
      fully paid directly).  A reversal reopens a settled debt.  Cancelled
      debts are never reopened by recomputation.

Concurrency:
    The parent debt row is locked (FOR UPDATE) for the duration of the
    mutation, and the paid amount is written with a version-checked
    compare-and-set.  A failed compare-and-set reloads the row and retries
    once; a second failure raises ConcurrentModificationError.

Failure modes:
    - OverPaymentError, InconsistentStateError, ScheduleMismatchError.
    - ValidationError for bad input, CurrencyMismatchError for schedule
      lines in a foreign currency.
    - ConcurrentModificationError after the single retry.
    - DebtNotFoundError, InstallmentNotFoundError, PaymentNotFoundError.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select

from burnwise_kernel.domain.currency import CurrencyRegistry, has_currency_precision
from burnwise_kernel.domain.schedule import ScheduleLine, split_evenly, validate_schedule
from burnwise_kernel.domain.settlement import (
    Settlement,
    SettlementStatus,
    derive_status,
    effective_tolerance,
    is_overdue as settlement_is_overdue,
)
from burnwise_kernel.exceptions import (
    ConcurrentModificationError,
    CurrencyMismatchError,
    DebtNotFoundError,
    InstallmentNotFoundError,
    PaymentNotFoundError,
    ValidationError,
)
from burnwise_kernel.logging_config import LogContext, get_logger
from burnwise_kernel.models.debt import ClosedReason, Debt, DebtKind, DebtStatus, Installment
from burnwise_kernel.models.payment import Payment, RelatedType
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.base import BaseService

logger = get_logger("services.installment_ledger")


class _Payable(Protocol):
    amount: Decimal
    paid_amount: Decimal
    due_date: date


@dataclass(frozen=True)
class InstallmentSnapshot:
    """Immutable view of one installment after a ledger operation."""

    id: UUID
    debt_id: UUID
    sequence: int
    due_date: date
    amount: Decimal
    paid_amount: Decimal
    currency: str
    status: SettlementStatus
    version: int

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.paid_amount

    @classmethod
    def from_model(cls, row: Installment) -> InstallmentSnapshot:
        return cls(
            id=row.id,
            debt_id=row.debt_id,
            sequence=row.sequence,
            due_date=row.due_date,
            amount=row.amount,
            paid_amount=row.paid_amount,
            currency=row.currency,
            status=SettlementStatus(row.status),
            version=row.version,
        )


@dataclass(frozen=True)
class LedgerSnapshot:
    """A debt together with its schedule and payment-derived totals."""

    debt_id: UUID
    kind: DebtKind
    currency: str
    principal_amount: Decimal
    status: DebtStatus
    closed_reason: ClosedReason | None
    direct_paid_amount: Decimal
    installments: tuple[InstallmentSnapshot, ...]

    @property
    def is_scheduled(self) -> bool:
        return bool(self.installments)

    @property
    def total_scheduled(self) -> Decimal:
        return sum((i.amount for i in self.installments), Decimal("0"))

    @property
    def total_paid(self) -> Decimal:
        if self.installments:
            return sum((i.paid_amount for i in self.installments), Decimal("0"))
        return self.direct_paid_amount

    @property
    def remaining(self) -> Decimal:
        return self.principal_amount - self.total_paid

    @property
    def payment_percentage(self) -> Decimal:
        if self.principal_amount <= 0:
            return Decimal("0")
        return (self.total_paid / self.principal_amount * 100).quantize(Decimal("0.01"))


class InstallmentLedger(BaseService):
    """
    Ledger operations over debts and their installments.

    Contract:
        ``apply_payment`` / ``reverse_payment`` flush the new paid amount and
        status and return an ``InstallmentSnapshot``.  They do not create or
        delete Payment rows; PaymentRecorder does that around them.
    """

    MAX_ATTEMPTS = 2

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _lock_debt(self, debt_id: UUID) -> Debt:
        debt = self._lock_row(Debt, debt_id)
        if debt is None:
            raise DebtNotFoundError(str(debt_id))
        return debt

    def _get_installment(self, installment_id: UUID, refresh: bool = False) -> Installment:
        row = self.session.get(Installment, installment_id, populate_existing=refresh)
        if row is None:
            raise InstallmentNotFoundError(str(installment_id))
        return row

    def _installments(self, debt_id: UUID) -> list[Installment]:
        stmt = (
            select(Installment)
            .where(Installment.debt_id == debt_id)
            .order_by(Installment.sequence)
            .execution_options(populate_existing=True)
        )
        return list(self.session.execute(stmt).scalars())

    def _tolerance(self, currency: str) -> Decimal:
        return effective_tolerance(currency, self.policy.tolerance)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_installment(self, installment_id: UUID) -> InstallmentSnapshot:
        return InstallmentSnapshot.from_model(self._get_installment(installment_id, refresh=True))

    def ledger(self, debt_id: UUID) -> LedgerSnapshot:
        """Current schedule and totals of one debt."""
        debt = self.session.get(Debt, debt_id, populate_existing=True)
        if debt is None:
            raise DebtNotFoundError(str(debt_id))
        return LedgerSnapshot(
            debt_id=debt.id,
            kind=DebtKind(debt.kind),
            currency=debt.currency,
            principal_amount=debt.principal_amount,
            status=DebtStatus(debt.status),
            closed_reason=ClosedReason(debt.closed_reason) if debt.closed_reason else None,
            direct_paid_amount=debt.direct_paid_amount,
            installments=tuple(
                InstallmentSnapshot.from_model(row) for row in self._installments(debt_id)
            ),
        )

    @staticmethod
    def is_overdue(installment: _Payable, as_of: date) -> bool:
        """True iff the installment is not fully paid and was due before ``as_of``."""
        status = derive_status(installment.amount, installment.paid_amount)
        return settlement_is_overdue(status, installment.due_date, as_of)

    @staticmethod
    def remaining(installment: _Payable) -> Decimal:
        return installment.amount - installment.paid_amount

    # ------------------------------------------------------------------
    # Schedule management
    # ------------------------------------------------------------------

    def create_schedule(
        self,
        debt_id: UUID,
        installments: Sequence[ScheduleLine],
        actor_id: UUID,
    ) -> LedgerSnapshot:
        """
        Split a debt into installments.

        Preconditions:
            - the debt is open, has no schedule yet and no direct payments.
        Postconditions:
            - one Installment per line, numbered 1..n in the given order,
              all pending.  Nothing is created if any check fails.

        Raises:
            ScheduleMismatchError: sum differs from the principal by more
                than tolerance, or a due date precedes the start date.
            CurrencyMismatchError: a line names a different currency.
            ValidationError: debt closed, already scheduled or paid
                directly; bad line amounts.
        """
        debt = self._lock_debt(debt_id)
        if debt.status == DebtStatus.CLOSED.value:
            raise ValidationError("debt", f"debt {debt_id} is closed")
        if debt.direct_paid_amount > 0:
            raise ValidationError(
                "debt", f"debt {debt_id} already has direct payments and cannot be scheduled"
            )
        existing = self.session.execute(
            select(func.count(Installment.id)).where(Installment.debt_id == debt_id)
        ).scalar_one()
        if existing:
            raise ValidationError("debt", f"debt {debt_id} already has a schedule")

        for line in installments:
            if line.currency is not None and CurrencyRegistry.normalize(line.currency) != debt.currency:
                raise CurrencyMismatchError(debt.currency, line.currency)

        validate_schedule(
            str(debt_id),
            debt.principal_amount,
            debt.currency,
            debt.start_date,
            list(installments),
            self._tolerance(debt.currency),
        )

        rows = [
            Installment(
                debt_id=debt.id,
                sequence=index,
                due_date=line.due_date,
                amount=line.amount,
                currency=debt.currency,
                status=SettlementStatus.PENDING.value,
                paid_amount=Decimal("0"),
                notes=line.notes,
                created_by_id=actor_id,
            )
            for index, line in enumerate(installments, start=1)
        ]
        self.session.add_all(rows)
        self.session.flush()

        AuditService(self.session).record(
            actor_id,
            "debt.schedule_created",
            "debt",
            debt.id,
            new_data={
                "installments": [
                    {"due_date": row.due_date, "amount": row.amount} for row in rows
                ]
            },
        )
        with LogContext.bind(debt_id=str(debt.id), actor_id=str(actor_id)):
            logger.info(
                "schedule_created",
                extra={
                    "installment_count": len(rows),
                    "principal_amount": str(debt.principal_amount),
                    "currency": debt.currency,
                },
            )
        return self.ledger(debt.id)

    def split_evenly(
        self,
        debt_id: UUID,
        count: int,
        actor_id: UUID,
        first_due_date: date | None = None,
    ) -> LedgerSnapshot:
        """Equal monthly schedule starting on ``first_due_date`` (default: start date)."""
        debt = self.session.get(Debt, debt_id)
        if debt is None:
            raise DebtNotFoundError(str(debt_id))
        lines = split_evenly(
            debt.principal_amount,
            debt.currency,
            count,
            first_due_date or debt.start_date,
        )
        return self.create_schedule(debt_id, lines, actor_id)

    def clear_schedule(self, debt_id: UUID, actor_id: UUID) -> LedgerSnapshot:
        """
        Remove an untouched schedule so the debt can be re-split.

        Raises:
            ValidationError: any installment has payments applied.
        """
        self._lock_debt(debt_id)
        rows = self._installments(debt_id)
        if any(row.paid_amount > 0 for row in rows):
            raise ValidationError(
                "debt", f"debt {debt_id} has paid installments; reverse the payments first"
            )
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "debt.schedule_cleared",
            "debt",
            debt_id,
            old_data={"installment_count": len(rows)},
        )
        logger.info(
            "schedule_cleared",
            extra={"debt_id": str(debt_id), "installment_count": len(rows)},
        )
        return self.ledger(debt_id)

    # ------------------------------------------------------------------
    # Payment effects on installments
    # ------------------------------------------------------------------

    def _mutate_installment(
        self,
        installment_id: UUID,
        change: Callable[[Settlement], Settlement],
        actor_id: UUID | None,
        event: str,
        applying: bool = False,
    ) -> InstallmentSnapshot:
        row = self._get_installment(installment_id)
        debt = self._lock_debt(row.debt_id)
        if applying and debt.closed_reason == ClosedReason.CANCELLED.value:
            raise ValidationError("related_id", f"debt {debt.id} is cancelled")

        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            if attempt > 1:
                row = self._get_installment(installment_id, refresh=True)
            before = Settlement("installment", str(row.id), row.amount, row.paid_amount)
            after = change(before)
            if self._compare_and_set(
                Installment,
                row.id,
                row.version,
                {"paid_amount": after.paid_amount, "status": after.status.value},
                actor_id,
            ):
                row = self._get_installment(installment_id, refresh=True)
                self._recompute_debt_status(debt, actor_id)
                logger.info(
                    event,
                    extra={
                        "installment_id": str(row.id),
                        "debt_id": str(row.debt_id),
                        "paid_before": str(before.paid_amount),
                        "paid_after": str(after.paid_amount),
                        "status": after.status.value,
                        "attempt": attempt,
                    },
                )
                return InstallmentSnapshot.from_model(row)
            logger.warning(
                "installment_version_conflict",
                extra={
                    "installment_id": str(installment_id),
                    "expected_version": row.version,
                    "attempt": attempt,
                },
            )

        raise ConcurrentModificationError("installment", str(installment_id))

    def apply_payment(
        self,
        installment_id: UUID,
        amount: Decimal,
        on_date: date,
        actor_id: UUID | None = None,
    ) -> InstallmentSnapshot:
        """
        Add ``amount`` to the installment's paid amount.

        Raises:
            OverPaymentError: paid_amount + amount > installment amount + tolerance.
                State is unchanged.
            ValidationError: amount <= 0 or finer than currency precision, or
                the debt is cancelled.
            ConcurrentModificationError: conflict on the retry as well.
        """
        row = self._get_installment(installment_id)
        self._check_amount(amount, row.currency)
        tolerance = self._tolerance(row.currency)
        with LogContext.bind(debt_id=str(row.debt_id)):
            snapshot = self._mutate_installment(
                installment_id,
                lambda s: s.apply(amount, tolerance),
                actor_id,
                "installment_payment_applied",
                applying=True,
            )
        logger.debug(
            "installment_payment_dated",
            extra={"installment_id": str(installment_id), "payment_date": on_date.isoformat()},
        )
        return snapshot

    def reverse_amount(
        self,
        installment_id: UUID,
        amount: Decimal,
        actor_id: UUID | None = None,
    ) -> InstallmentSnapshot:
        """
        Subtract ``amount`` from the installment's paid amount.

        Raises:
            InconsistentStateError: the result would be negative.
        """
        row = self._get_installment(installment_id)
        with LogContext.bind(debt_id=str(row.debt_id)):
            return self._mutate_installment(
                installment_id,
                lambda s: s.reverse(amount),
                actor_id,
                "installment_payment_reversed",
            )

    def reverse_payment(self, payment_id: UUID, actor_id: UUID | None = None) -> InstallmentSnapshot:
        """
        Undo the effect of a recorded installment payment.

        The Payment row itself is left in place; PaymentRecorder.delete
        removes it in the same transaction.

        Raises:
            PaymentNotFoundError: no such payment.
            ValidationError: the payment is not an installment payment.
            InconsistentStateError: the reversal would go negative.
        """
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        if payment.related_type != RelatedType.INSTALLMENT.value:
            raise ValidationError(
                "payment", f"payment {payment_id} settles a {payment.related_type}, not an installment"
            )
        return self.reverse_amount(payment.related_id, payment.amount, actor_id)

    # ------------------------------------------------------------------
    # Payment effects on unscheduled debts
    # ------------------------------------------------------------------

    def _mutate_debt(
        self,
        debt_id: UUID,
        change: Callable[[Settlement], Settlement],
        actor_id: UUID | None,
        event: str,
    ) -> LedgerSnapshot:
        debt = self._lock_debt(debt_id)
        scheduled = self.session.execute(
            select(func.count(Installment.id)).where(Installment.debt_id == debt_id)
        ).scalar_one()
        if scheduled:
            raise ValidationError(
                "related_id",
                f"debt {debt_id} has an installment schedule; pay the installments instead",
            )

        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            if attempt > 1:
                debt = self._lock_debt(debt_id)
            before = Settlement("debt", str(debt.id), debt.principal_amount, debt.direct_paid_amount)
            after = change(before)
            if self._compare_and_set(
                Debt,
                debt.id,
                debt.version,
                {"direct_paid_amount": after.paid_amount},
                actor_id,
            ):
                debt = self._lock_debt(debt_id)
                self._recompute_debt_status(debt, actor_id)
                logger.info(
                    event,
                    extra={
                        "debt_id": str(debt.id),
                        "paid_before": str(before.paid_amount),
                        "paid_after": str(after.paid_amount),
                        "attempt": attempt,
                    },
                )
                return self.ledger(debt_id)
            logger.warning(
                "debt_version_conflict",
                extra={"debt_id": str(debt_id), "expected_version": debt.version, "attempt": attempt},
            )

        raise ConcurrentModificationError("debt", str(debt_id))

    def apply_direct_payment(
        self,
        debt_id: UUID,
        amount: Decimal,
        on_date: date,
        actor_id: UUID | None = None,
    ) -> LedgerSnapshot:
        """Pay an unscheduled debt directly.  Same rules as ``apply_payment``."""
        debt = self.session.get(Debt, debt_id)
        if debt is None:
            raise DebtNotFoundError(str(debt_id))
        if debt.closed_reason == ClosedReason.CANCELLED.value:
            raise ValidationError("related_id", f"debt {debt_id} is cancelled")
        self._check_amount(amount, debt.currency)
        tolerance = self._tolerance(debt.currency)
        with LogContext.bind(debt_id=str(debt_id)):
            return self._mutate_debt(
                debt_id,
                lambda s: s.apply(amount, tolerance),
                actor_id,
                "debt_direct_payment_applied",
            )

    def reverse_direct_payment(
        self,
        debt_id: UUID,
        amount: Decimal,
        actor_id: UUID | None = None,
    ) -> LedgerSnapshot:
        with LogContext.bind(debt_id=str(debt_id)):
            return self._mutate_debt(
                debt_id,
                lambda s: s.reverse(amount),
                actor_id,
                "debt_direct_payment_reversed",
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_amount(amount: Decimal, currency: str) -> None:
        if not isinstance(amount, Decimal):
            raise ValidationError("amount", f"must be a Decimal, got {type(amount).__name__}")
        if amount <= 0:
            raise ValidationError("amount", f"must be positive, got {amount}")
        if not has_currency_precision(amount, currency):
            raise ValidationError("amount", f"{amount} exceeds {currency} precision")

    def _recompute_debt_status(self, debt: Debt, actor_id: UUID | None) -> None:
        """Close a fully settled debt, reopen a settled debt that no longer is."""
        if debt.closed_reason == ClosedReason.CANCELLED.value:
            return

        statuses = list(
            self.session.execute(
                select(Installment.status).where(Installment.debt_id == debt.id)
            ).scalars()
        )
        if statuses:
            settled = all(s == SettlementStatus.PAID.value for s in statuses)
        else:
            settled = debt.direct_paid_amount == debt.principal_amount

        if settled and debt.status == DebtStatus.OPEN.value:
            debt.status = DebtStatus.CLOSED.value
            debt.closed_reason = ClosedReason.SETTLED.value
            event = "debt_settled"
        elif not settled and debt.status == DebtStatus.CLOSED.value:
            debt.status = DebtStatus.OPEN.value
            debt.closed_reason = None
            event = "debt_reopened"
        else:
            return

        if actor_id is not None:
            debt.updated_by_id = actor_id
        self.session.flush()
        logger.info(event, extra={"debt_id": str(debt.id)})
