"""
Service layer for Debt records.

Creates, lists, cancels and deletes debts and receivables.  Schedules and
payment effects belong to InstallmentLedger; this service only owns the
debt record itself and the cascade that removes a debt together with its
installments and payments.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, delete, or_, select

from burnwise_kernel.domain.currency import CurrencyRegistry, has_currency_precision
from burnwise_kernel.exceptions import (
    ConversionError,
    DebtNotFoundError,
    PartyNotFoundError,
    ValidationError,
)
from burnwise_kernel.logging_config import LogContext, get_logger
from burnwise_kernel.models.debt import ClosedReason, Debt, DebtKind, DebtStatus, Installment
from burnwise_kernel.models.party import Party
from burnwise_kernel.models.payment import Payment, RelatedType
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.base import BaseService
from burnwise_kernel.services.currency_converter import CurrencyConverter
from burnwise_kernel.services.installment_ledger import InstallmentLedger, LedgerSnapshot

logger = get_logger("services.debt")


@dataclass(frozen=True)
class DebtInfo:
    """Immutable DTO for a debt or receivable."""

    id: UUID
    kind: DebtKind
    party_id: UUID
    principal_amount: Decimal
    currency: str
    vat_rate: Decimal
    start_date: date
    due_date: date | None
    status: DebtStatus
    closed_reason: ClosedReason | None
    direct_paid_amount: Decimal
    notes: str | None

    @property
    def is_open(self) -> bool:
        return self.status is DebtStatus.OPEN


@dataclass(frozen=True)
class DebtDetail:
    """A debt with its ledger and its principal valued at the start date."""

    debt: DebtInfo
    ledger: LedgerSnapshot
    principal_base: Decimal | None
    base_currency: str

    @property
    def total_installments(self) -> int:
        return len(self.ledger.installments)

    @property
    def total_paid(self) -> Decimal:
        return self.ledger.total_paid

    @property
    def remaining(self) -> Decimal:
        return self.ledger.remaining

    @property
    def payment_percentage(self) -> Decimal:
        return self.ledger.payment_percentage


class DebtService(BaseService):
    """CRUD for debts; returns DebtInfo DTOs."""

    @staticmethod
    def _to_dto(debt: Debt) -> DebtInfo:
        return DebtInfo(
            id=debt.id,
            kind=DebtKind(debt.kind),
            party_id=debt.party_id,
            principal_amount=debt.principal_amount,
            currency=debt.currency,
            vat_rate=debt.vat_rate,
            start_date=debt.start_date,
            due_date=debt.due_date,
            status=DebtStatus(debt.status),
            closed_reason=ClosedReason(debt.closed_reason) if debt.closed_reason else None,
            direct_paid_amount=debt.direct_paid_amount,
            notes=debt.notes,
        )

    def _get(self, debt_id: UUID) -> Debt:
        debt = self.session.get(Debt, debt_id, populate_existing=True)
        if debt is None:
            raise DebtNotFoundError(str(debt_id))
        return debt

    def get(self, debt_id: UUID) -> DebtInfo:
        return self._to_dto(self._get(debt_id))

    def list_debts(
        self,
        kind: DebtKind | str | None = None,
        status: DebtStatus | str | None = None,
        party_id: UUID | None = None,
    ) -> list[DebtInfo]:
        stmt = select(Debt)
        if kind is not None:
            stmt = stmt.where(Debt.kind == DebtKind(kind).value)
        if status is not None:
            stmt = stmt.where(Debt.status == DebtStatus(status).value)
        if party_id is not None:
            stmt = stmt.where(Debt.party_id == party_id)
        stmt = stmt.order_by(Debt.start_date, Debt.created_at)
        return [self._to_dto(d) for d in self.session.execute(stmt).scalars()]

    def create_debt(
        self,
        kind: DebtKind | str,
        party_id: UUID,
        principal_amount: Decimal,
        currency: str,
        start_date: date,
        actor_id: UUID,
        due_date: date | None = None,
        vat_rate: Decimal = Decimal("0"),
        notes: str | None = None,
    ) -> DebtInfo:
        """
        Create an open debt or receivable.

        Raises:
            PartyNotFoundError: unknown party.
            InvalidCurrencyError: unknown currency.
            ValidationError: non-positive or over-precise principal, due
                date before the start date, negative VAT rate.
        """
        try:
            kind = DebtKind(kind)
        except ValueError as exc:
            raise ValidationError("kind", f"unknown debt kind {kind!r}") from exc
        if self.session.get(Party, party_id) is None:
            raise PartyNotFoundError(str(party_id))
        currency = CurrencyRegistry.normalize(currency)
        if principal_amount <= 0:
            raise ValidationError("principal_amount", f"must be positive, got {principal_amount}")
        if not has_currency_precision(principal_amount, currency):
            raise ValidationError("principal_amount", f"{principal_amount} exceeds {currency} precision")
        if due_date is not None and due_date < start_date:
            raise ValidationError("due_date", f"{due_date} is before start date {start_date}")
        if vat_rate < 0:
            raise ValidationError("vat_rate", "must not be negative")

        debt = Debt(
            kind=kind.value,
            party_id=party_id,
            principal_amount=principal_amount,
            currency=currency,
            vat_rate=vat_rate,
            start_date=start_date,
            due_date=due_date,
            status=DebtStatus.OPEN.value,
            direct_paid_amount=Decimal("0"),
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(debt)
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "debt.created",
            "debt",
            debt.id,
            new_data={
                "kind": kind,
                "party_id": party_id,
                "principal_amount": principal_amount,
                "currency": currency,
                "start_date": start_date,
            },
        )
        with LogContext.bind(debt_id=str(debt.id), actor_id=str(actor_id)):
            logger.info(
                "debt_created",
                extra={"kind": kind.value, "principal_amount": str(principal_amount), "currency": currency},
            )
        return self._to_dto(debt)

    def cancel(self, debt_id: UUID, actor_id: UUID) -> DebtInfo:
        """
        Close an open debt as cancelled.  Payments stay recorded; ledger
        recomputation never reopens a cancelled debt.

        Raises:
            ValidationError: the debt is already closed.
        """
        debt = self._lock_row(Debt, debt_id)
        if debt is None:
            raise DebtNotFoundError(str(debt_id))
        if debt.status == DebtStatus.CLOSED.value:
            raise ValidationError("status", f"debt {debt_id} is already closed ({debt.closed_reason})")
        debt.status = DebtStatus.CLOSED.value
        debt.closed_reason = ClosedReason.CANCELLED.value
        debt.updated_by_id = actor_id
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "debt.cancelled",
            "debt",
            debt.id,
            old_data={"status": DebtStatus.OPEN},
            new_data={"status": DebtStatus.CLOSED, "closed_reason": ClosedReason.CANCELLED},
        )
        logger.info("debt_cancelled", extra={"debt_id": str(debt_id)})
        return self._to_dto(debt)

    def delete(self, debt_id: UUID, actor_id: UUID) -> None:
        """Delete a debt with its installments and every payment against them."""
        debt = self._lock_row(Debt, debt_id)
        if debt is None:
            raise DebtNotFoundError(str(debt_id))
        installment_ids = list(
            self.session.execute(
                select(Installment.id).where(Installment.debt_id == debt_id)
            ).scalars()
        )
        conditions = [and_(Payment.related_type == RelatedType.DEBT.value, Payment.related_id == debt_id)]
        if installment_ids:
            conditions.append(
                and_(
                    Payment.related_type == RelatedType.INSTALLMENT.value,
                    Payment.related_id.in_(installment_ids),
                )
            )
        removed = self.session.execute(
            delete(Payment).where(or_(*conditions)).execution_options(synchronize_session="fetch")
        ).rowcount

        old = {
            "kind": debt.kind,
            "principal_amount": debt.principal_amount,
            "currency": debt.currency,
            "installments": len(installment_ids),
            "payments": removed,
        }
        self.session.delete(debt)
        self.session.flush()
        AuditService(self.session).record(actor_id, "debt.deleted", "debt", debt_id, old_data=old)
        logger.info(
            "debt_deleted",
            extra={"debt_id": str(debt_id), "installments": len(installment_ids), "payments": removed},
        )

    def debt_detail(self, debt_id: UUID, converter: CurrencyConverter | None = None) -> DebtDetail:
        """
        Debt, schedule and totals, with the principal valued at the start
        date.  ``principal_base`` is None when no rate is available.
        """
        debt = self._get(debt_id)
        converter = converter or CurrencyConverter.for_session(self.session, self.policy.base_currency)
        try:
            principal_base: Decimal | None = converter.to_base(
                debt.principal_amount, debt.currency, debt.start_date
            )
        except ConversionError:
            principal_base = None
        ledger = InstallmentLedger(self.session, self.policy, self.clock).ledger(debt_id)
        return DebtDetail(
            debt=self._to_dto(debt),
            ledger=ledger,
            principal_base=principal_base,
            base_currency=converter.base_currency,
        )
