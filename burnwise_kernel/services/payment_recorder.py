"""
PaymentRecorder -- the single entry point for recording and deleting payments.

Responsibility:
    Validates a payment, applies its effect through the ledger that owns the
    related entity, and persists the Payment row; deletion reverses the
    effect and removes the row.

Architecture position:
    Kernel > Services.  Depends on InstallmentLedger (installments and
    unscheduled debts) and MilestoneLedger (project milestones).

Invariants enforced:
    - A Payment row exists iff its effect is present in the related
      entity's paid amount.  The ledger update runs first and the row is
      inserted only after it succeeds; both are flushed into the caller's
      transaction, so a failure at any point leaves nothing behind once
      the caller rolls back.
    - payment.currency == related entity currency (no implicit FX).
    - amount > 0 at the currency's precision; method is a configured one.

Failure modes:
    - ValidationError / CurrencyMismatchError / InvalidCurrencyError.
    - OverPaymentError, InconsistentStateError from the ledger.
    - InstallmentNotFoundError / DebtNotFoundError / MilestoneNotFoundError.
    - ConcurrentModificationError after the ledger's single retry.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from burnwise_kernel.domain.clock import Clock
from burnwise_kernel.domain.currency import CurrencyRegistry, has_currency_precision
from burnwise_kernel.domain.policy import LedgerPolicy
from burnwise_kernel.exceptions import (
    CurrencyMismatchError,
    DebtNotFoundError,
    InstallmentNotFoundError,
    MilestoneNotFoundError,
    PaymentNotFoundError,
    ValidationError,
)
from burnwise_kernel.logging_config import LogContext, get_logger
from burnwise_kernel.models.debt import Debt, Installment
from burnwise_kernel.models.payment import Payment, PaymentMethod, RelatedType
from burnwise_kernel.models.project import Milestone
from burnwise_kernel.selectors.payment_selector import PaymentInfo, PaymentSelector
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.base import BaseService
from burnwise_kernel.services.installment_ledger import InstallmentLedger
from burnwise_kernel.services.milestone_ledger import MilestoneLedger

logger = get_logger("services.payment_recorder")


class PaymentRecorder(BaseService):
    """
    Records and deletes payments atomically with their ledger effect.

    Contract:
        ``record`` and ``delete`` flush but never commit.  Run them inside
        ``session_scope()`` (or an equivalent caller-owned transaction) so
        that a raised error rolls back the ledger update too.
    """

    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, policy, clock)
        self.installments = InstallmentLedger(session, self.policy, self.clock)
        self.milestones = MilestoneLedger(session, self.policy, self.clock)
        self.payments = PaymentSelector(session)

    def _entity_currency(self, related_type: RelatedType, related_id: UUID) -> str:
        if related_type is RelatedType.INSTALLMENT:
            row = self.session.get(Installment, related_id)
            if row is None:
                raise InstallmentNotFoundError(str(related_id))
        elif related_type is RelatedType.DEBT:
            row = self.session.get(Debt, related_id)
            if row is None:
                raise DebtNotFoundError(str(related_id))
        else:
            row = self.session.get(Milestone, related_id)
            if row is None:
                raise MilestoneNotFoundError(str(related_id))
        return row.currency

    def _validate(
        self,
        related_type: RelatedType,
        related_id: UUID,
        amount: Decimal,
        currency: str,
        method: str,
    ) -> str:
        currency = CurrencyRegistry.normalize(currency)
        if not isinstance(amount, Decimal):
            raise ValidationError("amount", f"must be a Decimal, got {type(amount).__name__}")
        if amount <= 0:
            raise ValidationError("amount", f"must be positive, got {amount}")
        if not has_currency_precision(amount, currency):
            raise ValidationError("amount", f"{amount} exceeds {currency} precision")
        if method not in self.policy.payment_methods:
            raise ValidationError(
                "method",
                f"unknown payment method {method!r}; expected one of {', '.join(self.policy.payment_methods)}",
            )
        expected = self._entity_currency(related_type, related_id)
        if currency != expected:
            raise CurrencyMismatchError(expected, currency)
        return currency

    def record(
        self,
        related_type: RelatedType | str,
        related_id: UUID,
        amount: Decimal,
        currency: str,
        payment_date: date,
        method: PaymentMethod | str,
        actor_id: UUID,
        notes: str | None = None,
    ) -> PaymentInfo:
        """
        Record a payment against an installment, an unscheduled debt or a
        milestone.

        Preconditions:
            - amount > 0, at the currency's precision.
            - currency equals the related entity's currency.
            - method is one of the configured payment methods.
        Postconditions:
            - the related paid amount grew by ``amount`` and its status was
              re-derived; the Payment row and an audit row are flushed.

        Raises:
            ValidationError, CurrencyMismatchError, OverPaymentError,
            ConcurrentModificationError, *NotFoundError.
        """
        try:
            related_type = RelatedType(related_type)
        except ValueError as exc:
            raise ValidationError("related_type", f"unknown related type {related_type!r}") from exc
        method_value = method.value if isinstance(method, PaymentMethod) else str(method)
        currency = self._validate(related_type, related_id, amount, currency, method_value)

        with LogContext.bind(actor_id=str(actor_id)):
            if related_type is RelatedType.INSTALLMENT:
                self.installments.apply_payment(related_id, amount, payment_date, actor_id)
            elif related_type is RelatedType.DEBT:
                self.installments.apply_direct_payment(related_id, amount, payment_date, actor_id)
            else:
                self.milestones.apply_payment(related_id, amount, payment_date, actor_id)

            payment = Payment(
                related_type=related_type.value,
                related_id=related_id,
                payment_date=payment_date,
                amount=amount,
                currency=currency,
                method=method_value,
                notes=notes,
                created_by_id=actor_id,
            )
            self.session.add(payment)
            self.session.flush()

            AuditService(self.session).record(
                actor_id,
                "payment.recorded",
                "payment",
                payment.id,
                new_data={
                    "related_type": related_type,
                    "related_id": related_id,
                    "amount": amount,
                    "currency": currency,
                    "payment_date": payment_date,
                    "method": method_value,
                },
            )
            with LogContext.bind(payment_id=str(payment.id)):
                logger.info(
                    "payment_recorded",
                    extra={
                        "related_type": related_type.value,
                        "related_id": str(related_id),
                        "amount": str(amount),
                        "currency": currency,
                        "method": method_value,
                    },
                )
        return PaymentInfo.from_model(payment)

    def delete(self, payment_id: UUID, actor_id: UUID) -> PaymentInfo:
        """
        Reverse a payment's effect and remove it.

        Raises:
            PaymentNotFoundError: no such payment.
            InconsistentStateError: the reversal would drive paid below zero.
        """
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        info = PaymentInfo.from_model(payment)

        with LogContext.bind(actor_id=str(actor_id), payment_id=str(payment_id)):
            if info.related_type is RelatedType.INSTALLMENT:
                self.installments.reverse_payment(payment_id, actor_id)
            elif info.related_type is RelatedType.DEBT:
                self.installments.reverse_direct_payment(info.related_id, info.amount, actor_id)
            else:
                self.milestones.reverse_payment(payment_id, actor_id)

            self.session.delete(payment)
            self.session.flush()

            AuditService(self.session).record(
                actor_id,
                "payment.deleted",
                "payment",
                payment_id,
                old_data={
                    "related_type": info.related_type,
                    "related_id": info.related_id,
                    "amount": info.amount,
                    "currency": info.currency,
                    "payment_date": info.payment_date,
                },
            )
            logger.info(
                "payment_deleted",
                extra={
                    "related_type": info.related_type.value,
                    "related_id": str(info.related_id),
                    "amount": str(info.amount),
                },
            )
        return info

    def list_payments(
        self,
        related_type: RelatedType | None = None,
        related_id: UUID | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PaymentInfo]:
        return self.payments.list_payments(related_type, related_id, start, end)
