"""
Module: burnwise_kernel.selectors.payment_selector
Responsibility: Read access to recorded payments as PaymentInfo DTOs.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from burnwise_kernel.exceptions import PaymentNotFoundError
from burnwise_kernel.models.payment import Payment, PaymentMethod, RelatedType
from burnwise_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PaymentInfo:
    """Immutable DTO for a recorded payment."""

    id: UUID
    related_type: RelatedType
    related_id: UUID
    payment_date: date
    amount: Decimal
    currency: str
    method: PaymentMethod
    notes: str | None
    created_by_id: UUID

    @classmethod
    def from_model(cls, payment: Payment) -> PaymentInfo:
        return cls(
            id=payment.id,
            related_type=RelatedType(payment.related_type),
            related_id=payment.related_id,
            payment_date=payment.payment_date,
            amount=payment.amount,
            currency=payment.currency,
            method=PaymentMethod(payment.method),
            notes=payment.notes,
            created_by_id=payment.created_by_id,
        )


class PaymentSelector(BaseSelector):
    """Queries over the payments table."""

    def get(self, payment_id: UUID) -> PaymentInfo:
        """
        Raises:
            PaymentNotFoundError: If the payment doesn't exist.
        """
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return PaymentInfo.from_model(payment)

    def list_payments(
        self,
        related_type: RelatedType | None = None,
        related_id: UUID | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PaymentInfo]:
        """Payments matching every given filter, oldest first."""
        stmt = select(Payment)
        if related_type is not None:
            stmt = stmt.where(Payment.related_type == RelatedType(related_type).value)
        if related_id is not None:
            stmt = stmt.where(Payment.related_id == related_id)
        if start is not None:
            stmt = stmt.where(Payment.payment_date >= start)
        if end is not None:
            stmt = stmt.where(Payment.payment_date <= end)
        stmt = stmt.order_by(Payment.payment_date, Payment.created_at)
        return [PaymentInfo.from_model(p) for p in self.session.execute(stmt).scalars()]
