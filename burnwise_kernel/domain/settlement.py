"""
Settlement -- status derivation for anything that is paid down over time.

Responsibility:
    Pure arithmetic shared by installments, milestones and unscheduled
    debts: given an amount due and an amount paid, derive the settlement
    status, apply a payment, reverse a payment.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Ledger services call
    into this module and persist the resulting values.

Invariants enforced:
    - 0 <= paid_amount <= amount_due after every successful operation.
    - status is a function of (amount_due, paid_amount) and nothing else:
      PAID iff equal, PARTIAL iff strictly between, PENDING iff zero.
    - Over-payments raise; they are never capped to the remaining amount.

Failure modes:
    - OverPaymentError when paid + payment exceeds amount_due + tolerance.
    - InconsistentStateError when a reversal would go below zero.
    - ValidationError for non-positive payment amounts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from burnwise_kernel.domain.currency import CurrencyRegistry
from burnwise_kernel.exceptions import (
    InconsistentStateError,
    OverPaymentError,
    ValidationError,
)

ZERO = Decimal("0")


class SettlementStatus(str, Enum):
    """Closed set of settlement states for installments and milestones."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


def derive_status(amount_due: Decimal, paid_amount: Decimal) -> SettlementStatus:
    """Map (amount_due, paid_amount) to its status."""
    if paid_amount == ZERO:
        return SettlementStatus.PENDING
    if paid_amount == amount_due:
        return SettlementStatus.PAID
    return SettlementStatus.PARTIAL


def effective_tolerance(currency: str, tolerance: Decimal) -> Decimal:
    """
    Tolerance actually applied for ``currency``.

    Capped at half a minor unit so that, with amounts held at currency
    precision, "within tolerance" and "exactly equal" coincide and the
    paid_amount <= amount_due invariant holds exactly.
    """
    return min(tolerance, CurrencyRegistry.get(currency).minor_unit / 2)


def is_overdue(status: SettlementStatus, due_date: date, as_of: date) -> bool:
    """True iff not fully paid and the due date is strictly before ``as_of``."""
    return status != SettlementStatus.PAID and due_date < as_of


@dataclass(frozen=True)
class Settlement:
    """
    Immutable (amount_due, paid_amount) pair.

    ``apply`` and ``reverse`` return new instances; the ORM row is updated
    by the caller from the returned values.
    """

    entity_type: str
    entity_id: str
    amount_due: Decimal
    paid_amount: Decimal = ZERO

    @property
    def status(self) -> SettlementStatus:
        return derive_status(self.amount_due, self.paid_amount)

    @property
    def remaining(self) -> Decimal:
        return self.amount_due - self.paid_amount

    def apply(self, payment: Decimal, tolerance: Decimal) -> Settlement:
        if payment <= ZERO:
            raise ValidationError("amount", f"payment must be positive, got {payment}")
        new_paid = self.paid_amount + payment
        if new_paid > self.amount_due + tolerance:
            raise OverPaymentError(
                self.entity_type,
                self.entity_id,
                amount_due=self.amount_due,
                paid_amount=self.paid_amount,
                attempted=payment,
            )
        return Settlement(self.entity_type, self.entity_id, self.amount_due, new_paid)

    def reverse(self, payment: Decimal) -> Settlement:
        new_paid = self.paid_amount - payment
        if new_paid < ZERO:
            raise InconsistentStateError(
                self.entity_type,
                self.entity_id,
                paid_amount=self.paid_amount,
                reversal=payment,
            )
        return Settlement(self.entity_type, self.entity_id, self.amount_due, new_paid)
