"""
Schedule -- building and validating installment plans.

Responsibility:
    Pure functions that turn a principal into an ordered list of
    ``ScheduleLine`` values and check a caller-supplied list against the
    principal it is meant to split.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - sum(line.amount) == principal within tolerance.
    - every due_date >= the debt's start_date.
    - every amount is positive and at currency precision.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from burnwise_kernel.domain.currency import CurrencyRegistry, has_currency_precision
from burnwise_kernel.exceptions import ScheduleMismatchError, ValidationError


@dataclass(frozen=True)
class ScheduleLine:
    """One proposed installment: when it is due and how much.

    currency may be left as None, meaning "the currency of the debt".
    """

    due_date: date
    amount: Decimal
    currency: str | None = None
    notes: str | None = None


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the last day of a shorter month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def split_evenly(
    principal: Decimal,
    currency: str,
    count: int,
    first_due_date: date,
) -> list[ScheduleLine]:
    """
    Equal monthly plan; the last line absorbs the rounding remainder.

    1000.00 over 3 gives 333.33, 333.33, 333.34 due on the first due date
    and the same day in each following month.
    """
    if count < 1:
        raise ValidationError("installment_count", f"must be at least 1, got {count}")
    quantum = Decimal(CurrencyRegistry.get(currency).quantize_string)
    each = (principal / count).quantize(quantum, rounding=ROUND_HALF_UP)
    if each <= 0:
        raise ValidationError(
            "installment_count",
            f"{principal} {currency} cannot be split into {count} positive installments",
        )

    lines = [
        ScheduleLine(due_date=add_months(first_due_date, i), amount=each)
        for i in range(count - 1)
    ]
    last = principal - each * (count - 1)
    if last <= 0:
        raise ValidationError(
            "installment_count",
            f"{principal} {currency} cannot be split into {count} positive installments",
        )
    lines.append(ScheduleLine(due_date=add_months(first_due_date, count - 1), amount=last))
    return lines


def validate_schedule(
    owner_id: str,
    principal: Decimal,
    currency: str,
    start_date: date,
    lines: list[ScheduleLine],
    tolerance: Decimal,
) -> Decimal:
    """
    Check ``lines`` against the principal they split.  Returns the line total.

    Raises:
        ScheduleMismatchError: empty schedule, total off by more than
            ``tolerance``, or a due date before ``start_date``.
        ValidationError: a non-positive amount or one finer than the
            currency's precision.
    """
    if not lines:
        raise ScheduleMismatchError(owner_id, principal, Decimal("0"), "schedule is empty")

    for index, line in enumerate(lines):
        if line.amount <= 0:
            raise ValidationError(f"installments[{index}].amount", "must be positive")
        if not has_currency_precision(line.amount, currency):
            raise ValidationError(
                f"installments[{index}].amount",
                f"{line.amount} exceeds {currency} precision",
            )
        if line.due_date < start_date:
            raise ScheduleMismatchError(
                owner_id,
                principal,
                line.amount,
                f"installment {index + 1} due {line.due_date} is before start date {start_date}",
            )

    total = sum((line.amount for line in lines), Decimal("0"))
    if abs(total - principal) > tolerance:
        raise ScheduleMismatchError(
            owner_id, principal, total, "installment amounts do not sum to the principal"
        )
    return total
