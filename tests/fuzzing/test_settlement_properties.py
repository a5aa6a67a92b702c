"""
Property-based tests for the settlement and schedule arithmetic.

Properties:
- Any sequence of accepted payments keeps 0 <= paid <= amount_due, and
  the status is always the one derived from (amount_due, paid).
- A payment that would overshoot raises and leaves the state unchanged.
- Reversing every accepted payment returns to PENDING with paid == 0.
- split_evenly always sums to the principal exactly, with positive
  lines at currency precision and at most one differing line (the last).
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from burnwise_kernel.domain.currency import has_currency_precision
from burnwise_kernel.domain.schedule import split_evenly
from burnwise_kernel.domain.settlement import (
    Settlement,
    SettlementStatus,
    derive_status,
    effective_tolerance,
)
from burnwise_kernel.exceptions import OverPaymentError, ValidationError

TOLERANCE = effective_tolerance("TRY", Decimal("0.005"))


def cents(min_value: str, max_value: str):
    return st.decimals(
        min_value=Decimal(min_value),
        max_value=Decimal(max_value),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    )


@given(amount_due=cents("0.01", "1000000.00"), payments=st.lists(cents("0.01", "500000.00"), max_size=25))
@settings(max_examples=200)
def test_paid_stays_within_bounds(amount_due, payments):
    state = Settlement("installment", "fuzz", amount_due)
    accepted = []

    for payment in payments:
        try:
            new_state = state.apply(payment, TOLERANCE)
        except OverPaymentError:
            assert state.paid_amount + payment > amount_due
            continue
        accepted.append(payment)
        state = new_state
        assert Decimal("0") <= state.paid_amount <= amount_due
        assert state.status is derive_status(amount_due, state.paid_amount)

    assert state.paid_amount == sum(accepted, Decimal("0"))

    for payment in reversed(accepted):
        state = state.reverse(payment)
    assert state.paid_amount == Decimal("0")
    assert state.status is SettlementStatus.PENDING


@given(amount_due=cents("0.01", "1000000.00"), extra=cents("0.01", "1000.00"))
def test_overshoot_always_raises(amount_due, extra):
    paid_off = Settlement("installment", "fuzz", amount_due).apply(amount_due, TOLERANCE)

    assert paid_off.status is SettlementStatus.PAID
    with pytest.raises(OverPaymentError):
        paid_off.apply(extra, TOLERANCE)


@given(payment=st.decimals(max_value=Decimal("0"), places=2, allow_nan=False, allow_infinity=False))
def test_non_positive_payment_rejected(payment):
    with pytest.raises(ValidationError):
        Settlement("installment", "fuzz", Decimal("100.00")).apply(payment, TOLERANCE)


@given(
    principal=cents("1.00", "10000000.00"),
    count=st.integers(min_value=1, max_value=60),
    first_due=st.dates(min_value=date(2020, 1, 1), max_value=date(2035, 12, 31)),
)
@settings(max_examples=200)
def test_split_evenly_sums_to_principal(principal, count, first_due):
    try:
        lines = split_evenly(principal, "TRY", count, first_due)
    except ValidationError:
        # too many lines for too small a principal
        assert count > 1 and principal / count < Decimal("1")
        return

    assert len(lines) == count
    assert sum((line.amount for line in lines), Decimal("0")) == principal
    assert all(line.amount > 0 and has_currency_precision(line.amount, "TRY") for line in lines)
    assert len({line.amount for line in lines[:-1]}) <= 1
    assert [line.due_date for line in lines] == sorted(line.due_date for line in lines)
    assert lines[0].due_date == first_due
