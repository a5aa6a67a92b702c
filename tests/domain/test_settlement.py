"""
Tests for the pure settlement arithmetic in burnwise_kernel.domain.settlement.

Covers:
- Status derivation from (amount_due, paid_amount)
- Applying and reversing payments, including the boundaries
- Tolerance capping per currency
- Overdue detection
"""

from datetime import date
from decimal import Decimal

import pytest

from burnwise_kernel.domain.settlement import (
    Settlement,
    SettlementStatus,
    derive_status,
    effective_tolerance,
    is_overdue,
)
from burnwise_kernel.exceptions import (
    InconsistentStateError,
    OverPaymentError,
    ValidationError,
)

TOL = Decimal("0.005")


class TestDeriveStatus:
    def test_nothing_paid_is_pending(self):
        assert derive_status(Decimal("100.00"), Decimal("0")) is SettlementStatus.PENDING

    def test_part_paid_is_partial(self):
        assert derive_status(Decimal("100.00"), Decimal("0.01")) is SettlementStatus.PARTIAL
        assert derive_status(Decimal("100.00"), Decimal("99.99")) is SettlementStatus.PARTIAL

    def test_fully_paid_is_paid(self):
        assert derive_status(Decimal("100.00"), Decimal("100.00")) is SettlementStatus.PAID

    def test_scale_does_not_matter(self):
        """Values read back from the database carry extra scale."""
        assert derive_status(Decimal("100.00"), Decimal("100.000000000")) is SettlementStatus.PAID


class TestSettlementApply:
    def test_apply_returns_new_instance(self):
        before = Settlement("installment", "i-1", Decimal("1000.00"))
        after = before.apply(Decimal("400.00"), TOL)

        assert before.paid_amount == Decimal("0")
        assert after.paid_amount == Decimal("400.00")
        assert after.status is SettlementStatus.PARTIAL
        assert after.remaining == Decimal("600.00")

    def test_apply_exact_remainder_settles(self):
        s = Settlement("installment", "i-1", Decimal("1000.00"), Decimal("400.00"))
        after = s.apply(Decimal("600.00"), TOL)

        assert after.status is SettlementStatus.PAID
        assert after.remaining == Decimal("0")

    def test_over_payment_raises_and_is_not_capped(self):
        s = Settlement("installment", "i-1", Decimal("1000.00"), Decimal("400.00"))

        with pytest.raises(OverPaymentError) as exc_info:
            s.apply(Decimal("600.01"), TOL)

        err = exc_info.value
        assert err.code == "OVER_PAYMENT"
        assert err.entity_type == "installment"
        assert err.amount_due == Decimal("1000.00")
        assert err.paid_amount == Decimal("400.00")
        assert err.attempted == Decimal("600.01")

    def test_payment_on_settled_line_raises(self):
        s = Settlement("installment", "i-1", Decimal("50.00"), Decimal("50.00"))

        with pytest.raises(OverPaymentError):
            s.apply(Decimal("0.01"), TOL)

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
    def test_non_positive_payment_rejected(self, amount):
        s = Settlement("installment", "i-1", Decimal("50.00"))

        with pytest.raises(ValidationError):
            s.apply(amount, TOL)


class TestSettlementReverse:
    def test_reverse_back_to_pending(self):
        s = Settlement("installment", "i-1", Decimal("1000.00"), Decimal("1000.00"))
        after = s.reverse(Decimal("1000.00"))

        assert after.paid_amount == Decimal("0")
        assert after.status is SettlementStatus.PENDING

    def test_reverse_reopens_paid_line(self):
        s = Settlement("installment", "i-1", Decimal("1000.00"), Decimal("1000.00"))

        assert s.reverse(Decimal("0.01")).status is SettlementStatus.PARTIAL

    def test_reverse_below_zero_raises(self):
        s = Settlement("milestone", "m-1", Decimal("1000.00"), Decimal("10.00"))

        with pytest.raises(InconsistentStateError) as exc_info:
            s.reverse(Decimal("10.01"))

        assert exc_info.value.code == "INCONSISTENT_STATE"
        assert exc_info.value.reversal == Decimal("10.01")


class TestEffectiveTolerance:
    def test_two_decimal_currency_keeps_default(self):
        assert effective_tolerance("TRY", TOL) == Decimal("0.005")

    def test_three_decimal_currency_is_capped(self):
        assert effective_tolerance("XAU", TOL) == Decimal("0.0005")

    def test_zero_decimal_currency_keeps_default(self):
        assert effective_tolerance("JPY", TOL) == Decimal("0.005")

    def test_smaller_configured_tolerance_wins(self):
        assert effective_tolerance("TRY", Decimal("0.001")) == Decimal("0.001")


class TestIsOverdue:
    def test_unpaid_past_due(self):
        assert is_overdue(SettlementStatus.PENDING, date(2025, 1, 31), date(2025, 2, 1))

    def test_due_today_is_not_overdue(self):
        assert not is_overdue(SettlementStatus.PARTIAL, date(2025, 2, 1), date(2025, 2, 1))

    def test_paid_is_never_overdue(self):
        assert not is_overdue(SettlementStatus.PAID, date(2020, 1, 1), date(2025, 2, 1))
