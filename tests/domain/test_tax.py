"""Tests for the VAT / withholding breakdown in burnwise_kernel.domain.tax."""

from decimal import Decimal

import pytest

from burnwise_kernel.domain.tax import compute_breakdown
from burnwise_kernel.exceptions import ValidationError


class TestComputeBreakdown:
    def test_income_deducts_withholding(self):
        b = compute_breakdown(Decimal("1000.00"), "TRY", Decimal("20"), Decimal("10"))

        assert b.vat_amount == Decimal("200.00")
        assert b.withholding_amount == Decimal("100.00")
        assert b.net_amount == Decimal("1100.00")

    def test_expense_keeps_withholding_informational(self):
        b = compute_breakdown(Decimal("1000.00"), "TRY", Decimal("20"), Decimal("10"), deduct_withholding=False)

        assert b.withholding_amount == Decimal("100.00")
        assert b.net_amount == Decimal("1200.00")

    def test_no_rates(self):
        b = compute_breakdown(Decimal("49.99"), "USD")

        assert b.vat_amount == Decimal("0")
        assert b.withholding_amount == Decimal("0")
        assert b.net_amount == Decimal("49.99")

    def test_rounded_half_up_to_currency(self):
        # VAT 0.126 -> 0.13, withholding 0.063 -> 0.06
        b = compute_breakdown(Decimal("0.63"), "TRY", Decimal("20"), Decimal("10"))

        assert b.vat_amount == Decimal("0.13")
        assert b.withholding_amount == Decimal("0.06")
        assert b.net_amount == Decimal("0.70")

    def test_zero_decimal_currency(self):
        b = compute_breakdown(Decimal("1005"), "JPY", Decimal("10"))

        assert b.vat_amount == Decimal("101")
        assert b.net_amount == Decimal("1106")

    @pytest.mark.parametrize(
        "field, kwargs",
        [
            ("vat_rate", {"vat_rate": Decimal("-1")}),
            ("vat_rate", {"vat_rate": Decimal("100.01")}),
            ("withholding_rate", {"withholding_rate": Decimal("150")}),
        ],
    )
    def test_rate_out_of_range(self, field, kwargs):
        with pytest.raises(ValidationError) as exc_info:
            compute_breakdown(Decimal("10.00"), "TRY", **kwargs)

        assert exc_info.value.field == field
