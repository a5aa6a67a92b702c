"""Tests for CurrencyConverter valuation and cross-currency conversion."""

from datetime import date
from decimal import Decimal

import pytest

from burnwise_kernel.exceptions import ConversionError
from burnwise_kernel.services.currency_converter import CurrencyConverter


@pytest.fixture
def rates(make_rate):
    make_rate("USD", date(2025, 1, 1), "32.0")
    make_rate("EUR", date(2025, 1, 1), "34.5")
    make_rate("USD", date(2025, 3, 1), "30.25")


class TestToBase:
    def test_converts_with_rate_on_or_before(self, session, rates):
        converter = CurrencyConverter.for_session(session)

        assert converter.to_base(Decimal("100.00"), "USD", date(2025, 2, 15)) == Decimal("3200.00")
        assert converter.to_base(Decimal("100.00"), "USD", date(2025, 3, 1)) == Decimal("3025.00")

    def test_base_currency_is_identity(self, session):
        converter = CurrencyConverter.for_session(session)

        assert converter.to_base(Decimal("12.34"), "TRY", date(2025, 1, 1)) == Decimal("12.34")

    def test_missing_rate_raises_conversion_error(self, session, rates, captured_logs):
        converter = CurrencyConverter.for_session(session)

        with pytest.raises(ConversionError) as exc_info:
            converter.to_base(Decimal("1.00"), "GBP", date(2025, 2, 1))

        assert exc_info.value.reason == ConversionError.MISSING_RATE
        assert exc_info.value.currency == "GBP"
        warnings = [r for r in captured_logs() if r["message"] == "conversion_missing_rate"]
        assert warnings and warnings[0]["currency"] == "GBP"

    def test_result_is_not_rounded(self, session, make_rate):
        make_rate("USD", date(2025, 1, 1), "30.25")
        converter = CurrencyConverter.for_session(session)

        result = converter.to_base(Decimal("0.01"), "USD", date(2025, 1, 1))

        assert result == Decimal("0.3025")

    def test_quote_reports_rate_and_date(self, session, rates):
        conversion = CurrencyConverter.for_session(session).quote(
            Decimal("10.00"), "USD", date(2025, 2, 1)
        )

        assert conversion.rate == Decimal("32.0")
        assert conversion.rate_date == date(2025, 1, 1)
        assert conversion.base_amount == Decimal("320.00")


class TestCrossConversion:
    def test_foreign_to_foreign_goes_through_base(self, session, rates):
        converter = CurrencyConverter.for_session(session)

        # 69 EUR * 34.5 = 2380.5 TRY / 32 = 74.390625 USD
        assert converter.convert(Decimal("69.00"), "EUR", "USD", date(2025, 1, 1)) == Decimal("74.390625")

    def test_base_to_foreign(self, session, rates):
        converter = CurrencyConverter.for_session(session)

        assert converter.convert(Decimal("320.00"), "TRY", "USD", date(2025, 1, 1)) == Decimal("10")

    def test_same_currency_needs_no_rate(self, session):
        converter = CurrencyConverter.for_session(session)

        assert converter.convert(Decimal("5.00"), "GBP", "gbp", date(2025, 1, 1)) == Decimal("5.00")

    def test_missing_target_rate(self, session, rates):
        with pytest.raises(ConversionError):
            CurrencyConverter.for_session(session).convert(
                Decimal("1.00"), "USD", "GBP", date(2025, 1, 1)
            )
