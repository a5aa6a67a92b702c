"""
Tests for ExchangeRateTable date-indexed lookups.

Lookup policy under test:
- exact date wins
- otherwise the latest earlier date
- a later rate is never used
- the base currency is always 1
"""

from datetime import date
from decimal import Decimal

import pytest

from burnwise_kernel.exceptions import ExchangeRateNotFoundError, InvalidCurrencyError
from burnwise_kernel.selectors.exchange_rate_selector import ExchangeRateTable


@pytest.fixture
def usd_rates(make_rate):
    make_rate("USD", date(2025, 1, 1), "31.5")
    make_rate("USD", date(2025, 1, 10), "32.0")
    make_rate("USD", date(2025, 2, 1), "30.25")


class TestGetRate:
    def test_exact_date(self, session, usd_rates):
        table = ExchangeRateTable(session)

        quote = table.get_quote("USD", date(2025, 1, 10))

        assert quote.rate == Decimal("32.0")
        assert quote.is_exact
        assert quote.effective_date == date(2025, 1, 10)

    def test_latest_earlier_date(self, session, usd_rates):
        table = ExchangeRateTable(session)

        quote = table.get_quote("USD", date(2025, 1, 31))

        assert quote.rate == Decimal("32.0")
        assert not quote.is_exact
        assert quote.requested_date == date(2025, 1, 31)
        assert quote.effective_date == date(2025, 1, 10)

    def test_later_rate_is_never_used(self, session, usd_rates):
        table = ExchangeRateTable(session)

        with pytest.raises(ExchangeRateNotFoundError) as exc_info:
            table.get_rate("USD", date(2024, 12, 31))

        err = exc_info.value
        assert err.currency == "USD"
        assert err.base_currency == "TRY"
        assert err.on_date == date(2024, 12, 31)
        assert err.reason == "MISSING_RATE"

    def test_base_currency_is_identity(self, session):
        table = ExchangeRateTable(session)

        assert table.get_rate("TRY", date(1999, 1, 1)) == Decimal("1")
        assert table.get_quote("try", date(1999, 1, 1)).source == "identity"

    def test_unknown_currency_without_rows(self, session, usd_rates):
        table = ExchangeRateTable(session)

        with pytest.raises(ExchangeRateNotFoundError):
            table.get_rate("EUR", date(2025, 6, 1))

    def test_invalid_code(self, session):
        with pytest.raises(InvalidCurrencyError):
            ExchangeRateTable(session).get_rate("XYZ", date(2025, 6, 1))

    def test_find_rate_returns_none(self, session):
        assert ExchangeRateTable(session).find_rate("USD", date(2025, 6, 1)) is None


class TestRateQueries:
    def test_history_in_range(self, session, usd_rates):
        table = ExchangeRateTable(session)

        history = table.history("USD", start=date(2025, 1, 5), end=date(2025, 2, 1))

        assert [q.effective_date for q in history] == [date(2025, 1, 10), date(2025, 2, 1)]

    def test_latest_rates(self, session, usd_rates, make_rate):
        make_rate("EUR", date(2025, 1, 5), "34.5")
        table = ExchangeRateTable(session)

        latest = table.latest_rates(date(2025, 1, 20))

        assert set(latest) == {"USD", "EUR"}
        assert latest["USD"].rate == Decimal("32.0")
        assert latest["EUR"].rate == Decimal("34.5")

    def test_available_currencies(self, session, usd_rates, make_rate):
        make_rate("GR", date(2025, 1, 5), "2950.5")

        assert ExchangeRateTable(session).available_currencies() == ["GR", "USD"]
