"""Tests for ExchangeRateService: upsert, import and delete of daily rates."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from burnwise_kernel.exceptions import ExchangeRateNotFoundError, InvalidCurrencyError, ValidationError
from burnwise_kernel.models.exchange_rate import ExchangeRate, RateSource
from burnwise_kernel.selectors.exchange_rate_selector import ExchangeRateTable
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.exchange_rate_service import ExchangeRateService

DAY = date(2025, 3, 3)


@pytest.fixture
def rates(session):
    return ExchangeRateService(session)


class TestSetRate:
    def test_insert(self, session, rates, test_actor_id):
        quote = rates.set_rate(DAY, "usd", Decimal("34.5"), test_actor_id)

        assert quote.currency == "USD"
        assert quote.base_currency == "TRY"
        assert quote.rate == Decimal("34.5")
        assert quote.is_exact
        assert quote.source == RateSource.MANUAL.value

    def test_upsert_replaces_the_day(self, session, rates, test_actor_id):
        first = rates.set_rate(DAY, "USD", Decimal("34.5"), test_actor_id)
        rates.set_rate(DAY, "USD", Decimal("34.0"), test_actor_id, source="tcmb")

        table = ExchangeRateTable(session, "TRY")
        assert table.get_rate("USD", DAY) == Decimal("34.0")
        assert len(table.history("USD")) == 1
        assert first.rate == Decimal("34.5")

    def test_update_is_audited(self, session, rates, test_actor_id):
        rates.set_rate(DAY, "EUR", Decimal("37.0"), test_actor_id)
        rates.set_rate(DAY, "EUR", Decimal("37.5"), test_actor_id)

        row = session.execute(select(ExchangeRate)).scalar_one()
        actions = {e.action for e in AuditService(session).history("exchange_rate", row.id)}
        assert actions == {"exchange_rate.created", "exchange_rate.updated"}

    def test_base_currency_rejected(self, rates, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            rates.set_rate(DAY, "TRY", Decimal("1"), test_actor_id)

        assert exc_info.value.field == "quote_currency"

    @pytest.mark.parametrize("bad", [Decimal("0"), Decimal("-1.5"), 34.5])
    def test_non_positive_or_float_rate(self, rates, test_actor_id, bad):
        with pytest.raises(ValidationError) as exc_info:
            rates.set_rate(DAY, "USD", bad, test_actor_id)

        assert exc_info.value.field == "rate"

    def test_unknown_currency(self, rates, test_actor_id):
        with pytest.raises(InvalidCurrencyError):
            rates.set_rate(DAY, "QQQ", Decimal("1"), test_actor_id)


class TestImportRates:
    def test_import_day(self, session, rates, test_actor_id):
        quotes = rates.import_rates({"USD": Decimal("34.5"), "EUR": Decimal("37.0")}, DAY, test_actor_id)

        assert [q.currency for q in quotes] == ["EUR", "USD"]
        assert all(q.source == RateSource.TCMB.value for q in quotes)
        assert ExchangeRateTable(session, "TRY").available_currencies() == ["EUR", "USD"]

    def test_invalid_entry_aborts(self, rates, test_actor_id):
        with pytest.raises(ValidationError):
            rates.import_rates({"USD": Decimal("34.5"), "EUR": Decimal("0")}, DAY, test_actor_id)


class TestDeleteRate:
    def test_delete(self, session, rates, test_actor_id):
        rates.set_rate(DAY, "USD", Decimal("34.5"), test_actor_id)

        rates.delete_rate(DAY, "USD", test_actor_id)

        assert ExchangeRateTable(session, "TRY").history("USD") == []

    def test_delete_missing(self, rates, test_actor_id):
        with pytest.raises(ExchangeRateNotFoundError):
            rates.delete_rate(DAY, "USD", test_actor_id)
