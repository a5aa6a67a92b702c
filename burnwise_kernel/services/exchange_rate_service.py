"""
ExchangeRateService -- write side of the rate table.

Rates are entered by hand or imported from an upstream feed (TCMB,
kapali-carsi) that lives outside the kernel.  Both paths upsert on
(rate_date, quote_currency): a second rate for the same day replaces the
first, and the replacement is audited.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from burnwise_kernel.domain.currency import CurrencyRegistry
from burnwise_kernel.exceptions import ExchangeRateNotFoundError, ValidationError
from burnwise_kernel.logging_config import get_logger
from burnwise_kernel.models.exchange_rate import ExchangeRate, RateSource
from burnwise_kernel.selectors.exchange_rate_selector import ExchangeRateTable, RateQuote
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.base import BaseService

logger = get_logger("services.exchange_rate")


class ExchangeRateService(BaseService):
    """Upsert and delete exchange rates against the policy's base currency."""

    @property
    def base_currency(self) -> str:
        return self.policy.base_currency

    def _existing(self, rate_date: date, quote_currency: str) -> ExchangeRate | None:
        stmt = select(ExchangeRate).where(
            ExchangeRate.rate_date == rate_date,
            ExchangeRate.quote_currency == quote_currency,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def set_rate(
        self,
        rate_date: date,
        quote_currency: str,
        rate: Decimal,
        actor_id: UUID,
        source: RateSource | str = RateSource.MANUAL,
    ) -> RateQuote:
        """
        Insert or replace the rate of ``quote_currency`` on ``rate_date``.

        Raises:
            ValidationError: rate <= 0, or the quote is the base currency.
            InvalidCurrencyError: unknown currency code.
        """
        quote_currency = CurrencyRegistry.normalize(quote_currency)
        if quote_currency == self.base_currency:
            raise ValidationError("quote_currency", f"{quote_currency} is the base currency")
        if not isinstance(rate, Decimal) or rate <= 0:
            raise ValidationError("rate", f"must be a positive Decimal, got {rate!r}")
        source = RateSource(source)

        row = self._existing(rate_date, quote_currency)
        audit = AuditService(self.session)
        if row is None:
            row = ExchangeRate(
                rate_date=rate_date,
                base_currency=self.base_currency,
                quote_currency=quote_currency,
                rate=rate,
                source=source.value,
                created_by_id=actor_id,
            )
            self.session.add(row)
            self.session.flush()
            audit.record(
                actor_id,
                "exchange_rate.created",
                "exchange_rate",
                row.id,
                new_data={"rate_date": rate_date, "quote_currency": quote_currency, "rate": rate},
            )
            event = "exchange_rate_created"
        else:
            old = {"rate": row.rate, "source": row.source}
            row.rate = rate
            row.source = source.value
            row.base_currency = self.base_currency
            row.updated_by_id = actor_id
            self.session.flush()
            audit.record(
                actor_id,
                "exchange_rate.updated",
                "exchange_rate",
                row.id,
                old_data=old,
                new_data={"rate": rate, "source": source},
            )
            event = "exchange_rate_updated"

        logger.info(
            event,
            extra={
                "rate_date": rate_date.isoformat(),
                "quote_currency": quote_currency,
                "rate": str(rate),
                "source": source.value,
            },
        )
        return ExchangeRateTable(self.session, self.base_currency).get_quote(quote_currency, rate_date)

    def import_rates(
        self,
        rates: Mapping[str, Decimal],
        rate_date: date,
        actor_id: UUID,
        source: RateSource | str = RateSource.TCMB,
    ) -> list[RateQuote]:
        """Upsert a whole day's feed; any invalid entry aborts the batch."""
        quotes = [
            self.set_rate(rate_date, currency, rate, actor_id, source)
            for currency, rate in sorted(rates.items())
        ]
        logger.info(
            "exchange_rates_imported",
            extra={"rate_date": rate_date.isoformat(), "count": len(quotes), "source": RateSource(source).value},
        )
        return quotes

    def delete_rate(self, rate_date: date, quote_currency: str, actor_id: UUID) -> None:
        """
        Raises:
            ExchangeRateNotFoundError: no rate stored for exactly that day.
        """
        quote_currency = CurrencyRegistry.normalize(quote_currency)
        row = self._existing(rate_date, quote_currency)
        if row is None:
            raise ExchangeRateNotFoundError(quote_currency, self.base_currency, rate_date)
        old = {"rate_date": row.rate_date, "quote_currency": row.quote_currency, "rate": row.rate}
        row_id = row.id
        self.session.delete(row)
        self.session.flush()
        AuditService(self.session).record(
            actor_id, "exchange_rate.deleted", "exchange_rate", row_id, old_data=old
        )
        logger.info(
            "exchange_rate_deleted",
            extra={"rate_date": rate_date.isoformat(), "quote_currency": quote_currency},
        )
