"""
Module: burnwise_kernel.selectors.exchange_rate_selector
Responsibility: Date-indexed, read-only lookups over ingested exchange rates.
Architecture position: Kernel > Selectors.

Lookup policy:
    1. The base currency is worth exactly 1; no row is consulted.
    2. An exact (rate_date, quote_currency) row wins.
    3. Otherwise the latest row dated before the valuation date.
    4. Otherwise: not found.  A rate dated after the valuation date is
       never used, and no default rate is assumed.

There is no cached "current rate"; every lookup is by valuation date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from burnwise_kernel.domain.currency import CurrencyRegistry
from burnwise_kernel.exceptions import ExchangeRateNotFoundError
from burnwise_kernel.models.exchange_rate import ExchangeRate, RateSource
from burnwise_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class RateQuote:
    """A resolved rate and the date of the row it came from."""

    currency: str
    base_currency: str
    rate: Decimal
    requested_date: date
    effective_date: date
    source: str

    @property
    def is_exact(self) -> bool:
        return self.requested_date == self.effective_date


class ExchangeRateTable(BaseSelector):
    """
    Read-only rate lookups against ``base_currency``.

    Contract:
        ``get_rate(currency, on_date)`` returns the rate on or before
        ``on_date`` or raises ExchangeRateNotFoundError.
    """

    def __init__(self, session: Session, base_currency: str = "TRY"):
        super().__init__(session)
        self.base_currency = CurrencyRegistry.normalize(base_currency)

    def _identity(self, on_date: date) -> RateQuote:
        return RateQuote(
            currency=self.base_currency,
            base_currency=self.base_currency,
            rate=Decimal("1"),
            requested_date=on_date,
            effective_date=on_date,
            source="identity",
        )

    def _to_quote(self, row: ExchangeRate, on_date: date) -> RateQuote:
        return RateQuote(
            currency=row.quote_currency,
            base_currency=row.base_currency,
            rate=row.rate,
            requested_date=on_date,
            effective_date=row.rate_date,
            source=RateSource(row.source).value,
        )

    def find_rate(self, currency: str, on_date: date) -> RateQuote | None:
        """Resolve a rate, returning None when nothing applies."""
        currency = CurrencyRegistry.normalize(currency)
        if currency == self.base_currency:
            return self._identity(on_date)

        stmt = (
            select(ExchangeRate)
            .where(
                ExchangeRate.quote_currency == currency,
                ExchangeRate.base_currency == self.base_currency,
                ExchangeRate.rate_date <= on_date,
            )
            .order_by(ExchangeRate.rate_date.desc())
            .limit(1)
        )
        row = self.session.execute(stmt).scalar_one_or_none()
        return self._to_quote(row, on_date) if row is not None else None

    def get_quote(self, currency: str, on_date: date) -> RateQuote:
        """
        Resolve a rate.

        Raises:
            ExchangeRateNotFoundError: no rate for ``currency`` on or before ``on_date``.
        """
        quote = self.find_rate(currency, on_date)
        if quote is None:
            raise ExchangeRateNotFoundError(
                CurrencyRegistry.normalize(currency), self.base_currency, on_date
            )
        return quote

    def get_rate(self, currency: str, on_date: date) -> Decimal:
        """Value of one unit of ``currency`` in the base currency on ``on_date``."""
        return self.get_quote(currency, on_date).rate

    def history(
        self,
        currency: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[RateQuote]:
        """All stored rates for ``currency`` in [start, end], oldest first."""
        currency = CurrencyRegistry.normalize(currency)
        stmt = select(ExchangeRate).where(
            ExchangeRate.quote_currency == currency,
            ExchangeRate.base_currency == self.base_currency,
        )
        if start is not None:
            stmt = stmt.where(ExchangeRate.rate_date >= start)
        if end is not None:
            stmt = stmt.where(ExchangeRate.rate_date <= end)
        stmt = stmt.order_by(ExchangeRate.rate_date)
        return [
            self._to_quote(row, row.rate_date)
            for row in self.session.execute(stmt).scalars()
        ]

    def latest_rates(self, on_date: date) -> dict[str, RateQuote]:
        """The applicable rate for every stored currency as of ``on_date``."""
        latest = (
            select(
                ExchangeRate.quote_currency.label("quote_currency"),
                func.max(ExchangeRate.rate_date).label("rate_date"),
            )
            .where(
                ExchangeRate.base_currency == self.base_currency,
                ExchangeRate.rate_date <= on_date,
            )
            .group_by(ExchangeRate.quote_currency)
            .subquery()
        )
        stmt = (
            select(ExchangeRate)
            .join(
                latest,
                and_(
                    ExchangeRate.quote_currency == latest.c.quote_currency,
                    ExchangeRate.rate_date == latest.c.rate_date,
                ),
            )
            .where(ExchangeRate.base_currency == self.base_currency)
            .order_by(ExchangeRate.quote_currency)
        )
        return {
            row.quote_currency: self._to_quote(row, on_date)
            for row in self.session.execute(stmt).scalars()
        }

    def available_currencies(self) -> list[str]:
        stmt = (
            select(ExchangeRate.quote_currency)
            .where(ExchangeRate.base_currency == self.base_currency)
            .distinct()
            .order_by(ExchangeRate.quote_currency)
        )
        return list(self.session.execute(stmt).scalars())
