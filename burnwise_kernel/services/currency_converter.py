"""
CurrencyConverter -- values amounts in the base currency on a given date.

Responsibility:
    Turns (amount, currency, date) into a base-currency amount using the
    rate ExchangeRateTable resolves for that date.  Cross-currency
    conversion triangulates through the base.

Invariants enforced:
    - Identity for the base currency; no rate row is consulted.
    - A missing rate raises ConversionError(reason=MISSING_RATE).  No
      default rate is ever assumed.
    - Results are NOT rounded; rounding happens at the display boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from burnwise_kernel.domain.currency import CurrencyRegistry
from burnwise_kernel.exceptions import ConversionError
from burnwise_kernel.logging_config import get_logger
from burnwise_kernel.selectors.exchange_rate_selector import ExchangeRateTable

logger = get_logger("services.currency_converter")


@dataclass(frozen=True)
class Conversion:
    """A converted amount together with the rate that produced it."""

    amount: Decimal
    currency: str
    on_date: date
    base_amount: Decimal
    base_currency: str
    rate: Decimal
    rate_date: date


class CurrencyConverter:
    """
    Converts amounts into the rate table's base currency.

    Contract:
        ``to_base(amount, currency, on_date)`` returns ``amount * rate``
        where rate is the latest rate on or before ``on_date``.
    """

    def __init__(self, rates: ExchangeRateTable):
        self.rates = rates

    @classmethod
    def for_session(cls, session: Session, base_currency: str = "TRY") -> CurrencyConverter:
        return cls(ExchangeRateTable(session, base_currency))

    @property
    def base_currency(self) -> str:
        return self.rates.base_currency

    def quote(self, amount: Decimal, currency: str, on_date: date) -> Conversion:
        """
        Convert and report the rate used.

        Raises:
            ConversionError: no applicable rate (reason MISSING_RATE).
        """
        try:
            rate_quote = self.rates.get_quote(currency, on_date)
        except ConversionError as exc:
            logger.warning(
                "conversion_missing_rate",
                extra={
                    "currency": exc.currency,
                    "on_date": on_date.isoformat(),
                    "base_currency": self.base_currency,
                },
            )
            raise
        return Conversion(
            amount=amount,
            currency=rate_quote.currency,
            on_date=on_date,
            base_amount=amount * rate_quote.rate,
            base_currency=self.base_currency,
            rate=rate_quote.rate,
            rate_date=rate_quote.effective_date,
        )

    def to_base(self, amount: Decimal, currency: str, on_date: date) -> Decimal:
        """Value ``amount`` of ``currency`` in the base currency on ``on_date``."""
        if CurrencyRegistry.normalize(currency) == self.base_currency:
            return amount
        return self.quote(amount, currency, on_date).base_amount

    def convert(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
        on_date: date,
    ) -> Decimal:
        """
        Convert between two currencies via the base.

        ``amount * rate(from) / rate(to)``; either side may be the base.
        """
        from_currency = CurrencyRegistry.normalize(from_currency)
        to_currency = CurrencyRegistry.normalize(to_currency)
        if from_currency == to_currency:
            return amount
        base_amount = self.to_base(amount, from_currency, on_date)
        if to_currency == self.base_currency:
            return base_amount
        target_rate = self.quote(Decimal("1"), to_currency, on_date).rate
        return base_amount / target_rate
