"""
Module: burnwise_kernel.models.exchange_rate
Responsibility: ORM persistence for daily exchange rates, one row per
    (rate_date, quote_currency), each giving the value of one unit of the
    quote currency in the base currency.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (rate_date, quote_currency) is unique (uq_rate_date_quote).
    - rate > 0.
    - Rows are looked up by valuation date; there is no "current rate" row.

Audit relevance:
    source records where the rate came from (manual entry, TCMB,
    kapali-carsi) so report figures can be traced to their inputs.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from burnwise_kernel.db.base import TrackedBase


class RateSource(str, Enum):
    MANUAL = "manual"
    TCMB = "tcmb"
    KAPALI_CARSI = "kapali-carsi"


class ExchangeRate(TrackedBase):
    """
    quote_currency -> base_currency conversion factor for one day.

    ``amount_in_quote * rate = amount_in_base``.
    """

    __tablename__ = "exchange_rates"

    __table_args__ = (
        UniqueConstraint("rate_date", "quote_currency", name="uq_rate_date_quote"),
        CheckConstraint("rate > 0", name="ck_rate_positive"),
        Index("idx_rate_lookup", "quote_currency", "rate_date"),
    )

    rate_date: Mapped[date] = mapped_column(nullable=False)

    base_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="TRY")

    quote_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    rate: Mapped[Decimal] = mapped_column(nullable=False)

    source: Mapped[RateSource] = mapped_column(
        String(20),
        nullable=False,
        default=RateSource.MANUAL,
    )

    def __repr__(self) -> str:
        return f"<ExchangeRate {self.quote_currency}/{self.base_currency} = {self.rate} on {self.rate_date}>"

    def convert(self, amount: Decimal) -> Decimal:
        """Value ``amount`` of the quote currency in the base currency.  Not rounded."""
        return amount * self.rate
