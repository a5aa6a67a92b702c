"""
TransactionAggregator -- income and expense totals in a base currency.

Responsibility:
    Values each transaction's net amount in a base currency at the
    transaction date and sums income, expense and the balance over a
    period.  Also builds the per-transaction report and the month view
    shown on the dashboard.

Architecture position:
    Kernel > Services.  Read-only: reads through TransactionService and
    values through CurrencyConverter; never flushes.

Invariants enforced:
    - balance == income.total_base - expense.total_base, unrounded.
    - Native per-currency totals include every transaction; a transaction
      with no applicable rate is left out of the base totals only and
      listed in ``warnings``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from burnwise_kernel.domain.clock import Clock
from burnwise_kernel.domain.currency import CurrencyRegistry
from burnwise_kernel.domain.policy import LedgerPolicy
from burnwise_kernel.exceptions import ConversionError, ValidationError
from burnwise_kernel.logging_config import get_logger
from burnwise_kernel.models.transaction import TransactionType
from burnwise_kernel.services.base import BaseService
from burnwise_kernel.services.currency_converter import CurrencyConverter
from burnwise_kernel.services.transaction_service import TransactionInfo, TransactionService

logger = get_logger("services.transaction_aggregator")

ZERO = Decimal("0")


@dataclass(frozen=True)
class TransactionWarning:
    """A transaction left out of the base totals because it could not be valued."""

    transaction_id: UUID
    currency: str
    on_date: date
    amount: Decimal
    reason: str


@dataclass(frozen=True)
class TypeTotals:
    transaction_type: TransactionType
    by_currency: dict[str, Decimal]
    total_base: Decimal
    count: int


@dataclass(frozen=True)
class TransactionSummary:
    date_from: date | None
    date_to: date | None
    base_currency: str
    income: TypeTotals
    expense: TypeTotals
    warnings: tuple[TransactionWarning, ...] = ()

    @property
    def balance(self) -> Decimal:
        return self.income.total_base - self.expense.total_base


@dataclass(frozen=True)
class TransactionReportRow:
    transaction: TransactionInfo
    net_base: Decimal | None

    @property
    def complete(self) -> bool:
        return self.net_base is not None


@dataclass(frozen=True)
class TransactionReport:
    rows: tuple[TransactionReportRow, ...]
    summary: TransactionSummary


@dataclass
class _Totals:
    transaction_type: TransactionType
    by_currency: dict[str, Decimal] = field(default_factory=dict)
    total_base: Decimal = ZERO
    count: int = 0

    def add(self, txn: TransactionInfo, net_base: Decimal | None) -> None:
        self.by_currency[txn.currency] = self.by_currency.get(txn.currency, ZERO) + txn.net_amount
        self.count += 1
        if net_base is not None:
            self.total_base += net_base

    def frozen(self) -> TypeTotals:
        return TypeTotals(self.transaction_type, dict(self.by_currency), self.total_base, self.count)


def month_bounds(day: date) -> tuple[date, date]:
    """First and last day of ``day``'s calendar month."""
    first = day.replace(day=1)
    next_first = (first + timedelta(days=32)).replace(day=1)
    return first, next_first - timedelta(days=1)


class TransactionAggregator(BaseService):
    """
    Base-currency valuation of transactions.

    Each transaction is valued at its own date with the latest rate on or
    before it.
    """

    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
        converter: CurrencyConverter | None = None,
    ):
        super().__init__(session, policy, clock)
        self.converter = converter or CurrencyConverter.for_session(session, self.policy.base_currency)
        self.transactions = TransactionService(session, self.policy, self.clock)

    def _value(self, txn: TransactionInfo, base: str) -> Decimal | TransactionWarning:
        try:
            return self.converter.convert(txn.net_amount, txn.currency, base, txn.transaction_date)
        except ConversionError as exc:
            return TransactionWarning(
                transaction_id=txn.id,
                currency=txn.currency,
                on_date=txn.transaction_date,
                amount=txn.net_amount,
                reason=exc.reason,
            )

    def transaction_report(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        base_currency: str | None = None,
        transaction_type: TransactionType | str | None = None,
        party_id: UUID | None = None,
        project_id: UUID | None = None,
        category: str | None = None,
    ) -> TransactionReport:
        """
        Every matching transaction with its base-currency value, plus totals.

        Raises:
            ValidationError: date_from after date_to.
        """
        if date_from is not None and date_to is not None and date_from > date_to:
            raise ValidationError("date_from", f"{date_from} is after {date_to}")
        base = CurrencyRegistry.normalize(base_currency or self.policy.base_currency)
        totals = {t: _Totals(t) for t in TransactionType}
        rows: list[TransactionReportRow] = []
        warnings: list[TransactionWarning] = []

        for txn in self.transactions.list_transactions(
            transaction_type, date_from, date_to, party_id, project_id, category
        ):
            valued = self._value(txn, base)
            if isinstance(valued, TransactionWarning):
                warnings.append(valued)
                valued = None
            totals[txn.transaction_type].add(txn, valued)
            rows.append(TransactionReportRow(txn, valued))

        summary = TransactionSummary(
            date_from=date_from,
            date_to=date_to,
            base_currency=base,
            income=totals[TransactionType.INCOME].frozen(),
            expense=totals[TransactionType.EXPENSE].frozen(),
            warnings=tuple(warnings),
        )
        if warnings:
            logger.warning(
                "transaction_summary_incomplete",
                extra={
                    "excluded_transactions": len(warnings),
                    "currencies": sorted({w.currency for w in warnings}),
                },
            )
        logger.info(
            "transaction_summary_computed",
            extra={
                "date_from": date_from.isoformat() if date_from else None,
                "date_to": date_to.isoformat() if date_to else None,
                "base_currency": base,
                "income": str(summary.income.total_base),
                "expense": str(summary.expense.total_base),
                "transaction_count": len(rows),
            },
        )
        return TransactionReport(rows=tuple(rows), summary=summary)

    def summarize(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        base_currency: str | None = None,
    ) -> TransactionSummary:
        """Income, expense and balance between the two dates, inclusive."""
        return self.transaction_report(date_from, date_to, base_currency).summary

    def month_summary(self, as_of: date | None = None, base_currency: str | None = None) -> TransactionSummary:
        """Totals for the calendar month containing ``as_of`` (default: today)."""
        first, last = month_bounds(as_of or self.clock.today())
        return self.summarize(first, last, base_currency)
