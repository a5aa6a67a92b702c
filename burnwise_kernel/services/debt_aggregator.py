"""
DebtAggregator -- base-currency totals over open debts and receivables.

Responsibility:
    Values every obligation line (installment, or the principal of an
    unscheduled debt) in a base currency at the line's due date and sums
    total / paid / remaining / overdue.  Also builds the per-debt report
    and the dashboard view (with the month's income and expense from
    TransactionAggregator).

Architecture position:
    Kernel > Services.  Read-only: uses DebtSelector for the lines and
    CurrencyConverter for valuation; never flushes.

Invariants enforced:
    - remaining == total - paid, exactly (sums are unrounded Decimals).
    - overdue <= remaining; only the unpaid part of overdue lines counts.
    - A line with no applicable rate is excluded from every sum and listed
      in ``warnings``; it never aborts the aggregation.
    - All lines of one summary come from a single SELECT.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from burnwise_kernel.domain.clock import Clock
from burnwise_kernel.domain.currency import CurrencyRegistry
from burnwise_kernel.domain.policy import LedgerPolicy
from burnwise_kernel.domain.settlement import is_overdue
from burnwise_kernel.exceptions import ConversionError
from burnwise_kernel.logging_config import get_logger
from burnwise_kernel.models.debt import DebtKind
from burnwise_kernel.selectors.debt_selector import DebtSelector, ObligationLine
from burnwise_kernel.services.base import BaseService
from burnwise_kernel.services.currency_converter import CurrencyConverter
from burnwise_kernel.services.transaction_aggregator import TransactionAggregator, TransactionSummary

logger = get_logger("services.debt_aggregator")

ZERO = Decimal("0")
_CENT = Decimal("0.01")


def _display(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ConversionWarning:
    """A line left out of a total because it could not be valued."""

    debt_id: UUID
    line_id: UUID
    currency: str
    on_date: date
    amount: Decimal
    reason: str


@dataclass(frozen=True)
class DebtSummary:
    kind: DebtKind
    as_of: date
    base_currency: str
    total: Decimal
    paid: Decimal
    remaining: Decimal
    overdue: Decimal
    warnings: tuple[ConversionWarning, ...] = ()

    def as_display(self) -> dict[str, object]:
        """Amounts rounded half-up to 2 decimals for presentation."""
        return {
            "kind": self.kind.value,
            "as_of": self.as_of.isoformat(),
            "base_currency": self.base_currency,
            "total": _display(self.total),
            "paid": _display(self.paid),
            "remaining": _display(self.remaining),
            "overdue": _display(self.overdue),
            "warnings": len(self.warnings),
        }


@dataclass(frozen=True)
class DebtReportRow:
    """One debt valued in the base currency."""

    debt_id: UUID
    kind: DebtKind
    party_id: UUID
    party_name: str
    currency: str
    principal: Decimal
    paid: Decimal
    remaining: Decimal
    principal_base: Decimal
    paid_base: Decimal
    remaining_base: Decimal
    overdue_base: Decimal
    line_count: int
    complete: bool


@dataclass(frozen=True)
class DebtReport:
    as_of: date
    base_currency: str
    rows: tuple[DebtReportRow, ...]
    totals: dict[DebtKind, DebtSummary]
    warnings: tuple[ConversionWarning, ...]

    @property
    def net_position(self) -> Decimal:
        """Receivable remaining minus debt remaining."""
        receivable = self.totals.get(DebtKind.RECEIVABLE)
        debt = self.totals.get(DebtKind.DEBT)
        return (receivable.remaining if receivable else ZERO) - (debt.remaining if debt else ZERO)


@dataclass(frozen=True)
class Dashboard:
    as_of: date
    base_currency: str
    debts: DebtSummary
    receivables: DebtSummary
    overdue: tuple[ObligationLine, ...]
    upcoming: tuple[ObligationLine, ...]
    month: TransactionSummary

    @property
    def net_position(self) -> Decimal:
        return self.receivables.remaining - self.debts.remaining


@dataclass
class _Accumulator:
    kind: DebtKind
    total: Decimal = ZERO
    paid: Decimal = ZERO
    overdue: Decimal = ZERO
    warnings: list[ConversionWarning] = field(default_factory=list)

    def summary(self, as_of: date, base_currency: str) -> DebtSummary:
        return DebtSummary(
            kind=self.kind,
            as_of=as_of,
            base_currency=base_currency,
            total=self.total,
            paid=self.paid,
            remaining=self.total - self.paid,
            overdue=self.overdue,
            warnings=tuple(self.warnings),
        )


@dataclass(frozen=True)
class _Valued:
    total: Decimal
    paid: Decimal
    overdue: Decimal


class DebtAggregator(BaseService):
    """
    Read-side aggregation over DebtSelector lines.

    The converter's rate table is keyed on the policy's base currency;
    summaries in another currency are cross-converted through it.
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
        self.lines = DebtSelector(session)

    def _value(self, amount: Decimal, currency: str, on_date: date, base_currency: str) -> Decimal:
        return self.converter.convert(amount, currency, base_currency, on_date)

    def _value_line(
        self, line: ObligationLine, as_of: date, base_currency: str
    ) -> _Valued | ConversionWarning:
        try:
            total = self._value(line.amount, line.currency, line.due_date, base_currency)
            paid = self._value(line.paid_amount, line.currency, line.due_date, base_currency)
        except ConversionError as exc:
            return ConversionWarning(
                debt_id=line.debt_id,
                line_id=line.line_id,
                currency=line.currency,
                on_date=line.due_date,
                amount=line.amount,
                reason=exc.reason,
            )
        overdue = total - paid if is_overdue(line.status, line.due_date, as_of) else ZERO
        return _Valued(total, paid, overdue)

    def _resolve_base(self, base_currency: str | None) -> str:
        return CurrencyRegistry.normalize(base_currency or self.policy.base_currency)

    def summarize(
        self,
        kind: DebtKind | str,
        as_of: date,
        base_currency: str | None = None,
    ) -> DebtSummary:
        """
        Totals over open debts of ``kind`` in ``base_currency``.

        Each line is valued at its own due date.  Lines that cannot be
        valued are skipped and reported in ``warnings``.
        """
        kind = DebtKind(kind)
        base = self._resolve_base(base_currency)
        acc = _Accumulator(kind)
        for line in self.lines.obligation_lines(kind=kind):
            valued = self._value_line(line, as_of, base)
            if isinstance(valued, ConversionWarning):
                acc.warnings.append(valued)
                continue
            acc.total += valued.total
            acc.paid += valued.paid
            acc.overdue += valued.overdue

        summary = acc.summary(as_of, base)
        if summary.warnings:
            logger.warning(
                "debt_summary_incomplete",
                extra={
                    "kind": kind.value,
                    "excluded_lines": len(summary.warnings),
                    "currencies": sorted({w.currency for w in summary.warnings}),
                },
            )
        logger.info(
            "debt_summary_computed",
            extra={
                "kind": kind.value,
                "as_of": as_of.isoformat(),
                "base_currency": base,
                "total": str(summary.total),
                "remaining": str(summary.remaining),
            },
        )
        return summary

    def debt_report(
        self,
        as_of: date,
        base_currency: str | None = None,
        kind: DebtKind | str | None = None,
        party_id: UUID | None = None,
    ) -> DebtReport:
        """Per-debt valuation of open debts with per-kind totals."""
        kind = DebtKind(kind) if kind is not None else None
        base = self._resolve_base(base_currency)

        grouped: dict[UUID, list[ObligationLine]] = {}
        for line in self.lines.obligation_lines(kind=kind, party_id=party_id):
            grouped.setdefault(line.debt_id, []).append(line)

        accumulators = {k: _Accumulator(k) for k in DebtKind if kind is None or k is kind}
        rows: list[DebtReportRow] = []
        warnings: list[ConversionWarning] = []

        for debt_id, lines in grouped.items():
            first = lines[0]
            acc = accumulators[first.kind]
            principal_base = paid_base = overdue_base = ZERO
            complete = True
            for line in lines:
                valued = self._value_line(line, as_of, base)
                if isinstance(valued, ConversionWarning):
                    complete = False
                    warnings.append(valued)
                    acc.warnings.append(valued)
                    continue
                principal_base += valued.total
                paid_base += valued.paid
                overdue_base += valued.overdue
            acc.total += principal_base
            acc.paid += paid_base
            acc.overdue += overdue_base

            principal = sum((line.amount for line in lines), ZERO)
            paid = sum((line.paid_amount for line in lines), ZERO)
            rows.append(
                DebtReportRow(
                    debt_id=debt_id,
                    kind=first.kind,
                    party_id=first.party_id,
                    party_name=first.party_name,
                    currency=first.currency,
                    principal=principal,
                    paid=paid,
                    remaining=principal - paid,
                    principal_base=principal_base,
                    paid_base=paid_base,
                    remaining_base=principal_base - paid_base,
                    overdue_base=overdue_base,
                    line_count=len(lines),
                    complete=complete,
                )
            )

        report = DebtReport(
            as_of=as_of,
            base_currency=base,
            rows=tuple(rows),
            totals={k: acc.summary(as_of, base) for k, acc in accumulators.items()},
            warnings=tuple(warnings),
        )
        logger.info(
            "debt_report_computed",
            extra={
                "as_of": as_of.isoformat(),
                "base_currency": base,
                "debt_count": len(rows),
                "excluded_lines": len(warnings),
            },
        )
        return report

    def dashboard(self, as_of: date | None = None, base_currency: str | None = None) -> Dashboard:
        as_of = as_of or self.clock.today()
        base = self._resolve_base(base_currency)
        return Dashboard(
            as_of=as_of,
            base_currency=base,
            debts=self.summarize(DebtKind.DEBT, as_of, base),
            receivables=self.summarize(DebtKind.RECEIVABLE, as_of, base),
            overdue=tuple(self.lines.overdue_lines(as_of)),
            upcoming=tuple(self.lines.upcoming_lines(as_of, self.policy.upcoming_window_days)),
            month=TransactionAggregator(self.session, self.policy, self.clock, self.converter).month_summary(
                as_of, base
            ),
        )
