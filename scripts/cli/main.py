"""CLI main: argument parsing and command dispatch."""

from __future__ import annotations

import argparse
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

from burnwise_config import get_active_settings
from burnwise_config.bridges import build_ledger_policy, init_engine_from_settings
from burnwise_kernel.db.engine import create_tables, session_scope
from burnwise_kernel.domain.clock import SystemClock
from burnwise_kernel.exceptions import BurnwiseKernelError
from burnwise_kernel.logging_config import LogContext
from burnwise_kernel.models.debt import DebtKind
from burnwise_kernel.models.exchange_rate import RateSource
from burnwise_kernel.models.transaction import TransactionType
from burnwise_kernel.responses import failure
from burnwise_kernel.services.debt_aggregator import DebtAggregator
from burnwise_kernel.services.exchange_rate_service import ExchangeRateService
from burnwise_kernel.services.project_aggregator import ProjectAggregator
from burnwise_kernel.services.transaction_aggregator import TransactionAggregator, month_bounds
from scripts.cli import config as cli_config
from scripts.cli.util import enable_quiet_logging, fmt_amount, restore_logging


def _date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO date: {value!r}") from exc


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a decimal: {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="burnwise", description="BurnWise ledger kernel CLI")
    parser.add_argument("--config", type=Path, default=None, help="settings YAML (default: packaged defaults)")
    parser.add_argument("--db-url", default=cli_config.DB_URL, help="override the configured database URL")
    parser.add_argument("--verbose", action="store_true", help="keep kernel log output on the console")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create all tables")

    rate = sub.add_parser("add-rate", help="set the rate of a currency on a date (upsert)")
    rate.add_argument("currency")
    rate.add_argument("rate", type=_decimal)
    rate.add_argument("--date", type=_date, default=None, help="rate date (default: today)")
    rate.add_argument(
        "--source",
        choices=[s.value for s in RateSource],
        default=RateSource.MANUAL.value,
    )

    summary = sub.add_parser("summary", help="base-currency totals for debts and receivables")
    summary.add_argument("--as-of", type=_date, default=None)
    summary.add_argument("--base", default=None, help="report currency (default: configured base)")

    report = sub.add_parser("report", help="per-debt report")
    report.add_argument("--as-of", type=_date, default=None)
    report.add_argument("--base", default=None)
    report.add_argument("--kind", choices=[k.value for k in DebtKind], default=None)

    projects = sub.add_parser("projects", help="contract versus collected per project")
    projects.add_argument("--as-of", type=_date, default=None)
    projects.add_argument("--base", default=None)

    txns = sub.add_parser("transactions", help="income and expense in the base currency")
    txns.add_argument("--from", dest="date_from", type=_date, default=None, help="default: start of this month")
    txns.add_argument("--to", dest="date_to", type=_date, default=None, help="default: end of this month")
    txns.add_argument("--base", default=None)
    txns.add_argument("--type", dest="transaction_type", choices=[t.value for t in TransactionType], default=None)

    return parser


def _print_summary(aggregator: DebtAggregator, as_of: date, base: str | None) -> None:
    dashboard = aggregator.dashboard(as_of, base)
    print(f"\n  As of {dashboard.as_of}  ({dashboard.base_currency})")
    print(f"  {'':<12}{'total':>18}{'paid':>18}{'remaining':>18}{'overdue':>18}")
    for label, s in (("debts", dashboard.debts), ("receivables", dashboard.receivables)):
        print(
            f"  {label:<12}{fmt_amount(s.total):>18}{fmt_amount(s.paid):>18}"
            f"{fmt_amount(s.remaining):>18}{fmt_amount(s.overdue):>18}"
        )
    print(f"\n  Net position: {fmt_amount(dashboard.net_position, dashboard.base_currency)}")
    print(f"  Overdue lines: {len(dashboard.overdue)}  Upcoming lines: {len(dashboard.upcoming)}")
    month = dashboard.month
    print(
        f"  This month: income {fmt_amount(month.income.total_base)}"
        f"  expense {fmt_amount(month.expense.total_base)}"
        f"  balance {fmt_amount(month.balance, month.base_currency)}"
    )
    for s in (dashboard.debts, dashboard.receivables):
        for w in s.warnings:
            print(f"  WARNING: {s.kind.value} line {w.line_id} excluded, no {w.currency} rate on {w.on_date}")


def _print_report(aggregator: DebtAggregator, as_of: date, base: str | None, kind: str | None) -> None:
    report = aggregator.debt_report(as_of, base, kind=kind)
    print(f"\n  Debt report as of {report.as_of}  ({report.base_currency})")
    for row in report.rows:
        flag = "" if row.complete else "  (incomplete)"
        print(
            f"  {row.kind.value:<11}{row.party_name[:24]:<26}"
            f"{fmt_amount(row.principal, row.currency):>22}"
            f"{fmt_amount(row.remaining_base):>18}{flag}"
        )
    print(f"\n  Net position: {fmt_amount(report.net_position, report.base_currency)}")


def _print_projects(aggregator: ProjectAggregator, as_of: date, base: str | None) -> None:
    report = aggregator.project_report(as_of, base)
    print(f"\n  Projects as of {report.as_of}  ({report.base_currency})")
    for row in report.rows:
        print(
            f"  {row.title[:30]:<32}{fmt_amount(row.contract_base):>18}"
            f"{fmt_amount(row.collected_base):>18}{fmt_amount(row.remaining_base):>18}"
        )
    print(
        f"\n  Total: contract {fmt_amount(report.total_contract)}"
        f"  collected {fmt_amount(report.total_collected)}"
        f"  remaining {fmt_amount(report.total_remaining)}"
    )
    for w in report.warnings:
        print(f"  WARNING: project {w.project_id} excluded, no {w.currency} rate on {w.on_date}")


def _print_transactions(aggregator: TransactionAggregator, args: argparse.Namespace, today: date) -> None:
    date_from, date_to = args.date_from, args.date_to
    if date_from is None and date_to is None:
        date_from, date_to = month_bounds(today)
    report = aggregator.transaction_report(date_from, date_to, args.base, args.transaction_type)
    summary = report.summary
    print(f"\n  Transactions {date_from or '...'} to {date_to or '...'}  ({summary.base_currency})")
    for row in report.rows:
        txn = row.transaction
        valued = fmt_amount(row.net_base) if row.complete else "no rate"
        print(
            f"  {txn.transaction_date}  {txn.transaction_type.value:<8}{(txn.category or '')[:20]:<22}"
            f"{fmt_amount(txn.net_amount, txn.currency):>22}{valued:>18}"
        )
    print(
        f"\n  Income {fmt_amount(summary.income.total_base)}"
        f"  expense {fmt_amount(summary.expense.total_base)}"
        f"  balance {fmt_amount(summary.balance, summary.base_currency)}"
    )
    for w in summary.warnings:
        print(f"  WARNING: transaction {w.transaction_id} excluded, no {w.currency} rate on {w.on_date}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_active_settings(args.config)
        init_engine_from_settings(settings, args.db_url)
    except (OSError, ValueError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    muted = [] if args.verbose else enable_quiet_logging()
    policy = build_ledger_policy(settings)
    clock = SystemClock()
    as_of = getattr(args, "as_of", None) or clock.today()

    try:
        with LogContext.bind(actor_id=str(cli_config.OPERATOR_ID)):
            if args.command == "init-db":
                create_tables()
                print("  Tables created.")
            elif args.command == "add-rate":
                with session_scope() as session:
                    quote = ExchangeRateService(session, policy, clock).set_rate(
                        args.date or clock.today(),
                        args.currency,
                        args.rate,
                        cli_config.OPERATOR_ID,
                        args.source,
                    )
                print(f"  {quote.currency}/{quote.base_currency} = {quote.rate} on {quote.effective_date}")
            else:
                with session_scope() as session:
                    if args.command == "summary":
                        _print_summary(DebtAggregator(session, policy, clock), as_of, args.base)
                    elif args.command == "report":
                        _print_report(DebtAggregator(session, policy, clock), as_of, args.base, args.kind)
                    elif args.command == "projects":
                        _print_projects(ProjectAggregator(session, policy, clock), as_of, args.base)
                    else:
                        _print_transactions(TransactionAggregator(session, policy, clock), args, clock.today())
    except BurnwiseKernelError as exc:
        envelope = failure(exc)
        print(f"  ERROR [{envelope['code']}]: {envelope['message']}", file=sys.stderr)
        return 2
    finally:
        restore_logging(muted)

    return 0
