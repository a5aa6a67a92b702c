"""
Pure domain layer.

No dependencies on the ORM, the database, the clock or I/O.  All domain
objects are immutable and deterministic.
"""

from burnwise_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from burnwise_kernel.domain.currency import (
    CurrencyInfo,
    CurrencyRegistry,
    has_currency_precision,
    round_money,
)
from burnwise_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from burnwise_kernel.domain.schedule import (
    ScheduleLine,
    add_months,
    split_evenly,
    validate_schedule,
)
from burnwise_kernel.domain.settlement import (
    Settlement,
    SettlementStatus,
    derive_status,
    effective_tolerance,
    is_overdue,
)
from burnwise_kernel.domain.tax import TaxBreakdown, compute_breakdown

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "has_currency_precision",
    "round_money",
    "DEFAULT_POLICY",
    "LedgerPolicy",
    "ScheduleLine",
    "add_months",
    "split_evenly",
    "validate_schedule",
    "Settlement",
    "SettlementStatus",
    "derive_status",
    "effective_tolerance",
    "is_overdue",
    "TaxBreakdown",
    "compute_breakdown",
]
