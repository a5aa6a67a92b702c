"""Services for the ledger kernel (write side and aggregation)."""

from burnwise_kernel.services.audit_service import AuditEntry, AuditService
from burnwise_kernel.services.currency_converter import Conversion, CurrencyConverter
from burnwise_kernel.services.debt_aggregator import (
    ConversionWarning,
    Dashboard,
    DebtAggregator,
    DebtReport,
    DebtReportRow,
    DebtSummary,
)
from burnwise_kernel.services.debt_service import DebtDetail, DebtInfo, DebtService
from burnwise_kernel.services.exchange_rate_service import ExchangeRateService
from burnwise_kernel.services.grant_service import GrantInfo, GrantService
from burnwise_kernel.services.installment_ledger import (
    InstallmentLedger,
    InstallmentSnapshot,
    LedgerSnapshot,
)
from burnwise_kernel.services.milestone_ledger import MilestoneLedger, MilestoneSnapshot
from burnwise_kernel.services.party_service import PartyInfo, PartyService
from burnwise_kernel.services.payment_recorder import PaymentRecorder
from burnwise_kernel.services.project_aggregator import (
    ProjectAggregator,
    ProjectReport,
    ProjectReportRow,
    ProjectWarning,
)
from burnwise_kernel.services.project_service import ProjectInfo, ProjectService

__all__ = [
    "AuditEntry",
    "AuditService",
    "Conversion",
    "ConversionWarning",
    "CurrencyConverter",
    "Dashboard",
    "DebtAggregator",
    "DebtDetail",
    "DebtInfo",
    "DebtReport",
    "DebtReportRow",
    "DebtService",
    "DebtSummary",
    "ExchangeRateService",
    "GrantInfo",
    "GrantService",
    "InstallmentLedger",
    "InstallmentSnapshot",
    "LedgerSnapshot",
    "MilestoneLedger",
    "MilestoneSnapshot",
    "PartyInfo",
    "PartyService",
    "PaymentRecorder",
    "ProjectAggregator",
    "ProjectInfo",
    "ProjectReport",
    "ProjectReportRow",
    "ProjectService",
    "ProjectWarning",
]
