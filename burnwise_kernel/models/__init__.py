"""ORM models for the ledger kernel."""

from burnwise_kernel.models.audit_log import AuditLog
from burnwise_kernel.models.debt import (
    ClosedReason,
    Debt,
    DebtKind,
    DebtStatus,
    Installment,
)
from burnwise_kernel.models.exchange_rate import ExchangeRate, RateSource
from burnwise_kernel.models.party import Party, PartyType
from burnwise_kernel.models.payment import Payment, PaymentMethod, RelatedType
from burnwise_kernel.models.project import (
    GrantProviderType,
    GrantStatus,
    Milestone,
    Project,
    ProjectGrant,
    ProjectStatus,
)
from burnwise_kernel.models.transaction import Transaction, TransactionType

__all__ = [
    "AuditLog",
    "ClosedReason",
    "Debt",
    "DebtKind",
    "DebtStatus",
    "Installment",
    "ExchangeRate",
    "RateSource",
    "Party",
    "PartyType",
    "Payment",
    "PaymentMethod",
    "RelatedType",
    "GrantProviderType",
    "GrantStatus",
    "Milestone",
    "Project",
    "ProjectGrant",
    "ProjectStatus",
    "Transaction",
    "TransactionType",
]
