"""
GrantService -- approval and receipt tracking for project grants.

Lifecycle:
    PENDING --approve--> APPROVED --receipts--> PARTIAL / RECEIVED
    PENDING --reject--> REJECTED

Receipts follow the ledger rules: received_amount never exceeds
approved_amount (OverPaymentError) and never drops below zero
(InconsistentStateError).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from burnwise_kernel.domain.currency import CurrencyRegistry, has_currency_precision
from burnwise_kernel.domain.settlement import Settlement, SettlementStatus, effective_tolerance
from burnwise_kernel.exceptions import (
    ConcurrentModificationError,
    CurrencyMismatchError,
    GrantNotFoundError,
    ProjectNotFoundError,
    ValidationError,
)
from burnwise_kernel.logging_config import get_logger
from burnwise_kernel.models.project import GrantProviderType, GrantStatus, Project, ProjectGrant
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.base import BaseService

logger = get_logger("services.grant")

_RECEIPT_STATUS = {
    SettlementStatus.PENDING: GrantStatus.APPROVED,
    SettlementStatus.PARTIAL: GrantStatus.PARTIAL,
    SettlementStatus.PAID: GrantStatus.RECEIVED,
}


@dataclass(frozen=True)
class GrantInfo:
    id: UUID
    project_id: UUID
    provider_name: str
    provider_type: GrantProviderType
    funding_rate: Decimal | None
    requested_amount: Decimal | None
    approved_amount: Decimal
    received_amount: Decimal
    currency: str
    status: GrantStatus

    @property
    def outstanding(self) -> Decimal:
        return self.approved_amount - self.received_amount

    @classmethod
    def from_model(cls, row: ProjectGrant) -> GrantInfo:
        return cls(
            id=row.id,
            project_id=row.project_id,
            provider_name=row.provider_name,
            provider_type=GrantProviderType(row.provider_type),
            funding_rate=row.funding_rate,
            requested_amount=row.requested_amount,
            approved_amount=row.approved_amount,
            received_amount=row.received_amount,
            currency=row.currency,
            status=GrantStatus(row.status),
        )


class GrantService(BaseService):
    """Create, approve, reject and collect project grants."""

    def _get(self, grant_id: UUID, refresh: bool = True) -> ProjectGrant:
        row = self.session.get(ProjectGrant, grant_id, populate_existing=refresh)
        if row is None:
            raise GrantNotFoundError(str(grant_id))
        return row

    def get(self, grant_id: UUID) -> GrantInfo:
        return GrantInfo.from_model(self._get(grant_id))

    def create_grant(
        self,
        project_id: UUID,
        provider_name: str,
        provider_type: GrantProviderType | str,
        currency: str,
        actor_id: UUID,
        requested_amount: Decimal | None = None,
        funding_rate: Decimal | None = None,
        notes: str | None = None,
    ) -> GrantInfo:
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        currency = CurrencyRegistry.normalize(currency)
        if currency != project.currency:
            raise CurrencyMismatchError(project.currency, currency)
        if requested_amount is not None and requested_amount < 0:
            raise ValidationError("requested_amount", "must not be negative")
        if funding_rate is not None and not (Decimal("0") <= funding_rate <= Decimal("100")):
            raise ValidationError("funding_rate", f"must be between 0 and 100, got {funding_rate}")

        row = ProjectGrant(
            project_id=project.id,
            provider_name=provider_name,
            provider_type=GrantProviderType(provider_type).value,
            funding_rate=funding_rate,
            requested_amount=requested_amount,
            approved_amount=Decimal("0"),
            received_amount=Decimal("0"),
            currency=currency,
            status=GrantStatus.PENDING.value,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "grant.created",
            "grant",
            row.id,
            new_data={"project_id": project.id, "provider_name": provider_name},
        )
        logger.info("grant_created", extra={"grant_id": str(row.id), "project_id": str(project.id)})
        return GrantInfo.from_model(row)

    def approve(self, grant_id: UUID, approved_amount: Decimal, actor_id: UUID) -> GrantInfo:
        """
        Approve a pending grant for ``approved_amount``.

        Raises:
            ValidationError: not pending, or a negative / over-precise amount.
        """
        row = self._get(grant_id)
        if GrantStatus(row.status) is not GrantStatus.PENDING:
            raise ValidationError("status", f"grant {grant_id} is {row.status}, not pending")
        if approved_amount <= 0:
            raise ValidationError("approved_amount", f"must be positive, got {approved_amount}")
        if not has_currency_precision(approved_amount, row.currency):
            raise ValidationError("approved_amount", f"{approved_amount} exceeds {row.currency} precision")
        return self._transition(
            row,
            {"approved_amount": approved_amount, "status": GrantStatus.APPROVED.value},
            actor_id,
            "grant.approved",
        )

    def reject(self, grant_id: UUID, actor_id: UUID) -> GrantInfo:
        row = self._get(grant_id)
        if GrantStatus(row.status) is not GrantStatus.PENDING:
            raise ValidationError("status", f"grant {grant_id} is {row.status}, not pending")
        return self._transition(row, {"status": GrantStatus.REJECTED.value}, actor_id, "grant.rejected")

    def _transition(self, row: ProjectGrant, values: dict, actor_id: UUID, action: str) -> GrantInfo:
        old_status = row.status
        if not self._compare_and_set(ProjectGrant, row.id, row.version, values, actor_id):
            raise ConcurrentModificationError("grant", str(row.id))
        AuditService(self.session).record(
            actor_id,
            action,
            "grant",
            row.id,
            old_data={"status": old_status},
            new_data=values,
        )
        logger.info(action.replace(".", "_"), extra={"grant_id": str(row.id)})
        return self.get(row.id)

    def _mutate_receipt(
        self,
        grant_id: UUID,
        change: Callable[[Settlement], Settlement],
        actor_id: UUID,
        action: str,
    ) -> GrantInfo:
        row = self._get(grant_id)
        status = GrantStatus(row.status)
        if status in (GrantStatus.PENDING, GrantStatus.REJECTED):
            raise ValidationError("status", f"grant {grant_id} is {status.value}; approve it first")

        before = Settlement("grant", str(row.id), row.approved_amount, row.received_amount)
        after = change(before)
        values = {
            "received_amount": after.paid_amount,
            "status": _RECEIPT_STATUS[after.status].value,
        }
        if not self._compare_and_set(ProjectGrant, row.id, row.version, values, actor_id):
            raise ConcurrentModificationError("grant", str(grant_id))
        AuditService(self.session).record(
            actor_id,
            action,
            "grant",
            row.id,
            old_data={"received_amount": before.paid_amount},
            new_data={"received_amount": after.paid_amount},
        )
        logger.info(
            action.replace(".", "_"),
            extra={
                "grant_id": str(grant_id),
                "received_before": str(before.paid_amount),
                "received_after": str(after.paid_amount),
            },
        )
        return self.get(grant_id)

    def record_receipt(self, grant_id: UUID, amount: Decimal, actor_id: UUID) -> GrantInfo:
        """
        Record money received from the provider.

        Raises:
            OverPaymentError: received would exceed approved.
            ValidationError: grant not approved, or a bad amount.
        """
        row = self._get(grant_id)
        if not has_currency_precision(amount, row.currency):
            raise ValidationError("amount", f"{amount} exceeds {row.currency} precision")
        tolerance = effective_tolerance(row.currency, self.policy.tolerance)
        return self._mutate_receipt(
            grant_id, lambda s: s.apply(amount, tolerance), actor_id, "grant.receipt_recorded"
        )

    def reverse_receipt(self, grant_id: UUID, amount: Decimal, actor_id: UUID) -> GrantInfo:
        return self._mutate_receipt(
            grant_id, lambda s: s.reverse(amount), actor_id, "grant.receipt_reversed"
        )
