"""
Service layer for income and expense transactions.

Every write recomputes the tax breakdown (domain.tax) from the gross
amount and the two rates, so vat_amount, withholding_amount and
net_amount are never taken from the caller.  Valuation in the base
currency belongs to TransactionAggregator.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from burnwise_kernel.domain.currency import CurrencyRegistry, has_currency_precision
from burnwise_kernel.domain.tax import compute_breakdown
from burnwise_kernel.exceptions import (
    MilestoneNotFoundError,
    PartyNotFoundError,
    ProjectNotFoundError,
    TransactionNotFoundError,
    ValidationError,
)
from burnwise_kernel.logging_config import LogContext, get_logger
from burnwise_kernel.models.party import Party
from burnwise_kernel.models.project import Milestone, Project
from burnwise_kernel.models.transaction import Transaction, TransactionType
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.base import BaseService

logger = get_logger("services.transaction")

_EDITABLE_FIELDS = (
    "transaction_type",
    "transaction_date",
    "amount",
    "currency",
    "vat_rate",
    "withholding_rate",
    "party_id",
    "project_id",
    "milestone_id",
    "category",
    "description",
    "ref_no",
)


@dataclass(frozen=True)
class TransactionInfo:
    """Immutable DTO for a transaction."""

    id: UUID
    transaction_type: TransactionType
    transaction_date: date
    amount: Decimal
    currency: str
    vat_rate: Decimal
    vat_amount: Decimal
    withholding_rate: Decimal
    withholding_amount: Decimal
    net_amount: Decimal
    party_id: UUID | None
    project_id: UUID | None
    milestone_id: UUID | None
    category: str | None
    description: str | None
    ref_no: str | None


class TransactionService(BaseService):
    """CRUD for transactions; returns TransactionInfo DTOs."""

    @staticmethod
    def _to_dto(txn: Transaction) -> TransactionInfo:
        return TransactionInfo(
            id=txn.id,
            transaction_type=TransactionType(txn.transaction_type),
            transaction_date=txn.transaction_date,
            amount=txn.amount,
            currency=txn.currency,
            vat_rate=txn.vat_rate,
            vat_amount=txn.vat_amount,
            withholding_rate=txn.withholding_rate,
            withholding_amount=txn.withholding_amount,
            net_amount=txn.net_amount,
            party_id=txn.party_id,
            project_id=txn.project_id,
            milestone_id=txn.milestone_id,
            category=txn.category,
            description=txn.description,
            ref_no=txn.ref_no,
        )

    def _get(self, transaction_id: UUID) -> Transaction:
        txn = self.session.get(Transaction, transaction_id, populate_existing=True)
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return txn

    def get(self, transaction_id: UUID) -> TransactionInfo:
        return self._to_dto(self._get(transaction_id))

    def list_transactions(
        self,
        transaction_type: TransactionType | str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        party_id: UUID | None = None,
        project_id: UUID | None = None,
        category: str | None = None,
    ) -> list[TransactionInfo]:
        """Transactions matching every given filter, oldest first."""
        stmt = select(Transaction)
        if transaction_type is not None:
            stmt = stmt.where(Transaction.transaction_type == TransactionType(transaction_type).value)
        if date_from is not None:
            stmt = stmt.where(Transaction.transaction_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Transaction.transaction_date <= date_to)
        if party_id is not None:
            stmt = stmt.where(Transaction.party_id == party_id)
        if project_id is not None:
            stmt = stmt.where(Transaction.project_id == project_id)
        if category is not None:
            stmt = stmt.where(Transaction.category == category)
        stmt = stmt.order_by(Transaction.transaction_date, Transaction.created_at)
        return [self._to_dto(t) for t in self.session.execute(stmt).scalars()]

    def _validated(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Normalize ``fields`` and add the derived tax amounts."""
        try:
            txn_type = TransactionType(fields["transaction_type"])
        except ValueError as exc:
            raise ValidationError(
                "transaction_type", f"unknown transaction type {fields['transaction_type']!r}"
            ) from exc
        currency = CurrencyRegistry.normalize(fields["currency"])
        amount = fields["amount"]
        if not isinstance(amount, Decimal):
            raise ValidationError("amount", f"must be a Decimal, got {type(amount).__name__}")
        if amount <= 0:
            raise ValidationError("amount", f"must be positive, got {amount}")
        if not has_currency_precision(amount, currency):
            raise ValidationError("amount", f"{amount} exceeds {currency} precision")

        party_id = fields.get("party_id")
        if party_id is not None and self.session.get(Party, party_id) is None:
            raise PartyNotFoundError(str(party_id))
        project_id = fields.get("project_id")
        if project_id is not None and self.session.get(Project, project_id) is None:
            raise ProjectNotFoundError(str(project_id))
        milestone_id = fields.get("milestone_id")
        if milestone_id is not None:
            milestone = self.session.get(Milestone, milestone_id)
            if milestone is None:
                raise MilestoneNotFoundError(str(milestone_id))
            if project_id is None:
                project_id = milestone.project_id
            elif milestone.project_id != project_id:
                raise ValidationError(
                    "milestone_id", f"milestone {milestone_id} does not belong to project {project_id}"
                )

        breakdown = compute_breakdown(
            amount,
            currency,
            fields.get("vat_rate") or Decimal("0"),
            fields.get("withholding_rate") or Decimal("0"),
            deduct_withholding=txn_type is TransactionType.INCOME,
        )
        category = (fields.get("category") or "").strip() or None
        return {
            **fields,
            "transaction_type": txn_type.value,
            "currency": currency,
            "project_id": project_id,
            "category": category,
            "vat_rate": fields.get("vat_rate") or Decimal("0"),
            "withholding_rate": fields.get("withholding_rate") or Decimal("0"),
            "vat_amount": breakdown.vat_amount,
            "withholding_amount": breakdown.withholding_amount,
            "net_amount": breakdown.net_amount,
        }

    def create_transaction(
        self,
        transaction_type: TransactionType | str,
        transaction_date: date,
        amount: Decimal,
        currency: str,
        actor_id: UUID,
        vat_rate: Decimal = Decimal("0"),
        withholding_rate: Decimal = Decimal("0"),
        party_id: UUID | None = None,
        project_id: UUID | None = None,
        milestone_id: UUID | None = None,
        category: str | None = None,
        description: str | None = None,
        ref_no: str | None = None,
    ) -> TransactionInfo:
        """
        Record an income or expense.

        A milestone implies its project when ``project_id`` is omitted.

        Raises:
            ValidationError: unknown type, non-positive or over-precise
                amount, rate outside [0, 100], milestone of another project.
            InvalidCurrencyError: unknown currency.
            PartyNotFoundError, ProjectNotFoundError, MilestoneNotFoundError.
        """
        values = self._validated(
            {
                "transaction_type": transaction_type,
                "transaction_date": transaction_date,
                "amount": amount,
                "currency": currency,
                "vat_rate": vat_rate,
                "withholding_rate": withholding_rate,
                "party_id": party_id,
                "project_id": project_id,
                "milestone_id": milestone_id,
                "category": category,
                "description": description,
                "ref_no": ref_no,
            }
        )
        txn = Transaction(**values, created_by_id=actor_id)
        self.session.add(txn)
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "transaction.created",
            "transaction",
            txn.id,
            new_data={key: values[key] for key in ("transaction_type", "transaction_date", "net_amount", "currency")},
        )
        with LogContext.bind(actor_id=str(actor_id)):
            logger.info(
                "transaction_created",
                extra={
                    "transaction_id": str(txn.id),
                    "transaction_type": values["transaction_type"],
                    "net_amount": str(values["net_amount"]),
                    "currency": values["currency"],
                },
            )
        return self._to_dto(txn)

    def update_transaction(self, transaction_id: UUID, actor_id: UUID, **changes: Any) -> TransactionInfo:
        """
        Change any editable field; the tax breakdown is recomputed.

        Raises:
            ValidationError: a non-editable field, or an invalid result.
        """
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(", ".join(sorted(unknown)), "not an editable transaction field")
        txn = self._get(transaction_id)
        current = {key: getattr(txn, key) for key in _EDITABLE_FIELDS}
        values = self._validated({**current, **changes})

        old = {key: current[key] for key in changes}
        old["net_amount"] = txn.net_amount
        for key, value in values.items():
            setattr(txn, key, value)
        txn.updated_by_id = actor_id
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "transaction.updated",
            "transaction",
            txn.id,
            old_data=old,
            new_data={**{key: values[key] for key in changes}, "net_amount": values["net_amount"]},
        )
        logger.info(
            "transaction_updated",
            extra={"transaction_id": str(txn.id), "fields": sorted(changes)},
        )
        return self._to_dto(txn)

    def delete(self, transaction_id: UUID, actor_id: UUID) -> None:
        txn = self._get(transaction_id)
        old = {
            "transaction_type": txn.transaction_type,
            "transaction_date": txn.transaction_date,
            "net_amount": txn.net_amount,
            "currency": txn.currency,
        }
        self.session.delete(txn)
        self.session.flush()
        AuditService(self.session).record(actor_id, "transaction.deleted", "transaction", transaction_id, old_data=old)
        logger.info("transaction_deleted", extra={"transaction_id": str(transaction_id)})
