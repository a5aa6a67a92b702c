"""
ProjectAggregator -- contract versus collected per project, in a base currency.

Every project is valued at its start_date rate: contract amount, collected
milestone payments, the remaining balance, and approved / received grant
funding.  A project whose currency has no rate on that date is left out of
the totals and reported as a warning.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from burnwise_kernel.domain.clock import Clock
from burnwise_kernel.domain.currency import CurrencyRegistry
from burnwise_kernel.domain.policy import LedgerPolicy
from burnwise_kernel.exceptions import ConversionError
from burnwise_kernel.logging_config import get_logger
from burnwise_kernel.models.project import (
    GrantStatus,
    Milestone,
    Project,
    ProjectGrant,
    ProjectStatus,
)
from burnwise_kernel.services.base import BaseService
from burnwise_kernel.services.currency_converter import CurrencyConverter

logger = get_logger("services.project_aggregator")

ZERO = Decimal("0")


@dataclass(frozen=True)
class ProjectWarning:
    project_id: UUID
    currency: str
    on_date: date
    reason: str


@dataclass(frozen=True)
class ProjectReportRow:
    project_id: UUID
    title: str
    status: ProjectStatus
    currency: str
    contract_amount: Decimal
    collected: Decimal
    remaining: Decimal
    contract_base: Decimal
    collected_base: Decimal
    remaining_base: Decimal
    grants_approved_base: Decimal
    grants_received_base: Decimal

    @property
    def collection_percentage(self) -> Decimal:
        if self.contract_amount <= 0:
            return ZERO
        return (self.collected / self.contract_amount * 100).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class ProjectReport:
    as_of: date
    base_currency: str
    rows: tuple[ProjectReportRow, ...]
    warnings: tuple[ProjectWarning, ...]

    @property
    def total_contract(self) -> Decimal:
        return sum((r.contract_base for r in self.rows), ZERO)

    @property
    def total_collected(self) -> Decimal:
        return sum((r.collected_base for r in self.rows), ZERO)

    @property
    def total_remaining(self) -> Decimal:
        return self.total_contract - self.total_collected

    @property
    def total_grants_approved(self) -> Decimal:
        return sum((r.grants_approved_base for r in self.rows), ZERO)

    @property
    def total_grants_received(self) -> Decimal:
        return sum((r.grants_received_base for r in self.rows), ZERO)


class ProjectAggregator(BaseService):
    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
        converter: CurrencyConverter | None = None,
    ):
        super().__init__(session, policy, clock)
        self.converter = converter or CurrencyConverter.for_session(session, self.policy.base_currency)

    def _collected(self) -> dict[UUID, Decimal]:
        stmt = (
            select(Milestone.project_id, func.sum(Milestone.paid_amount))
            .where(Milestone.is_cancelled.is_(False))
            .group_by(Milestone.project_id)
        )
        return {pid: Decimal(str(total or 0)) for pid, total in self.session.execute(stmt).all()}

    def _grants(self) -> dict[UUID, tuple[Decimal, Decimal]]:
        stmt = (
            select(
                ProjectGrant.project_id,
                func.sum(ProjectGrant.approved_amount),
                func.sum(ProjectGrant.received_amount),
            )
            .where(ProjectGrant.status != GrantStatus.REJECTED.value)
            .group_by(ProjectGrant.project_id)
        )
        totals: dict[UUID, tuple[Decimal, Decimal]] = defaultdict(lambda: (ZERO, ZERO))
        for pid, approved, received in self.session.execute(stmt).all():
            totals[pid] = (Decimal(str(approved or 0)), Decimal(str(received or 0)))
        return totals

    def project_report(
        self,
        as_of: date | None = None,
        base_currency: str | None = None,
        include_cancelled: bool = False,
    ) -> ProjectReport:
        """
        Contract, collected and remaining per project in ``base_currency``.

        Projects that started after ``as_of`` are excluded.
        """
        as_of = as_of or self.clock.today()
        base = CurrencyRegistry.normalize(base_currency or self.policy.base_currency)

        stmt = select(Project).where(Project.start_date <= as_of).order_by(Project.start_date, Project.id)
        if not include_cancelled:
            stmt = stmt.where(Project.status != ProjectStatus.CANCELLED.value)

        collected = self._collected()
        grants = self._grants()
        rows: list[ProjectReportRow] = []
        warnings: list[ProjectWarning] = []

        for project in self.session.execute(stmt).scalars():
            paid = collected.get(project.id, ZERO)
            approved, received = grants[project.id]
            try:
                factor = self.converter.convert(Decimal("1"), project.currency, base, project.start_date)
            except ConversionError as exc:
                warnings.append(
                    ProjectWarning(project.id, project.currency, project.start_date, exc.reason)
                )
                continue
            rows.append(
                ProjectReportRow(
                    project_id=project.id,
                    title=project.title,
                    status=ProjectStatus(project.status),
                    currency=project.currency,
                    contract_amount=project.contract_amount,
                    collected=paid,
                    remaining=project.contract_amount - paid,
                    contract_base=project.contract_amount * factor,
                    collected_base=paid * factor,
                    remaining_base=(project.contract_amount - paid) * factor,
                    grants_approved_base=approved * factor,
                    grants_received_base=received * factor,
                )
            )

        if warnings:
            logger.warning(
                "project_report_incomplete",
                extra={"excluded_projects": len(warnings)},
            )
        logger.info(
            "project_report_computed",
            extra={"as_of": as_of.isoformat(), "base_currency": base, "project_count": len(rows)},
        )
        return ProjectReport(as_of=as_of, base_currency=base, rows=tuple(rows), warnings=tuple(warnings))
