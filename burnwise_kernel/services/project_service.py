"""
Service layer for Project records.

Projects are contracts with a customer; milestones (MilestoneLedger) and
grants (GrantService) hang off them.  Deleting a project removes its
milestones, grants and every payment recorded against its milestones.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select

from burnwise_kernel.domain.currency import CurrencyRegistry, has_currency_precision
from burnwise_kernel.exceptions import PartyNotFoundError, ProjectNotFoundError, ValidationError
from burnwise_kernel.logging_config import get_logger
from burnwise_kernel.models.party import Party
from burnwise_kernel.models.payment import Payment, RelatedType
from burnwise_kernel.models.project import Milestone, Project, ProjectStatus
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.base import BaseService

logger = get_logger("services.project")


@dataclass(frozen=True)
class ProjectInfo:
    id: UUID
    party_id: UUID
    title: str
    contract_amount: Decimal
    currency: str
    start_date: date
    end_date: date | None
    status: ProjectStatus
    notes: str | None


class ProjectService(BaseService):
    """CRUD for projects; returns ProjectInfo DTOs."""

    @staticmethod
    def _to_dto(project: Project) -> ProjectInfo:
        return ProjectInfo(
            id=project.id,
            party_id=project.party_id,
            title=project.title,
            contract_amount=project.contract_amount,
            currency=project.currency,
            start_date=project.start_date,
            end_date=project.end_date,
            status=ProjectStatus(project.status),
            notes=project.notes,
        )

    def _get(self, project_id: UUID) -> Project:
        project = self.session.get(Project, project_id, populate_existing=True)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def get(self, project_id: UUID) -> ProjectInfo:
        return self._to_dto(self._get(project_id))

    def list_projects(self, status: ProjectStatus | str | None = None) -> list[ProjectInfo]:
        stmt = select(Project)
        if status is not None:
            stmt = stmt.where(Project.status == ProjectStatus(status).value)
        stmt = stmt.order_by(Project.start_date, Project.created_at)
        return [self._to_dto(p) for p in self.session.execute(stmt).scalars()]

    def create_project(
        self,
        party_id: UUID,
        title: str,
        contract_amount: Decimal,
        currency: str,
        start_date: date,
        actor_id: UUID,
        end_date: date | None = None,
        notes: str | None = None,
    ) -> ProjectInfo:
        if self.session.get(Party, party_id) is None:
            raise PartyNotFoundError(str(party_id))
        currency = CurrencyRegistry.normalize(currency)
        if not title or not title.strip():
            raise ValidationError("title", "must not be empty")
        if contract_amount < 0:
            raise ValidationError("contract_amount", "must not be negative")
        if not has_currency_precision(contract_amount, currency):
            raise ValidationError("contract_amount", f"{contract_amount} exceeds {currency} precision")
        if end_date is not None and end_date < start_date:
            raise ValidationError("end_date", f"{end_date} is before start date {start_date}")

        project = Project(
            party_id=party_id,
            title=title.strip(),
            contract_amount=contract_amount,
            currency=currency,
            start_date=start_date,
            end_date=end_date,
            status=ProjectStatus.ACTIVE.value,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(project)
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "project.created",
            "project",
            project.id,
            new_data={"title": project.title, "contract_amount": contract_amount, "currency": currency},
        )
        logger.info("project_created", extra={"project_id": str(project.id), "currency": currency})
        return self._to_dto(project)

    def set_status(self, project_id: UUID, status: ProjectStatus | str, actor_id: UUID) -> ProjectInfo:
        project = self._get(project_id)
        old = ProjectStatus(project.status)
        new = ProjectStatus(status)
        project.status = new.value
        project.updated_by_id = actor_id
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "project.status_changed",
            "project",
            project.id,
            old_data={"status": old},
            new_data={"status": new},
        )
        return self._to_dto(project)

    def delete(self, project_id: UUID, actor_id: UUID) -> None:
        """Delete a project with its milestones, grants and milestone payments."""
        project = self._lock_row(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        milestone_ids = list(
            self.session.execute(
                select(Milestone.id).where(Milestone.project_id == project_id)
            ).scalars()
        )
        removed = 0
        if milestone_ids:
            removed = self.session.execute(
                delete(Payment)
                .where(
                    Payment.related_type == RelatedType.MILESTONE.value,
                    Payment.related_id.in_(milestone_ids),
                )
                .execution_options(synchronize_session="fetch")
            ).rowcount
        old = {"title": project.title, "milestones": len(milestone_ids), "payments": removed}
        self.session.delete(project)
        self.session.flush()
        AuditService(self.session).record(actor_id, "project.deleted", "project", project_id, old_data=old)
        logger.info("project_deleted", extra={"project_id": str(project_id), "payments": removed})
