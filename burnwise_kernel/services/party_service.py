"""
Service layer for Party operations.

Manages the customers, vendors and other counterparties that debts,
receivables and projects point at.  Returns PartyInfo DTOs instead of ORM
entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select

from burnwise_kernel.exceptions import PartyNotFoundError, ValidationError
from burnwise_kernel.models.debt import Debt
from burnwise_kernel.models.party import Party, PartyType
from burnwise_kernel.models.project import Project
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.base import BaseService
from burnwise_kernel.logging_config import get_logger

logger = get_logger("services.party")

_EDITABLE_FIELDS = ("party_type", "name", "tax_no", "email", "phone", "notes")


@dataclass(frozen=True)
class PartyInfo:
    """Immutable DTO for party data."""

    id: UUID
    party_type: PartyType
    name: str
    tax_no: str | None
    email: str | None
    phone: str | None
    notes: str | None


class PartyService(BaseService):
    """
    Service for managing parties.

    A party referenced by any debt or project cannot be deleted.
    """

    def _to_dto(self, party: Party) -> PartyInfo:
        return PartyInfo(
            id=party.id,
            party_type=PartyType(party.party_type),
            name=party.name,
            tax_no=party.tax_no,
            email=party.email,
            phone=party.phone,
            notes=party.notes,
        )

    def _get_by_id(self, party_id: UUID) -> Party:
        party = self.session.get(Party, party_id)
        if party is None:
            raise PartyNotFoundError(str(party_id))
        return party

    def get_by_id(self, party_id: UUID) -> PartyInfo:
        """
        Get party by ID.

        Raises:
            PartyNotFoundError: If party doesn't exist.
        """
        return self._to_dto(self._get_by_id(party_id))

    def list_parties(self, party_type: PartyType | str | None = None) -> list[PartyInfo]:
        """Parties ordered by name, optionally of one type."""
        stmt = select(Party)
        if party_type is not None:
            stmt = stmt.where(Party.party_type == PartyType(party_type).value)
        stmt = stmt.order_by(Party.name)
        return [self._to_dto(p) for p in self.session.execute(stmt).scalars()]

    def create_party(
        self,
        party_type: PartyType | str,
        name: str,
        actor_id: UUID,
        tax_no: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        notes: str | None = None,
    ) -> PartyInfo:
        """
        Create a new party.

        Raises:
            ValidationError: empty name or unknown party type.
        """
        if not name or not name.strip():
            raise ValidationError("name", "must not be empty")
        try:
            party_type = PartyType(party_type)
        except ValueError as exc:
            raise ValidationError("party_type", f"unknown party type {party_type!r}") from exc

        party = Party(
            party_type=party_type.value,
            name=name.strip(),
            tax_no=tax_no,
            email=email,
            phone=phone,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(party)
        self.session.flush()
        AuditService(self.session).record(
            actor_id,
            "party.created",
            "party",
            party.id,
            new_data={"party_type": party_type, "name": party.name},
        )
        logger.info("party_created", extra={"party_id": str(party.id), "party_type": party_type.value})
        return self._to_dto(party)

    def update_party(self, party_id: UUID, actor_id: UUID, **changes: str | None) -> PartyInfo:
        """Update any of party_type, name, tax_no, email, phone, notes."""
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(", ".join(sorted(unknown)), "not an editable party field")
        party = self._get_by_id(party_id)
        if "party_type" in changes:
            changes["party_type"] = PartyType(changes["party_type"]).value
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("name", "must not be empty")

        old = {key: getattr(party, key) for key in changes}
        for key, value in changes.items():
            setattr(party, key, value)
        party.updated_by_id = actor_id
        self.session.flush()
        AuditService(self.session).record(
            actor_id, "party.updated", "party", party.id, old_data=old, new_data=changes
        )
        return self._to_dto(party)

    def delete_party(self, party_id: UUID, actor_id: UUID) -> None:
        """
        Raises:
            ValidationError: the party still has debts or projects.
        """
        party = self._get_by_id(party_id)
        references = self.session.execute(
            select(func.count(Debt.id)).where(Debt.party_id == party_id)
        ).scalar_one() + self.session.execute(
            select(func.count(Project.id)).where(Project.party_id == party_id)
        ).scalar_one()
        if references:
            raise ValidationError(
                "party_id", f"party {party_id} has {references} debts or projects and cannot be deleted"
            )
        old = {"party_type": party.party_type, "name": party.name}
        self.session.delete(party)
        self.session.flush()
        AuditService(self.session).record(actor_id, "party.deleted", "party", party_id, old_data=old)
        logger.info("party_deleted", extra={"party_id": str(party_id)})
