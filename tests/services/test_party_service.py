"""Tests for PartyService and ProjectService record keeping."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from burnwise_kernel.exceptions import PartyNotFoundError, ProjectNotFoundError, ValidationError
from burnwise_kernel.models.party import PartyType
from burnwise_kernel.models.payment import Payment, RelatedType
from burnwise_kernel.models.project import Milestone, ProjectStatus
from burnwise_kernel.services.milestone_ledger import MilestoneLedger
from burnwise_kernel.services.party_service import PartyService
from burnwise_kernel.services.payment_recorder import PaymentRecorder
from burnwise_kernel.services.project_service import ProjectService


@pytest.fixture
def parties(session):
    return PartyService(session)


class TestPartyService:
    def test_create_strips_name(self, parties, test_actor_id):
        party = parties.create_party("customer", "  Anatolia Textiles  ", test_actor_id, tax_no="1234567890")

        assert party.name == "Anatolia Textiles"
        assert party.party_type is PartyType.CUSTOMER
        assert party.tax_no == "1234567890"

    def test_blank_name(self, parties, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            parties.create_party("customer", "   ", test_actor_id)

        assert exc_info.value.field == "name"

    def test_unknown_type(self, parties, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            parties.create_party("bank", "X", test_actor_id)

        assert exc_info.value.field == "party_type"

    def test_list_by_type_sorted(self, parties, make_party):
        make_party("Zeta", PartyType.VENDOR)
        make_party("Alpha", PartyType.VENDOR)
        make_party("Mid", PartyType.CUSTOMER)

        assert [p.name for p in parties.list_parties("vendor")] == ["Alpha", "Zeta"]
        assert len(parties.list_parties()) == 3

    def test_update(self, parties, make_party, test_actor_id):
        party = make_party()

        updated = parties.update_party(party.id, test_actor_id, email="ap@acme.example", party_type="vendor")

        assert updated.email == "ap@acme.example"
        assert updated.party_type is PartyType.VENDOR

    def test_update_rejects_unknown_field(self, parties, make_party, test_actor_id):
        party = make_party()

        with pytest.raises(ValidationError):
            parties.update_party(party.id, test_actor_id, iban="TR00")

    def test_delete_referenced_party(self, parties, make_debt, test_actor_id):
        debt = make_debt()

        with pytest.raises(ValidationError):
            parties.delete_party(debt.party_id, test_actor_id)

    def test_delete(self, parties, make_party, test_actor_id):
        party = make_party()

        parties.delete_party(party.id, test_actor_id)

        with pytest.raises(PartyNotFoundError):
            parties.get_by_id(party.id)


class TestProjectService:
    def test_create_and_status(self, session, make_party, test_actor_id):
        projects = ProjectService(session)
        party = make_party()
        project = projects.create_project(
            party.id, "ERP rollout", Decimal("25000.00"), "eur", date(2025, 1, 1), test_actor_id
        )

        assert project.currency == "EUR"
        assert project.status is ProjectStatus.ACTIVE

        on_hold = projects.set_status(project.id, "on_hold", test_actor_id)
        assert on_hold.status is ProjectStatus.ON_HOLD
        assert [p.id for p in projects.list_projects(ProjectStatus.ON_HOLD)] == [project.id]

    def test_end_before_start(self, session, make_party, test_actor_id):
        with pytest.raises(ValidationError):
            ProjectService(session).create_project(
                make_party().id,
                "Backwards",
                Decimal("1.00"),
                "TRY",
                date(2025, 2, 1),
                test_actor_id,
                end_date=date(2025, 1, 1),
            )

    def test_delete_cascades_milestones_and_payments(self, session, make_project, test_actor_id):
        project = make_project(Decimal("1000.00"))
        milestone = MilestoneLedger(session).add_milestone(
            project.id, "Advance", date(2025, 2, 1), Decimal("1000.00"), "TRY", test_actor_id
        )
        PaymentRecorder(session).record(
            RelatedType.MILESTONE, milestone.id, Decimal("100.00"), "TRY", date(2025, 2, 1), "bank", test_actor_id
        )

        ProjectService(session).delete(project.id, test_actor_id)

        assert session.execute(select(func.count(Milestone.id))).scalar_one() == 0
        assert session.execute(select(func.count(Payment.id))).scalar_one() == 0
        with pytest.raises(ProjectNotFoundError):
            ProjectService(session).get(project.id)

    def test_delete_unknown(self, session, test_actor_id):
        with pytest.raises(ProjectNotFoundError):
            ProjectService(session).delete(uuid4(), test_actor_id)
