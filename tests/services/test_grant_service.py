"""Tests for GrantService approval and receipt tracking."""

from decimal import Decimal
from uuid import uuid4

import pytest

from burnwise_kernel.exceptions import (
    CurrencyMismatchError,
    GrantNotFoundError,
    InconsistentStateError,
    OverPaymentError,
    ProjectNotFoundError,
    ValidationError,
)
from burnwise_kernel.models.project import GrantProviderType, GrantStatus
from burnwise_kernel.services.audit_service import AuditService
from burnwise_kernel.services.grant_service import GrantService


@pytest.fixture
def grants(session):
    return GrantService(session)


@pytest.fixture
def pending_grant(grants, make_project, test_actor_id):
    project = make_project(Decimal("100000.00"))
    return grants.create_grant(
        project.id,
        "TUBITAK 1512",
        GrantProviderType.TUBITAK,
        "TRY",
        test_actor_id,
        requested_amount=Decimal("75000.00"),
        funding_rate=Decimal("75"),
    )


class TestCreateGrant:
    def test_created_pending(self, pending_grant):
        assert pending_grant.status is GrantStatus.PENDING
        assert pending_grant.approved_amount == Decimal("0")
        assert pending_grant.provider_type is GrantProviderType.TUBITAK
        assert pending_grant.funding_rate == Decimal("75")

    def test_currency_must_match_project(self, grants, make_project, test_actor_id):
        project = make_project()

        with pytest.raises(CurrencyMismatchError):
            grants.create_grant(project.id, "Sponsor", "sponsor", "EUR", test_actor_id)

    def test_funding_rate_range(self, grants, make_project, test_actor_id):
        project = make_project()

        with pytest.raises(ValidationError):
            grants.create_grant(project.id, "KOSGEB", "kosgeb", "TRY", test_actor_id, funding_rate=Decimal("120"))

    def test_unknown_project(self, grants, test_actor_id):
        with pytest.raises(ProjectNotFoundError):
            grants.create_grant(uuid4(), "KOSGEB", "kosgeb", "TRY", test_actor_id)


class TestApproval:
    def test_approve(self, session, grants, pending_grant, test_actor_id):
        approved = grants.approve(pending_grant.id, Decimal("60000.00"), test_actor_id)

        assert approved.status is GrantStatus.APPROVED
        assert approved.outstanding == Decimal("60000.00")
        actions = {e.action for e in AuditService(session).history("grant", pending_grant.id)}
        assert actions == {"grant.created", "grant.approved"}

    def test_reject(self, grants, pending_grant, test_actor_id):
        assert grants.reject(pending_grant.id, test_actor_id).status is GrantStatus.REJECTED

    def test_only_pending_can_be_decided(self, grants, pending_grant, test_actor_id):
        grants.reject(pending_grant.id, test_actor_id)

        with pytest.raises(ValidationError):
            grants.approve(pending_grant.id, Decimal("1.00"), test_actor_id)

    def test_approved_amount_must_be_positive(self, grants, pending_grant, test_actor_id):
        with pytest.raises(ValidationError):
            grants.approve(pending_grant.id, Decimal("0"), test_actor_id)


class TestReceipts:
    @pytest.fixture
    def approved(self, grants, pending_grant, test_actor_id):
        return grants.approve(pending_grant.id, Decimal("60000.00"), test_actor_id)

    def test_partial_then_received(self, grants, approved, test_actor_id):
        partial = grants.record_receipt(approved.id, Decimal("20000.00"), test_actor_id)
        received = grants.record_receipt(approved.id, Decimal("40000.00"), test_actor_id)

        assert partial.status is GrantStatus.PARTIAL
        assert received.status is GrantStatus.RECEIVED
        assert received.outstanding == Decimal("0")

    def test_receipt_beyond_approved(self, grants, approved, test_actor_id):
        with pytest.raises(OverPaymentError):
            grants.record_receipt(approved.id, Decimal("60000.01"), test_actor_id)

    def test_reverse_receipt(self, grants, approved, test_actor_id):
        grants.record_receipt(approved.id, Decimal("60000.00"), test_actor_id)

        after = grants.reverse_receipt(approved.id, Decimal("60000.00"), test_actor_id)

        assert after.status is GrantStatus.APPROVED
        assert after.received_amount == Decimal("0")

    def test_reverse_below_zero(self, grants, approved, test_actor_id):
        with pytest.raises(InconsistentStateError):
            grants.reverse_receipt(approved.id, Decimal("1.00"), test_actor_id)

    def test_pending_grant_takes_no_receipts(self, grants, pending_grant, test_actor_id):
        with pytest.raises(ValidationError):
            grants.record_receipt(pending_grant.id, Decimal("1.00"), test_actor_id)

    def test_unknown_grant(self, grants, test_actor_id):
        with pytest.raises(GrantNotFoundError):
            grants.record_receipt(uuid4(), Decimal("1.00"), test_actor_id)
