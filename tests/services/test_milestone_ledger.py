"""Tests for MilestoneLedger: planning, cancellation and payment effects."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from burnwise_kernel.domain.settlement import SettlementStatus
from burnwise_kernel.exceptions import (
    CurrencyMismatchError,
    MilestoneNotFoundError,
    OverPaymentError,
    ProjectNotFoundError,
    ScheduleMismatchError,
    ValidationError,
)
from burnwise_kernel.services.milestone_ledger import MilestoneLedger


@pytest.fixture
def milestones(session):
    return MilestoneLedger(session)


@pytest.fixture
def project(make_project):
    return make_project(Decimal("10000.00"))


def _add(milestones, project, amount, actor_id, title="Phase", expected=date(2025, 3, 1)):
    return milestones.add_milestone(project.id, title, expected, Decimal(amount), "TRY", actor_id)


class TestAddMilestone:
    def test_add(self, milestones, project, test_actor_id):
        row = _add(milestones, project, "4000.00", test_actor_id, title="Design")

        assert row.title == "Design"
        assert row.status is SettlementStatus.PENDING
        assert row.remaining == Decimal("4000.00")
        assert not row.is_cancelled

    def test_cannot_exceed_contract(self, milestones, project, test_actor_id):
        _add(milestones, project, "6000.00", test_actor_id)

        with pytest.raises(ScheduleMismatchError) as exc_info:
            _add(milestones, project, "4000.01", test_actor_id)

        assert exc_info.value.expected == Decimal("10000.00")

    def test_exactly_the_contract(self, milestones, project, test_actor_id):
        _add(milestones, project, "6000.00", test_actor_id)
        _add(milestones, project, "4000.00", test_actor_id)

        assert len(milestones.milestones(project.id)) == 2

    def test_currency_must_match_project(self, milestones, project, test_actor_id):
        with pytest.raises(CurrencyMismatchError):
            milestones.add_milestone(project.id, "X", date(2025, 3, 1), Decimal("1.00"), "USD", test_actor_id)

    def test_non_positive_amount(self, milestones, project, test_actor_id):
        with pytest.raises(ValidationError):
            _add(milestones, project, "0", test_actor_id)

    def test_unknown_project(self, milestones, test_actor_id):
        with pytest.raises(ProjectNotFoundError):
            milestones.add_milestone(uuid4(), "X", date(2025, 3, 1), Decimal("1.00"), "TRY", test_actor_id)

    def test_ordered_by_expected_date(self, milestones, project, test_actor_id):
        _add(milestones, project, "1.00", test_actor_id, title="late", expected=date(2025, 9, 1))
        _add(milestones, project, "1.00", test_actor_id, title="early", expected=date(2025, 2, 1))

        assert [m.title for m in milestones.milestones(project.id)] == ["early", "late"]


class TestCancelMilestone:
    def test_cancel_frees_contract_room(self, milestones, project, test_actor_id):
        first = _add(milestones, project, "10000.00", test_actor_id)

        cancelled = milestones.cancel_milestone(first.id, test_actor_id)
        _add(milestones, project, "10000.00", test_actor_id)

        assert cancelled.is_cancelled
        assert len(milestones.milestones(project.id)) == 1
        assert len(milestones.milestones(project.id, include_cancelled=True)) == 2

    def test_cannot_cancel_with_payments(self, milestones, project, test_actor_id):
        row = _add(milestones, project, "100.00", test_actor_id)
        milestones.apply_payment(row.id, Decimal("10.00"), date(2025, 3, 1))

        with pytest.raises(ValidationError):
            milestones.cancel_milestone(row.id, test_actor_id)

    def test_cannot_cancel_twice(self, milestones, project, test_actor_id):
        row = _add(milestones, project, "100.00", test_actor_id)
        milestones.cancel_milestone(row.id, test_actor_id)

        with pytest.raises(ValidationError):
            milestones.cancel_milestone(row.id, test_actor_id)

    def test_cancelled_milestone_refuses_payment(self, milestones, project, test_actor_id):
        row = _add(milestones, project, "100.00", test_actor_id)
        milestones.cancel_milestone(row.id, test_actor_id)

        with pytest.raises(ValidationError):
            milestones.apply_payment(row.id, Decimal("10.00"), date(2025, 3, 1))


class TestMilestonePayments:
    def test_pay_in_two_parts(self, milestones, project, test_actor_id):
        row = _add(milestones, project, "2500.00", test_actor_id)

        partial = milestones.apply_payment(row.id, Decimal("1000.00"), date(2025, 3, 1), test_actor_id)
        paid = milestones.apply_payment(row.id, Decimal("1500.00"), date(2025, 3, 2), test_actor_id)

        assert partial.status is SettlementStatus.PARTIAL
        assert paid.status is SettlementStatus.PAID
        assert paid.version == row.version + 2

    def test_over_payment(self, milestones, project, test_actor_id):
        row = _add(milestones, project, "2500.00", test_actor_id)

        with pytest.raises(OverPaymentError):
            milestones.apply_payment(row.id, Decimal("2500.01"), date(2025, 3, 1))

        assert milestones.get_milestone(row.id).paid_amount == Decimal("0")

    def test_reverse(self, milestones, project, test_actor_id):
        row = _add(milestones, project, "2500.00", test_actor_id)
        milestones.apply_payment(row.id, Decimal("2500.00"), date(2025, 3, 1))

        after = milestones.reverse_amount(row.id, Decimal("500.00"))

        assert after.status is SettlementStatus.PARTIAL
        assert after.remaining == Decimal("500.00")

    def test_unknown_milestone(self, milestones):
        with pytest.raises(MilestoneNotFoundError):
            milestones.get_milestone(uuid4())
