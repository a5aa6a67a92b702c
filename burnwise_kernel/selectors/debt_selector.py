"""
Module: burnwise_kernel.selectors.debt_selector
Responsibility: Read models over debts and their installment schedules, in
    the shape the aggregators and the dashboard consume.
Architecture position: Kernel > Selectors.

An "obligation line" is one thing that falls due on one date:
    - each installment of a scheduled debt, or
    - the whole principal of an unscheduled debt, due on its due_date
      (start_date when no due_date is set), settled by direct payments.

Every query here is a single SELECT, so a caller iterating its result sees
one consistent snapshot of paid amounts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, and_, or_, select

from burnwise_kernel.domain.settlement import SettlementStatus, derive_status
from burnwise_kernel.models.debt import Debt, DebtKind, DebtStatus, Installment
from burnwise_kernel.models.party import Party
from burnwise_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ObligationLine:
    """One dated obligation of an open or closed debt."""

    debt_id: UUID
    kind: DebtKind
    party_id: UUID
    party_name: str
    installment_id: UUID | None
    sequence: int | None
    due_date: date
    amount: Decimal
    paid_amount: Decimal
    currency: str

    @property
    def is_scheduled(self) -> bool:
        return self.installment_id is not None

    @property
    def line_id(self) -> UUID:
        """Installment id, or the debt id for an unscheduled debt."""
        return self.installment_id if self.installment_id is not None else self.debt_id

    @property
    def status(self) -> SettlementStatus:
        return derive_status(self.amount, self.paid_amount)

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.paid_amount


class DebtSelector(BaseSelector):
    """Read-only queries over debts, installments and parties."""

    def _lines_stmt(self) -> Select:
        return (
            select(Debt, Installment, Party.name)
            .join(Party, Party.id == Debt.party_id)
            .outerjoin(Installment, Installment.debt_id == Debt.id)
            .order_by(Debt.start_date, Debt.id, Installment.sequence)
            .execution_options(populate_existing=True)
        )

    @staticmethod
    def _to_line(debt: Debt, installment: Installment | None, party_name: str) -> ObligationLine:
        if installment is None:
            return ObligationLine(
                debt_id=debt.id,
                kind=DebtKind(debt.kind),
                party_id=debt.party_id,
                party_name=party_name,
                installment_id=None,
                sequence=None,
                due_date=debt.due_date or debt.start_date,
                amount=debt.principal_amount,
                paid_amount=debt.direct_paid_amount,
                currency=debt.currency,
            )
        return ObligationLine(
            debt_id=debt.id,
            kind=DebtKind(debt.kind),
            party_id=debt.party_id,
            party_name=party_name,
            installment_id=installment.id,
            sequence=installment.sequence,
            due_date=installment.due_date,
            amount=installment.amount,
            paid_amount=installment.paid_amount,
            currency=installment.currency,
        )

    def _run(self, stmt: Select) -> list[ObligationLine]:
        return [
            self._to_line(debt, installment, party_name)
            for debt, installment, party_name in self.session.execute(stmt).all()
        ]

    def obligation_lines(
        self,
        kind: DebtKind | None = None,
        party_id: UUID | None = None,
        include_closed: bool = False,
    ) -> list[ObligationLine]:
        """All obligation lines, by default for open debts only."""
        stmt = self._lines_stmt()
        if not include_closed:
            stmt = stmt.where(Debt.status == DebtStatus.OPEN.value)
        if kind is not None:
            stmt = stmt.where(Debt.kind == DebtKind(kind).value)
        if party_id is not None:
            stmt = stmt.where(Debt.party_id == party_id)
        return self._run(stmt)

    def lines_for_debt(self, debt_id: UUID) -> list[ObligationLine]:
        return self._run(self._lines_stmt().where(Debt.id == debt_id))

    def _unpaid_lines_stmt(self) -> Select:
        return self._lines_stmt().where(
            Debt.status == DebtStatus.OPEN.value,
            or_(
                and_(
                    Installment.id.is_not(None),
                    Installment.status != SettlementStatus.PAID.value,
                ),
                and_(
                    Installment.id.is_(None),
                    Debt.direct_paid_amount < Debt.principal_amount,
                ),
            ),
        )

    def overdue_lines(self, as_of: date, kind: DebtKind | None = None) -> list[ObligationLine]:
        """Unpaid lines of open debts due strictly before ``as_of``, oldest first."""
        stmt = self._unpaid_lines_stmt()
        if kind is not None:
            stmt = stmt.where(Debt.kind == DebtKind(kind).value)
        lines = [line for line in self._run(stmt) if line.due_date < as_of]
        return sorted(lines, key=lambda line: (line.due_date, str(line.line_id)))

    def upcoming_lines(
        self,
        as_of: date,
        window_days: int,
        kind: DebtKind | None = None,
    ) -> list[ObligationLine]:
        """Unpaid lines of open debts due within [as_of, as_of + window_days]."""
        stmt = self._unpaid_lines_stmt()
        if kind is not None:
            stmt = stmt.where(Debt.kind == DebtKind(kind).value)
        horizon = as_of + timedelta(days=window_days)
        lines = [line for line in self._run(stmt) if as_of <= line.due_date <= horizon]
        return sorted(lines, key=lambda line: (line.due_date, str(line.line_id)))
