"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every service in
    the kernel layer.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The caller
    (``session_scope()``, an HTTP request handler, or a test) owns
    commit/rollback, which is what makes "ledger update + payment row"
    all-or-nothing.

    Compare-and-set: ``_compare_and_set`` is the only way a versioned row's
    paid amount changes.  It issues
    ``UPDATE ... SET ..., version = version + 1 WHERE id = :id AND version = :expected``
    and reports whether exactly one row matched.
"""

from abc import ABC
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from burnwise_kernel.db.base import Base
from burnwise_kernel.domain.clock import Clock, SystemClock
from burnwise_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.policy = policy or DEFAULT_POLICY
        self.clock = clock or SystemClock()

    def _lock_row(self, model: type[Base], row_id: UUID) -> Any | None:
        """
        Load a row with ``SELECT ... FOR UPDATE`` and refreshed attributes.

        SQLite has no row locks; there the BEGIN IMMEDIATE transaction
        already serializes writers.
        """
        stmt = (
            select(model)
            .where(model.id == row_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _compare_and_set(
        self,
        model: type[Base],
        row_id: UUID,
        expected_version: int,
        values: dict[str, Any],
        actor_id: UUID | None = None,
    ) -> bool:
        """Apply ``values`` iff the row is still at ``expected_version``."""
        if actor_id is not None:
            values = {**values, "updated_by_id": actor_id}
        stmt = (
            update(model)
            .where(model.id == row_id, model.version == expected_version)
            .values(**values, version=model.version + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1
