"""
Module: burnwise_kernel.models.audit_log
Responsibility: Append-only record of who did what to which ledger entity.
Architecture position: Kernel > Models.  May import from db/base.py only.

Audit relevance:
    Every payment record/delete, schedule creation, cancellation and grant
    receipt writes one row carrying the acting user id supplied by the auth
    layer, plus before/after snapshots of the affected entity.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from burnwise_kernel.db.base import Base, UUIDString


class AuditLog(Base):
    """One audited action."""

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("idx_audit_entity", "entity", "entity_id"),
        Index("idx_audit_actor", "actor_id"),
    )

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # e.g. "payment.recorded", "debt.cancelled"
    action: Mapped[str] = mapped_column(String(50), nullable=False)

    entity: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    old_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    new_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.entity}:{self.entity_id}>"
