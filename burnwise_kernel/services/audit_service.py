"""
AuditService -- actor-attributed audit trail for ledger mutations.

Every state-changing ledger operation calls ``record`` inside the same
transaction as the change itself, so an audit row exists iff the change
committed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select

from burnwise_kernel.logging_config import get_logger
from burnwise_kernel.models.audit_log import AuditLog
from burnwise_kernel.services.base import BaseService

logger = get_logger("services.audit")


def to_jsonable(value: Any) -> Any:
    """Plain JSON types for dicts, DTOs, enums, UUIDs, Decimals and dates."""
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, dict):
        return {(k.value if isinstance(k, Enum) else str(k)): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class AuditEntry:
    id: UUID
    actor_id: UUID
    action: str
    entity: str
    entity_id: UUID
    old_data: dict[str, Any] | None
    new_data: dict[str, Any] | None


class AuditService(BaseService):
    """Writes and reads audit_logs rows."""

    def record(
        self,
        actor_id: UUID,
        action: str,
        entity: str,
        entity_id: UUID,
        old_data: dict[str, Any] | None = None,
        new_data: dict[str, Any] | None = None,
    ) -> AuditEntry:
        row = AuditLog(
            actor_id=actor_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            old_data=to_jsonable(old_data) if old_data is not None else None,
            new_data=to_jsonable(new_data) if new_data is not None else None,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "audit_recorded",
            extra={"action": action, "entity": entity, "entity_id": str(entity_id)},
        )
        return self._to_dto(row)

    def history(self, entity: str, entity_id: UUID) -> list[AuditEntry]:
        """Audit rows for one entity in insertion order."""
        stmt = (
            select(AuditLog)
            .where(AuditLog.entity == entity, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return [self._to_dto(row) for row in self.session.execute(stmt).scalars()]

    @staticmethod
    def _to_dto(row: AuditLog) -> AuditEntry:
        return AuditEntry(
            id=row.id,
            actor_id=row.actor_id,
            action=row.action,
            entity=row.entity,
            entity_id=row.entity_id,
            old_data=row.old_data,
            new_data=row.new_data,
        )
