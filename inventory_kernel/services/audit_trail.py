"""
AuditTrail -- in-transaction buffer of audit records.

Responsibility:
    Services describe each successful state change as an AuditRecord
    (actor, action, entity type, entity id, before/after snapshot).  The
    records are buffered here and handed to the audit collaborator only
    after the surrounding transaction commits, so a rolled-back operation
    never produces an audit entry.

Architecture position:
    Kernel > Services.  Pure in-memory; the sink that persists or logs the
    records lives in inventory_services.audit.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import snapshot


@dataclass(frozen=True)
class AuditRecord:
    actor_id: UUID
    action: str
    entity_type: str
    entity_id: str
    before: dict[str, Any] | None
    after: dict[str, Any] | None
    occurred_at: datetime


@dataclass
class AuditTrail:
    """Ordered buffer of AuditRecords for one transactional scope."""

    clock: Clock = field(default_factory=SystemClock)
    records: list[AuditRecord] = field(default_factory=list)

    def record(
        self,
        actor_id: UUID,
        action,
        entity_type: str,
        entity_id,
        before: Any = None,
        after: Any = None,
    ) -> AuditRecord:
        rec = AuditRecord(
            actor_id=actor_id,
            action=str(getattr(action, "value", action)),
            entity_type=entity_type,
            entity_id=str(entity_id),
            before=snapshot(before),
            after=snapshot(after),
            occurred_at=self.clock.now(),
        )
        self.records.append(rec)
        return rec

    def drain(self) -> list[AuditRecord]:
        """Return and clear the buffered records."""
        out, self.records = self.records, []
        return out

    def clear(self) -> None:
        self.records.clear()

    def __len__(self) -> int:
        return len(self.records)
