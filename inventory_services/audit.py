"""
Audit sinks -- where committed AuditRecords go.

The consistency guard calls ``emit()`` once per record, after the core
transaction has committed.  A sink that raises is logged by the guard and
never undoes the operation.
"""

from abc import ABC, abstractmethod

from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_log import AuditLogEntry
from inventory_kernel.services.audit_trail import AuditRecord

logger = get_logger("services.audit")


class AuditSink(ABC):
    @abstractmethod
    def emit(self, record: AuditRecord) -> None:
        ...


class LoggingAuditSink(AuditSink):
    """Writes each record as one structured log line."""

    def emit(self, record: AuditRecord) -> None:
        logger.info(
            "audit_record",
            extra={
                "audit_action": record.action,
                "entity_type": record.entity_type,
                "entity_id": record.entity_id,
                "actor": str(record.actor_id),
                "before": record.before,
                "after": record.after,
                "occurred_at": record.occurred_at,
            },
        )


class DatabaseAuditSink(AuditSink):
    """
    Persists each record as an AuditLogEntry in its own short transaction.

    The rows are append-only (ORM listeners and, on PostgreSQL, triggers).
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def emit(self, record: AuditRecord) -> None:
        with self._session_factory() as session:
            session.add(
                AuditLogEntry(
                    actor_id=record.actor_id,
                    action=record.action,
                    entity_type=record.entity_type,
                    entity_id=record.entity_id,
                    before=record.before,
                    after=record.after,
                    occurred_at=record.occurred_at,
                )
            )
            session.commit()
