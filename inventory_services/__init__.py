"""
inventory_services -- transactional shell around the inventory kernel.

The consistency guard owns sessions, commit/rollback, lock timeouts and
retries; the operations facade is the plain-method API boundary.
"""

from inventory_services.audit import AuditSink, DatabaseAuditSink, LoggingAuditSink
from inventory_services.consistency_guard import ConsistencyGuard, OperationScope
from inventory_services.operations import InventoryOperations

__all__ = [
    "AuditSink",
    "ConsistencyGuard",
    "DatabaseAuditSink",
    "InventoryOperations",
    "LoggingAuditSink",
    "OperationScope",
]
