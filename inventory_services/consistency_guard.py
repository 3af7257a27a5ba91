"""
ConsistencyGuard -- transactional scope, lock-timeout mapping and retry for
every ledger-affecting operation.

Responsibility:
    Opens a fresh session per operation, bounds lock waits, commits on
    success and rolls back on any exception, maps driver-level lock failures
    to ConcurrencyConflictError, retries that error a bounded number of
    times, and dispatches buffered audit records after commit.

Architecture position:
    Services -- the only place that calls ``session.commit()`` for kernel
    work.  Kernel services flush; the guard decides.

Invariants enforced:
    - All-or-nothing: anything raised inside ``scope()`` rolls back every
      ledger row, quantity update and status change made in it.
    - Audit records are emitted only for committed work, after the commit.
    - Only ConcurrencyConflictError is retried; the retry re-runs the
      whole operation in a new session, so it re-reads every locked row.

Failure modes:
    - ConcurrencyConflictError after ``max_retries`` retries.
    - Any kernel error propagates unchanged on the first occurrence.

Usage:
    guard = ConsistencyGuard(get_session_factory(), clock, LoggingAuditSink())
    view = guard.run(
        "fulfill_sales_order",
        lambda scope: SalesFulfillmentService(scope.session, scope.clock, scope.audit)
            .fulfill(order_id, lines, actor_id),
        actor_id=actor_id,
    )
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Generator, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from inventory_kernel.db.engine import is_postgres
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import ConcurrencyConflictError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.audit_trail import AuditRecord, AuditTrail
from inventory_services.audit import AuditSink

logger = get_logger("services.consistency_guard")

T = TypeVar("T")

# lock_not_available, deadlock_detected, serialization_failure
_PG_CONFLICT_CODES = frozenset({"55P03", "40P01", "40001"})

_SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked")


@dataclass(frozen=True)
class OperationScope:
    """What an operation body receives from the guard."""
    session: Session
    clock: Clock
    audit: AuditTrail
    operation: str
    actor_id: UUID | None = None


def conflict_reason(exc: BaseException) -> str | None:
    """Why ``exc`` is a concurrency conflict, or None if it is not one."""
    if isinstance(exc, StaleDataError):
        return "stale row version"
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        pgcode = getattr(orig, "pgcode", None)
        if pgcode in _PG_CONFLICT_CODES:
            return f"database error {pgcode}"
        message = str(orig).lower()
        for needle in _SQLITE_LOCK_MESSAGES:
            if needle in message:
                return needle
    return None


class ConsistencyGuard:
    """Runs operations in committed-or-nothing scopes with bounded lock waits."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
        lock_timeout_ms: int = 5000,
        max_retries: int = 3,
        retry_backoff_ms: int = 50,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._audit_sink = audit_sink
        self._lock_timeout_ms = int(lock_timeout_ms)
        self._max_retries = max_retries
        self._retry_backoff_ms = retry_backoff_ms

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    @contextmanager
    def scope(self, operation: str, actor_id: UUID | None = None) -> Generator[OperationScope, None, None]:
        """One transaction: commit on normal exit, roll back on any exception."""
        session = self._session_factory()
        audit = AuditTrail(self._clock)
        with LogContext.bind(correlation_id=uuid4(), actor_id=actor_id, operation=operation):
            try:
                if is_postgres(session.get_bind()):
                    session.execute(text(f"SET LOCAL lock_timeout = {self._lock_timeout_ms}"))
                yield OperationScope(session, self._clock, audit, operation, actor_id)
                session.commit()
            except Exception as exc:
                session.rollback()
                audit.clear()
                reason = conflict_reason(exc)
                if reason is not None:
                    logger.warning(
                        "concurrency_conflict",
                        extra={"reason": reason, "error_type": type(exc).__name__},
                    )
                    raise ConcurrencyConflictError(operation, reason) from exc
                logger.info(
                    "guard_scope_rolled_back",
                    extra={
                        "error_type": type(exc).__name__,
                        "error_code": getattr(exc, "code", None),
                    },
                )
                raise
            finally:
                session.close()

            logger.info("guard_scope_committed", extra={"audit_records": len(audit)})
            self._dispatch(audit.drain())

    def run(
        self,
        operation: str,
        fn: Callable[[OperationScope], T],
        actor_id: UUID | None = None,
        retries: int | None = None,
    ) -> T:
        """Run ``fn`` in a scope, retrying ConcurrencyConflictError only."""
        max_retries = self._max_retries if retries is None else retries
        attempt = 0
        while True:
            attempt += 1
            try:
                with self.scope(operation, actor_id) as scope:
                    return fn(scope)
            except ConcurrencyConflictError as exc:
                if attempt > max_retries:
                    logger.error(
                        "concurrency_retries_exhausted",
                        extra={"operation": operation, "attempts": attempt, "reason": exc.reason},
                    )
                    raise
                logger.warning(
                    "concurrency_retry",
                    extra={"operation": operation, "attempt": attempt, "reason": exc.reason},
                )
                if self._retry_backoff_ms:
                    time.sleep(self._retry_backoff_ms * attempt / 1000.0)

    def _dispatch(self, records: list[AuditRecord]) -> None:
        if self._audit_sink is None:
            return
        for record in records:
            try:
                self._audit_sink.emit(record)
            except Exception as exc:
                logger.warning(
                    "audit_dispatch_failed",
                    extra={
                        "audit_action": record.action,
                        "entity_type": record.entity_type,
                        "entity_id": record.entity_id,
                        "error": str(exc),
                    },
                )
