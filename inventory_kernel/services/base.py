"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract.  Services receive a
    SQLAlchemy ``Session`` and use ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back.  The consistency guard (or a test
    harness) owns commit/rollback, which is what makes a multi-line
    receipt plus its status change one atomic unit.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.  Savepoints (``begin_nested``) are
          allowed for all-or-nothing sub-steps.
    """

    def __init__(self, session: Session):
        self.session = session
