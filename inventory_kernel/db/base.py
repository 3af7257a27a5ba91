"""
Module: inventory_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the UUID primary key convention, the type annotation map for
    consistent column types, and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/, domain/.

Invariants enforced:
    - UUID primary keys on every model.
    - Decimal maps to Numeric(18, 2): money is persisted at two fractional
      digits.  NEVER use float for monetary amounts.
    - Audit timestamps: TrackedBase provides created_at, updated_at,
      created_by_id and updated_by_id.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(18, 2).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Contract:
        Every model that inherits TrackedBase records who created and last
        modified the row, and when.  These fields are audit metadata, so
        they may change even on rows whose business fields are frozen.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
