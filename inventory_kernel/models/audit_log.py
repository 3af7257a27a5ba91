"""
Module: inventory_kernel.models.audit_log
Responsibility: ORM persistence for audit records written by the database
    audit sink after each successful state-changing operation.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only (ORM listeners + PostgreSQL triggers).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Auditable actions.

    Contract: every state-changing core operation maps to exactly one member.
    """

    STOCK_RECEIVED = "stock_received"
    STOCK_ISSUED = "stock_issued"
    STOCK_TRANSFERRED = "stock_transferred"
    STOCK_ADJUSTED = "stock_adjusted"

    PURCHASE_ORDER_CREATED = "purchase_order_created"
    PURCHASE_ORDER_ITEMS_CHANGED = "purchase_order_items_changed"
    PURCHASE_ORDER_SUBMITTED = "purchase_order_submitted"
    PURCHASE_ORDER_APPROVED = "purchase_order_approved"
    PURCHASE_ORDER_RECEIVED = "purchase_order_received"
    PURCHASE_ORDER_CANCELLED = "purchase_order_cancelled"

    SALES_ORDER_CREATED = "sales_order_created"
    SALES_ORDER_ITEMS_CHANGED = "sales_order_items_changed"
    SALES_ORDER_CONFIRMED = "sales_order_confirmed"
    SALES_ORDER_FULFILLED = "sales_order_fulfilled"
    SALES_ORDER_CANCELLED = "sales_order_cancelled"
    SALES_ORDER_SHIPPING_SET = "sales_order_shipping_set"

    WAREHOUSE_CREATED = "warehouse_created"
    LOCATION_CREATED = "location_created"


class AuditLogEntry(Base):
    """One audit record: who did what to which entity, before and after."""

    __tablename__ = "audit_log_entries"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_occurred_at", "occurred_at"),
    )

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # JSON-safe snapshots (strings for Decimal/UUID/datetime)
    before: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
