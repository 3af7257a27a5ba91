"""
Module: inventory_kernel.models.purchase_order
Responsibility: ORM persistence for purchase orders and their items.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - po_number uniqueness.
    - total_amount = sum of item total_price (maintained explicitly by the
      purchase order service through the order calculator, never by hooks).
    - Items are frozen once the order leaves draft (db/immutability.py).
    - Received-to-date is not stored; it is the sum of receive-type ledger
      rows whose order_item_id is the item.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase, UUIDString
from inventory_kernel.db.types import Money


class PurchaseOrderStatus(str, Enum):
    """Lifecycle status of a purchase order (see domain/workflows.py)."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    PARTIAL = "partial"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class PurchaseOrder(TrackedBase):
    """Order placed with a supplier; receiving it brings stock in."""

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_order_number"),
        Index("idx_purchase_order_status", "status"),
        Index("idx_purchase_order_supplier", "supplier_id"),
    )

    po_number: Mapped[str] = mapped_column(String(50), nullable=False)

    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("suppliers.id"), nullable=False
    )

    # Receipts land in this warehouse
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )

    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    expected_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    status: Mapped[PurchaseOrderStatus] = mapped_column(
        String(20), nullable=False, default=PurchaseOrderStatus.DRAFT.value
    )

    total_amount: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    payment_terms: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_terms: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["PurchaseOrderItem"]] = relationship(
        back_populates="order",
        order_by="PurchaseOrderItem.line_no",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.po_number} {self.status}>"


class PurchaseOrderItem(TrackedBase):
    """One ordered product on a purchase order."""

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        UniqueConstraint("purchase_order_id", "line_no", name="uq_purchase_item_line"),
        CheckConstraint("quantity > 0", name="ck_purchase_item_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_purchase_item_price"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("purchase_orders.id"), nullable=False
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    # Ordered quantity
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Money] = mapped_column(nullable=False)

    # quantity x unit_price, rounded at persistence
    total_price: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    order: Mapped[PurchaseOrder] = relationship(back_populates="items")
