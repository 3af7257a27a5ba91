"""
Module: inventory_kernel.models.sales_order
Responsibility: ORM persistence for sales orders and their items.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - so_number uniqueness.
    - subtotal / tax / total_amount maintained explicitly by the sales order
      service through the order calculator.
    - 0 <= discount <= 100 (CHECK constraint).
    - Items are frozen once the order leaves draft (db/immutability.py).
    - Fulfilled-to-date is the sum of issue-type ledger rows whose
      order_item_id is the item.
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
from inventory_kernel.db.types import Money, Percentage


class SalesOrderStatus(str, Enum):
    """Lifecycle status of a sales order (see domain/workflows.py)."""

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PARTIAL = "partial"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class SalesOrder(TrackedBase):
    """Order placed by a customer; fulfilling it issues stock out."""

    __tablename__ = "sales_orders"

    __table_args__ = (
        UniqueConstraint("so_number", name="uq_sales_order_number"),
        Index("idx_sales_order_status", "status"),
        Index("idx_sales_order_customer", "customer_id"),
    )

    so_number: Mapped[str] = mapped_column(String(50), nullable=False)

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False
    )

    # Stock is issued from this warehouse
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )

    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Set on each fulfillment (defaults to now)
    shipping_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    status: Mapped[SalesOrderStatus] = mapped_column(
        String(20), nullable=False, default=SalesOrderStatus.DRAFT.value
    )

    subtotal: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))
    tax: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))
    shipping_cost: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.UNPAID.value
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["SalesOrderItem"]] = relationship(
        back_populates="order",
        order_by="SalesOrderItem.line_no",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<SalesOrder {self.so_number} {self.status}>"


class SalesOrderItem(TrackedBase):
    """One ordered product on a sales order."""

    __tablename__ = "sales_order_items"

    __table_args__ = (
        UniqueConstraint("sales_order_id", "line_no", name="uq_sales_item_line"),
        CheckConstraint("quantity > 0", name="ck_sales_item_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_sales_item_price"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="ck_sales_item_discount"),
    )

    sales_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_orders.id"), nullable=False
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Money] = mapped_column(nullable=False)

    # Percent off the line, 0-100
    discount: Mapped[Percentage] = mapped_column(nullable=False, default=Decimal("0"))

    # quantity x unit_price x (1 - discount/100), rounded at persistence
    total_price: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    order: Mapped[SalesOrder] = relationship(back_populates="items")
