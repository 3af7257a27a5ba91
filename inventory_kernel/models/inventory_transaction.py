"""
Module: inventory_kernel.models.inventory_transaction
Responsibility: ORM persistence for the inventory ledger, the append-only
    record every quantity change is derived from.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: ORM listeners (db/immutability.py) and PostgreSQL
      triggers (db/triggers.py) reject UPDATE and DELETE.
    - quantity > 0 for receive / issue / transfer; quantity != 0 for
      adjustment, where the sign is the direction (CHECK constraints).
    - reason_code only on adjustments (CHECK constraint).

Audit relevance:
    Replaying these rows from empty state reproduces every Product.quantity
    and ProductLocationQuantity value (see selectors/replay_selector.py).
    order_item_id links receipts and issues back to the order line they
    settle, which is how received-to-date and fulfilled-to-date are derived.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString


class TransactionType(str, Enum):
    """The four ledger movement types."""

    RECEIVE = "receive"
    ISSUE = "issue"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"


class AdjustmentReason(str, Enum):
    """Why an adjustment was posted."""

    COUNT_CORRECTION = "count_correction"
    FOUND = "found"
    DAMAGED = "damaged"
    LOST = "lost"
    EXPIRED = "expired"
    OTHER = "other"


class InventoryTransaction(Base):
    """
    One immutable stock movement.

    Contract:
        Written once by LedgerService.append() and never modified.

    Non-goals:
        - Does not carry the resulting on-hand quantity; running totals live
          in the quantity store and are reproducible by replay.
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        CheckConstraint(
            "quantity > 0 OR (type = 'adjustment' AND quantity <> 0)",
            name="ck_inventory_transaction_quantity",
        ),
        CheckConstraint(
            "reason_code IS NULL OR type = 'adjustment'",
            name="ck_inventory_transaction_reason",
        ),
        Index("idx_invtx_product", "product_id", "created_at"),
        Index("idx_invtx_reference", "reference_number"),
        Index("idx_invtx_order_item", "order_item_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )

    # Location stock left (issue, transfer, negative adjustment)
    source_location_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("warehouse_locations.id"), nullable=True
    )

    # Location stock arrived at (receive, transfer, positive adjustment)
    destination_location_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("warehouse_locations.id"), nullable=True
    )

    type: Mapped[TransactionType] = mapped_column(String(20), nullable=False)

    # Positive, except adjustments which carry the signed delta
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Order number or external document
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Purchase or sales order item this movement settles
    order_item_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reason_code: Mapped[AdjustmentReason | None] = mapped_column(
        String(30), nullable=True
    )

    # Actor who caused the movement
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @property
    def product_delta(self) -> int:
        """Signed effect on Product.quantity."""
        if self.type == TransactionType.RECEIVE:
            return self.quantity
        if self.type == TransactionType.ISSUE:
            return -self.quantity
        if self.type == TransactionType.ADJUSTMENT:
            return self.quantity
        return 0

    def __repr__(self) -> str:
        return f"<InventoryTransaction {self.type} {self.quantity} product={self.product_id}>"
