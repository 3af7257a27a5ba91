"""
Module: inventory_kernel.models.catalog
Responsibility: ORM persistence for products and the counterparties that
    orders reference (suppliers, customers).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - SKU uniqueness (UNIQUE constraint).
    - Product.quantity >= 0 (CHECK constraint), and it is written only by the
      ledger's guarded UPDATE (ORM writes rejected in db/immutability.py).
    - Product.quantity equals the sum of the product's
      ProductLocationQuantity rows (maintained by the ledger; verified by
      the replay selector).

Failure modes:
    - IntegrityError on duplicate SKU or negative quantity.
    - ImmutabilityViolationError on ORM assignment to Product.quantity or
      on a SKU change.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import BigInteger, CheckConstraint, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.db.types import Money


class ProductStatus(str, Enum):
    """Whether a product may be ordered."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class PartyStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Product(TrackedBase):
    """
    A stocked item.

    Contract:
        `quantity` is derived state: the running total of the inventory
        ledger for this product.  Catalog code creates products with
        quantity 0 and never assigns it afterwards.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
        CheckConstraint("quantity >= 0", name="ck_product_quantity_non_negative"),
        Index("idx_product_status", "status"),
    )

    # Stock keeping unit, immutable once assigned
    sku: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Threshold for low-stock alerts
    reorder_level: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    # Selling price
    price: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    # Unit cost
    cost_price: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    status: Mapped[ProductStatus] = mapped_column(
        String(20), nullable=False, default=ProductStatus.ACTIVE.value
    )

    # On-hand total across every warehouse and location (ledger-maintained)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Product {self.sku} qty={self.quantity}>"


class Supplier(TrackedBase):
    """Counterparty on purchase orders."""

    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[PartyStatus] = mapped_column(
        String(20), nullable=False, default=PartyStatus.ACTIVE.value
    )


class Customer(TrackedBase):
    """Counterparty on sales orders."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[PartyStatus] = mapped_column(
        String(20), nullable=False, default=PartyStatus.ACTIVE.value
    )
