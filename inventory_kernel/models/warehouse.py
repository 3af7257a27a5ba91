"""
Module: inventory_kernel.models.warehouse
Responsibility: ORM persistence for warehouses, their bin locations, and the
    per-location quantity rows that transfers move stock between.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - A location belongs to exactly one warehouse (NOT NULL FK).
    - (warehouse, zone, aisle, rack, shelf, bin) is unique, so a location
      code identifies one location within its warehouse.
    - One ProductLocationQuantity row per (product, warehouse, location);
      quantity >= 0 (CHECK constraint).
    - Every warehouse owns exactly one receiving location (is_receiving);
      movements that name no location land there.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString


class WarehouseStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Warehouse(TrackedBase):
    """A physical site holding stock."""

    __tablename__ = "warehouses"

    __table_args__ = (UniqueConstraint("code", name="uq_warehouse_code"),)

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[WarehouseStatus] = mapped_column(
        String(20), nullable=False, default=WarehouseStatus.ACTIVE.value
    )

    locations: Mapped[list["WarehouseLocation"]] = relationship(
        back_populates="warehouse",
        order_by="WarehouseLocation.zone, WarehouseLocation.aisle, "
        "WarehouseLocation.rack, WarehouseLocation.shelf, WarehouseLocation.bin",
    )


class WarehouseLocation(TrackedBase):
    """
    A bin inside a warehouse, addressed zone-aisle-rack-shelf-bin.

    Contract:
        `code` is the dash-joined address and is unique within the warehouse.
    """

    __tablename__ = "warehouse_locations"

    __table_args__ = (
        UniqueConstraint(
            "warehouse_id", "zone", "aisle", "rack", "shelf", "bin",
            name="uq_location_address",
        ),
        Index("idx_location_warehouse", "warehouse_id"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )

    zone: Mapped[str] = mapped_column(String(20), nullable=False)
    aisle: Mapped[str] = mapped_column(String(20), nullable=False)
    rack: Mapped[str] = mapped_column(String(20), nullable=False)
    shelf: Mapped[str] = mapped_column(String(20), nullable=False)
    bin: Mapped[str] = mapped_column(String(20), nullable=False)

    # Default landing spot for movements that name no location
    is_receiving: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    warehouse: Mapped[Warehouse] = relationship(back_populates="locations")

    @property
    def code(self) -> str:
        return "-".join((self.zone, self.aisle, self.rack, self.shelf, self.bin))

    def __repr__(self) -> str:
        return f"<WarehouseLocation {self.code}>"


class ProductLocationQuantity(Base):
    """
    Granular on-hand quantity for one product at one location.

    Contract:
        Created lazily by the quantity store on the first movement into the
        location.  Written only through the quantity store's guarded UPDATE.
    """

    __tablename__ = "product_location_quantities"

    __table_args__ = (
        UniqueConstraint(
            "product_id", "warehouse_id", "location_id",
            name="uq_product_location_quantity",
        ),
        CheckConstraint("quantity >= 0", name="ck_location_quantity_non_negative"),
        Index("idx_plq_product", "product_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouse_locations.id"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
