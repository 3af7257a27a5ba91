"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures that cross the kernel boundary: ledger drafts and
    order line requests going in, transaction / order / stock views and
    replay results coming out.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only from services and selectors.

Invariants enforced:
    - Services and selectors return these, never live ORM entities, to
      callers outside the transactional scope.
    - ``to_dict()`` output is JSON-safe (Decimal and UUID as strings,
      datetimes as ISO-8601).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, is_dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class _Serializable:
    def to_dict(self) -> dict[str, Any]:
        return {f.name: _jsonable(getattr(self, f.name)) for f in fields(self)}


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class TransactionDraft:
    """
    A ledger append request.

    ``quantity`` is positive for receive / issue / transfer and the signed
    delta for adjustment.  Locations are optional for receive, issue and
    adjustment (the warehouse's receiving location is used) and required
    for transfer.
    """
    product_id: UUID
    warehouse_id: UUID
    type: str
    quantity: int
    actor_id: UUID
    source_location_id: UUID | None = None
    destination_location_id: UUID | None = None
    reference_number: str | None = None
    order_item_id: UUID | None = None
    reason_code: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class OrderLineRequest:
    """One line of a receive / fulfill call."""
    item_id: UUID
    quantity: int
    location_id: UUID | None = None


@dataclass(frozen=True)
class ReceiptLine(OrderLineRequest):
    """Line of a purchase order receipt (quantity received)."""


@dataclass(frozen=True)
class FulfillmentLine(OrderLineRequest):
    """Line of a sales order fulfillment (quantity fulfilled)."""


# =============================================================================
# Outputs
# =============================================================================


@dataclass(frozen=True)
class TransactionView(_Serializable):
    """Read-only shape of one ledger row."""
    id: UUID
    product_id: UUID
    warehouse_id: UUID
    source_location_id: UUID | None
    destination_location_id: UUID | None
    type: str
    quantity: int
    reference_number: str | None
    order_item_id: UUID | None
    reason_code: str | None
    user_id: UUID
    notes: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, tx) -> TransactionView:
        return cls(
            id=tx.id,
            product_id=tx.product_id,
            warehouse_id=tx.warehouse_id,
            source_location_id=tx.source_location_id,
            destination_location_id=tx.destination_location_id,
            type=str(getattr(tx.type, "value", tx.type)),
            quantity=tx.quantity,
            reference_number=tx.reference_number,
            order_item_id=tx.order_item_id,
            reason_code=(
                str(getattr(tx.reason_code, "value", tx.reason_code))
                if tx.reason_code is not None else None
            ),
            user_id=tx.user_id,
            notes=tx.notes,
            created_at=tx.created_at,
        )


@dataclass(frozen=True)
class OrderItemProgress(_Serializable):
    """An order item plus how much of it has been received / fulfilled."""
    item_id: UUID
    line_no: int
    product_id: UUID
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total_price: Decimal
    moved_quantity: int

    @property
    def remaining(self) -> int:
        return self.quantity - self.moved_quantity

    @property
    def is_complete(self) -> bool:
        return self.moved_quantity >= self.quantity

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["remaining"] = self.remaining
        return data


@dataclass(frozen=True)
class PurchaseOrderView(_Serializable):
    id: UUID
    po_number: str
    supplier_id: UUID
    warehouse_id: UUID
    status: str
    order_date: datetime
    expected_date: datetime | None
    total_amount: Decimal
    items: tuple[OrderItemProgress, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["items"] = [item.to_dict() for item in self.items]
        return data


@dataclass(frozen=True)
class SalesOrderView(_Serializable):
    id: UUID
    so_number: str
    customer_id: UUID
    warehouse_id: UUID
    status: str
    order_date: datetime
    shipping_date: datetime | None
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    payment_status: str
    items: tuple[OrderItemProgress, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["items"] = [item.to_dict() for item in self.items]
        return data


@dataclass(frozen=True)
class StockLevel(_Serializable):
    """Quantity of one product at one location."""
    product_id: UUID
    warehouse_id: UUID
    location_id: UUID
    location_code: str
    quantity: int


@dataclass(frozen=True)
class ReplayDiscrepancy(_Serializable):
    """A stored quantity that does not match the replayed ledger."""
    product_id: UUID
    warehouse_id: UUID | None
    location_id: UUID | None
    stored: int
    replayed: int

    @property
    def difference(self) -> int:
        return self.stored - self.replayed


@dataclass(frozen=True)
class ReplayResult:
    """Quantities rebuilt from the ledger, starting from empty state."""
    product_totals: dict[UUID, int]
    location_totals: dict[tuple[UUID, UUID, UUID], int]
    transactions_replayed: int
    discrepancies: tuple[ReplayDiscrepancy, ...] = ()

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies


def snapshot(obj: Any) -> dict[str, Any] | None:
    """JSON-safe dict of a DTO (audit before/after payloads)."""
    if obj is None:
        return None
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if is_dataclass(obj):
        return _jsonable(asdict(obj))
    return _jsonable(dict(obj))


@dataclass(frozen=True)
class LocationView(_Serializable):
    id: UUID
    warehouse_id: UUID
    code: str
    is_receiving: bool

    @classmethod
    def from_model(cls, location) -> LocationView:
        return cls(
            id=location.id,
            warehouse_id=location.warehouse_id,
            code=location.code,
            is_receiving=bool(location.is_receiving),
        )


@dataclass(frozen=True)
class WarehouseView(_Serializable):
    id: UUID
    code: str
    name: str
    locations: tuple[LocationView, ...] = ()

    @property
    def receiving_location(self) -> LocationView | None:
        return next((loc for loc in self.locations if loc.is_receiving), None)

    @classmethod
    def from_model(cls, warehouse) -> WarehouseView:
        return cls(
            id=warehouse.id,
            code=warehouse.code,
            name=warehouse.name,
            locations=tuple(LocationView.from_model(loc) for loc in warehouse.locations),
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["locations"] = [loc.to_dict() for loc in self.locations]
        return data


@dataclass(frozen=True)
class ProductView(_Serializable):
    id: UUID
    sku: str
    name: str
    quantity: int
    reorder_level: int
    price: Decimal
    cost_price: Decimal

    @property
    def needs_reorder(self) -> bool:
        return self.quantity <= self.reorder_level

    @classmethod
    def from_model(cls, product) -> ProductView:
        return cls(
            id=product.id,
            sku=product.sku,
            name=product.name,
            quantity=product.quantity or 0,
            reorder_level=product.reorder_level,
            price=product.price,
            cost_price=product.cost_price,
        )
