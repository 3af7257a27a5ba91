"""Domain models for the inventory kernel."""

from inventory_kernel.models.audit_log import AuditAction, AuditLogEntry
from inventory_kernel.models.catalog import (
    Customer,
    PartyStatus,
    Product,
    ProductStatus,
    Supplier,
)
from inventory_kernel.models.inventory_transaction import (
    AdjustmentReason,
    InventoryTransaction,
    TransactionType,
)
from inventory_kernel.models.purchase_order import (
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
)
from inventory_kernel.models.sales_order import (
    PaymentStatus,
    SalesOrder,
    SalesOrderItem,
    SalesOrderStatus,
)
from inventory_kernel.models.sequence import SequenceCounter
from inventory_kernel.models.warehouse import (
    ProductLocationQuantity,
    Warehouse,
    WarehouseLocation,
    WarehouseStatus,
)

__all__ = [
    "AdjustmentReason",
    "AuditAction",
    "AuditLogEntry",
    "Customer",
    "InventoryTransaction",
    "PartyStatus",
    "PaymentStatus",
    "Product",
    "ProductLocationQuantity",
    "ProductStatus",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderStatus",
    "SalesOrder",
    "SalesOrderItem",
    "SalesOrderStatus",
    "SequenceCounter",
    "Supplier",
    "TransactionType",
    "Warehouse",
    "WarehouseLocation",
    "WarehouseStatus",
]
