"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.audit_trail import AuditRecord, AuditTrail
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.ledger_service import LedgerService
from inventory_kernel.services.purchase_order_service import PurchaseOrderService
from inventory_kernel.services.purchase_receiving_service import PurchaseReceivingService
from inventory_kernel.services.quantity_store import QuantityStore
from inventory_kernel.services.sales_fulfillment_service import SalesFulfillmentService
from inventory_kernel.services.sales_order_service import SalesOrderService
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.warehouse_service import LocationAddress, WarehouseService

__all__ = [
    "AuditRecord",
    "AuditTrail",
    "CatalogService",
    "LedgerService",
    "LocationAddress",
    "PurchaseOrderService",
    "PurchaseReceivingService",
    "QuantityStore",
    "SalesFulfillmentService",
    "SalesOrderService",
    "SequenceService",
    "WarehouseService",
]
