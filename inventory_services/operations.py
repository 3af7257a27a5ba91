"""
InventoryOperations -- the plain-method API boundary of the inventory system.

Responsibility:
    One method per externally visible operation.  Each method runs inside a
    ConsistencyGuard scope (commit-or-nothing, bounded lock waits, retry on
    ConcurrencyConflictError), constructs the kernel services it needs on
    that scope's session, and returns immutable views rather than ORM
    entities.

Architecture position:
    Services -- outermost layer.  No HTTP framework; a web adapter would map
    request bodies onto these calls and InventoryKernelError.code onto
    status codes.

Usage:
    ops = build_operations()
    view = ops.receive_purchase_order(
        po_id,
        {"items": [{"item_id": item_id, "quantity_received": 6}]},
        actor_id,
    )
    view.status               # "partial"
    view.to_dict()["items"]   # per-item ordered / received / remaining
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.dtos import (
    LocationView,
    ProductView,
    PurchaseOrderView,
    ReplayResult,
    SalesOrderView,
    StockLevel,
    TransactionView,
    WarehouseView,
)
from inventory_kernel.domain.order_totals import DEFAULT_SALES_TAX_RATE
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_log import AuditAction
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.selectors.replay_selector import ReplaySelector
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.ledger_service import LedgerService
from inventory_kernel.services.order_base import as_uuid
from inventory_kernel.services.purchase_order_service import PurchaseOrderService
from inventory_kernel.services.purchase_receiving_service import PurchaseReceivingService
from inventory_kernel.services.sales_fulfillment_service import SalesFulfillmentService
from inventory_kernel.services.sales_order_service import SalesOrderService
from inventory_kernel.services.warehouse_service import (
    DEFAULT_RECEIVING_ADDRESS,
    LocationAddress,
    WarehouseService,
)
from inventory_services.consistency_guard import ConsistencyGuard, OperationScope
from inventory_services.payloads import parse_fulfillment, parse_receipt

logger = get_logger("services.operations")


class InventoryOperations:
    """
    Facade over the kernel services.

    Every mutating method takes ``actor_id`` and records exactly one audit
    entry per state change, dispatched after commit.
    """

    def __init__(
        self,
        guard: ConsistencyGuard,
        *,
        tax_rate: Decimal = DEFAULT_SALES_TAX_RATE,
        purchase_order_prefix: str = "PO",
        sales_order_prefix: str = "SO",
        number_width: int = 6,
        receiving_address: LocationAddress = DEFAULT_RECEIVING_ADDRESS,
    ):
        self._guard = guard
        self._tax_rate = tax_rate
        self._po_prefix = purchase_order_prefix
        self._so_prefix = sales_order_prefix
        self._number_width = number_width
        self._receiving_address = receiving_address

    @property
    def guard(self) -> ConsistencyGuard:
        return self._guard

    # -------------------------------------------------------------------------
    # Service construction (one set per scope)
    # -------------------------------------------------------------------------

    def _purchase_orders(self, scope: OperationScope) -> PurchaseOrderService:
        return PurchaseOrderService(
            scope.session, scope.clock, scope.audit,
            number_prefix=self._po_prefix, number_width=self._number_width,
        )

    def _sales_orders(self, scope: OperationScope) -> SalesOrderService:
        return SalesOrderService(
            scope.session, scope.clock, scope.audit, tax_rate=self._tax_rate,
            number_prefix=self._so_prefix, number_width=self._number_width,
        )

    def _warehouses(self, scope: OperationScope) -> WarehouseService:
        return WarehouseService(
            scope.session, scope.clock, scope.audit,
            receiving_address=self._receiving_address,
        )

    # -------------------------------------------------------------------------
    # Warehouses and catalog
    # -------------------------------------------------------------------------

    def create_warehouse(self, code: str, name: str, actor_id: UUID,
                         address: str | None = None) -> WarehouseView:
        def op(scope):
            warehouse = self._warehouses(scope).create_warehouse(code, name, actor_id, address)
            return WarehouseView.from_model(warehouse)
        return self._guard.run("create_warehouse", op, actor_id)

    def add_location(self, warehouse_id, location_code: str, actor_id: UUID) -> LocationView:
        def op(scope):
            location = self._warehouses(scope).add_location(warehouse_id, location_code, actor_id)
            return LocationView.from_model(location)
        return self._guard.run("add_location", op, actor_id)

    def get_warehouse(self, warehouse_id) -> WarehouseView:
        return self._guard.run(
            "get_warehouse",
            lambda scope: WarehouseView.from_model(self._warehouses(scope).get_warehouse(warehouse_id)),
        )

    def create_product(self, sku: str, name: str, actor_id: UUID, **fields) -> ProductView:
        def op(scope):
            product = CatalogService(scope.session).create_product(sku, name, actor_id, **fields)
            return ProductView.from_model(product)
        return self._guard.run("create_product", op, actor_id)

    def create_supplier(self, name: str, actor_id: UUID, **fields) -> UUID:
        return self._guard.run(
            "create_supplier",
            lambda scope: CatalogService(scope.session).create_supplier(name, actor_id, **fields).id,
            actor_id,
        )

    def create_customer(self, name: str, actor_id: UUID, **fields) -> UUID:
        return self._guard.run(
            "create_customer",
            lambda scope: CatalogService(scope.session).create_customer(name, actor_id, **fields).id,
            actor_id,
        )

    def low_stock(self) -> list[ProductView]:
        return self._guard.run(
            "low_stock",
            lambda scope: [ProductView.from_model(p) for p in CatalogService(scope.session).low_stock()],
        )

    # -------------------------------------------------------------------------
    # Purchase orders
    # -------------------------------------------------------------------------

    def create_purchase_order(self, supplier_id, warehouse_id, actor_id: UUID,
                              **fields) -> PurchaseOrderView:
        def op(scope):
            service = self._purchase_orders(scope)
            return service.view(service.create_order(supplier_id, warehouse_id, actor_id, **fields))
        return self._guard.run("create_purchase_order", op, actor_id)

    def add_purchase_order_item(self, order_id, product_id, quantity: int, unit_price,
                                actor_id: UUID) -> PurchaseOrderView:
        def op(scope):
            service = self._purchase_orders(scope)
            item = service.add_item(order_id, product_id, quantity, unit_price, actor_id)
            return service.view(item.order)
        return self._guard.run("add_purchase_order_item", op, actor_id)

    def update_purchase_order_item(self, order_id, item_id, actor_id: UUID,
                                   **changes) -> PurchaseOrderView:
        def op(scope):
            service = self._purchase_orders(scope)
            item = service.update_item(order_id, item_id, actor_id, **changes)
            return service.view(item.order)
        return self._guard.run("update_purchase_order_item", op, actor_id)

    def remove_purchase_order_item(self, order_id, item_id, actor_id: UUID) -> PurchaseOrderView:
        def op(scope):
            service = self._purchase_orders(scope)
            return service.view(service.remove_item(order_id, item_id, actor_id))
        return self._guard.run("remove_purchase_order_item", op, actor_id)

    def submit_purchase_order(self, order_id, actor_id: UUID) -> PurchaseOrderView:
        def op(scope):
            service = self._purchase_orders(scope)
            return service.view(service.submit(order_id, actor_id))
        return self._guard.run("submit_purchase_order", op, actor_id)

    def approve_purchase_order(self, order_id, actor_id: UUID) -> PurchaseOrderView:
        def op(scope):
            service = self._purchase_orders(scope)
            return service.view(service.approve(order_id, actor_id))
        return self._guard.run("approve_purchase_order", op, actor_id)

    def cancel_purchase_order(self, order_id, actor_id: UUID) -> PurchaseOrderView:
        def op(scope):
            service = self._purchase_orders(scope)
            return service.view(service.cancel(order_id, actor_id))
        return self._guard.run("cancel_purchase_order", op, actor_id)

    def receive_purchase_order(self, order_id, payload, actor_id: UUID) -> PurchaseOrderView:
        """Receive goods against a purchase order from a JSON-style payload."""
        request = parse_receipt(payload)

        def op(scope):
            orders = self._purchase_orders(scope)
            receiving = PurchaseReceivingService(scope.session, scope.clock, scope.audit, orders=orders)
            order = receiving.receive(order_id, list(request.lines), actor_id, request.notes)
            return orders.view(order)
        return self._guard.run("receive_purchase_order", op, actor_id)

    def get_purchase_order(self, order_id) -> PurchaseOrderView:
        def op(scope):
            service = self._purchase_orders(scope)
            return service.view(service.get_order(order_id))
        return self._guard.run("get_purchase_order", op)

    # -------------------------------------------------------------------------
    # Sales orders
    # -------------------------------------------------------------------------

    def create_sales_order(self, customer_id, warehouse_id, actor_id: UUID,
                           **fields) -> SalesOrderView:
        def op(scope):
            service = self._sales_orders(scope)
            return service.view(service.create_order(customer_id, warehouse_id, actor_id, **fields))
        return self._guard.run("create_sales_order", op, actor_id)

    def add_sales_order_item(self, order_id, product_id, quantity: int, unit_price,
                             actor_id: UUID, discount=Decimal("0")) -> SalesOrderView:
        def op(scope):
            service = self._sales_orders(scope)
            item = service.add_item(order_id, product_id, quantity, unit_price, actor_id, discount)
            return service.view(item.order)
        return self._guard.run("add_sales_order_item", op, actor_id)

    def update_sales_order_item(self, order_id, item_id, actor_id: UUID,
                                **changes) -> SalesOrderView:
        def op(scope):
            service = self._sales_orders(scope)
            item = service.update_item(order_id, item_id, actor_id, **changes)
            return service.view(item.order)
        return self._guard.run("update_sales_order_item", op, actor_id)

    def remove_sales_order_item(self, order_id, item_id, actor_id: UUID) -> SalesOrderView:
        def op(scope):
            service = self._sales_orders(scope)
            return service.view(service.remove_item(order_id, item_id, actor_id))
        return self._guard.run("remove_sales_order_item", op, actor_id)

    def set_shipping_cost(self, order_id, shipping_cost, actor_id: UUID) -> SalesOrderView:
        def op(scope):
            service = self._sales_orders(scope)
            return service.view(service.set_shipping_cost(order_id, shipping_cost, actor_id))
        return self._guard.run("set_shipping_cost", op, actor_id)

    def confirm_sales_order(self, order_id, actor_id: UUID) -> SalesOrderView:
        def op(scope):
            service = self._sales_orders(scope)
            return service.view(service.confirm(order_id, actor_id))
        return self._guard.run("confirm_sales_order", op, actor_id)

    def cancel_sales_order(self, order_id, actor_id: UUID) -> SalesOrderView:
        def op(scope):
            service = self._sales_orders(scope)
            return service.view(service.cancel(order_id, actor_id))
        return self._guard.run("cancel_sales_order", op, actor_id)

    def fulfill_sales_order(self, order_id, payload, actor_id: UUID) -> SalesOrderView:
        """Fulfill a sales order from a JSON-style payload; all lines or none."""
        request = parse_fulfillment(payload)

        def op(scope):
            orders = self._sales_orders(scope)
            fulfillment = SalesFulfillmentService(scope.session, scope.clock, scope.audit, orders=orders)
            order = fulfillment.fulfill(
                order_id, list(request.lines), actor_id,
                notes=request.notes, shipping_date=request.shipping_date,
            )
            return orders.view(order)
        return self._guard.run("fulfill_sales_order", op, actor_id)

    def get_sales_order(self, order_id) -> SalesOrderView:
        def op(scope):
            service = self._sales_orders(scope)
            return service.view(service.get_order(order_id))
        return self._guard.run("get_sales_order", op)

    # -------------------------------------------------------------------------
    # Direct stock movements
    # -------------------------------------------------------------------------

    def _movement(self, operation: str, audit_action: AuditAction, actor_id: UUID, append):
        def op(scope):
            tx = append(LedgerService(scope.session, scope.clock))
            view = TransactionView.from_model(tx)
            scope.audit.record(actor_id, audit_action, "InventoryTransaction", tx.id, after=view)
            return view
        return self._guard.run(operation, op, actor_id)

    def receive_stock(self, product_id, warehouse_id, quantity: int, actor_id: UUID, *,
                      location_id=None, reference_number: str | None = None,
                      notes: str | None = None) -> TransactionView:
        return self._movement(
            "receive_stock", AuditAction.STOCK_RECEIVED, actor_id,
            lambda ledger: ledger.receive(
                as_uuid(product_id, "product_id"), as_uuid(warehouse_id, "warehouse_id"),
                quantity, actor_id,
                location_id=as_uuid(location_id, "location_id") if location_id else None,
                reference_number=reference_number, notes=notes,
            ),
        )

    def issue_stock(self, product_id, warehouse_id, quantity: int, actor_id: UUID, *,
                    location_id=None, reference_number: str | None = None,
                    notes: str | None = None) -> TransactionView:
        return self._movement(
            "issue_stock", AuditAction.STOCK_ISSUED, actor_id,
            lambda ledger: ledger.issue(
                as_uuid(product_id, "product_id"), as_uuid(warehouse_id, "warehouse_id"),
                quantity, actor_id,
                location_id=as_uuid(location_id, "location_id") if location_id else None,
                reference_number=reference_number, notes=notes,
            ),
        )

    def transfer_stock(self, product_id, warehouse_id, quantity: int, actor_id: UUID, *,
                       source_location_id, destination_location_id,
                       reference_number: str | None = None,
                       notes: str | None = None) -> TransactionView:
        return self._movement(
            "transfer_stock", AuditAction.STOCK_TRANSFERRED, actor_id,
            lambda ledger: ledger.transfer(
                as_uuid(product_id, "product_id"), as_uuid(warehouse_id, "warehouse_id"),
                quantity, actor_id,
                source_location_id=as_uuid(source_location_id, "source_location_id"),
                destination_location_id=as_uuid(destination_location_id, "destination_location_id"),
                reference_number=reference_number, notes=notes,
            ),
        )

    def adjust_stock(self, product_id, warehouse_id, delta: int, actor_id: UUID, *,
                     location_id=None, reason_code: str | None = None,
                     reference_number: str | None = None,
                     notes: str | None = None) -> TransactionView:
        return self._movement(
            "adjust_stock", AuditAction.STOCK_ADJUSTED, actor_id,
            lambda ledger: ledger.adjust(
                as_uuid(product_id, "product_id"), as_uuid(warehouse_id, "warehouse_id"),
                delta, actor_id,
                location_id=as_uuid(location_id, "location_id") if location_id else None,
                reason_code=reason_code, reference_number=reference_number, notes=notes,
            ),
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def product_quantity(self, product_id) -> int:
        return self._guard.run(
            "product_quantity",
            lambda scope: StockSelector(scope.session).product_quantity(as_uuid(product_id, "product_id")),
        )

    def stock_levels(self, product_id) -> list[StockLevel]:
        return self._guard.run(
            "stock_levels",
            lambda scope: StockSelector(scope.session).stock_levels(as_uuid(product_id, "product_id")),
        )

    def transactions_for_product(self, product_id, tx_type: str | None = None,
                                 since: datetime | None = None,
                                 until: datetime | None = None) -> list[TransactionView]:
        return self._guard.run(
            "transactions_for_product",
            lambda scope: LedgerSelector(scope.session).transactions_for_product(
                as_uuid(product_id, "product_id"), tx_type, since, until
            ),
        )

    def transactions_for_reference(self, reference_number: str) -> list[TransactionView]:
        return self._guard.run(
            "transactions_for_reference",
            lambda scope: LedgerSelector(scope.session).transactions_for_reference(reference_number),
        )

    def verify_ledger(self, product_ids=None) -> ReplayResult:
        """Replay the ledger and report stored quantities that disagree."""
        ids = [as_uuid(p, "product_id") for p in product_ids] if product_ids is not None else None
        result = self._guard.run("verify_ledger", lambda scope: ReplaySelector(scope.session).verify(ids))
        logger.info(
            "ledger_verification_finished",
            extra={
                "transactions_replayed": result.transactions_replayed,
                "discrepancies": len(result.discrepancies),
            },
        )
        return result
