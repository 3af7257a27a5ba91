"""
PurchaseOrderService -- purchase order header, items, totals and
administrative status changes.

Responsibility:
    Creating purchase orders, editing their items while in draft, and the
    non-stock transitions (submit, approve, cancel).  After every item
    change the order calculator is invoked explicitly and the header total
    is persisted in the same flush.

Architecture position:
    Kernel > Services.  Receiving (the stock-moving transition) lives in
    purchase_receiving_service.py.

Invariants enforced:
    - Items are added / updated / removed only in draft.
    - total_amount always equals the rounded sum of unrounded line totals.
    - submit requires at least one item.
    - cancel is rejected from terminal states; it serializes with receiving
      on the order row lock, so a receipt that committed first wins and the
      cancel is then rejected as already completed.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.db.types import round_money, to_money
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import OrderItemProgress, PurchaseOrderView
from inventory_kernel.domain.order_totals import (
    PricedLine,
    PurchaseTotals,
    purchase_totals,
    validate_line,
)
from inventory_kernel.domain.order_workflows import PURCHASE_ORDER_WORKFLOW
from inventory_kernel.exceptions import (
    EmptyOrderError,
    InvalidAmountError,
    PartyNotFoundError,
    ProductNotFoundError,
    WarehouseNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_log import AuditAction
from inventory_kernel.models.catalog import Product, Supplier
from inventory_kernel.models.purchase_order import (
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
)
from inventory_kernel.models.warehouse import Warehouse
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.audit_trail import AuditTrail
from inventory_kernel.services.order_base import OrderServiceBase, as_uuid, status_of
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.purchase_order")


def _price(value, field: str) -> Decimal:
    try:
        return to_money(value)
    except ValueError:
        raise InvalidAmountError(field, value, "not a decimal amount") from None


class PurchaseOrderService(OrderServiceBase[PurchaseOrder]):
    """
    Draft-stage editing and administrative transitions of purchase orders.

    Non-goals:
        - Does not move stock; see PurchaseReceivingService.
    """

    order_model = PurchaseOrder
    order_label = "PurchaseOrder"
    workflow = PURCHASE_ORDER_WORKFLOW

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        number_prefix: str = "PO",
        number_width: int = 6,
    ):
        super().__init__(session, clock, audit)
        self._number_prefix = number_prefix
        self._number_width = number_width

    def order_number(self, order: PurchaseOrder) -> str:
        return order.po_number

    # -------------------------------------------------------------------------
    # Totals and views
    # -------------------------------------------------------------------------

    def recalculate(self, order: PurchaseOrder) -> PurchaseTotals:
        """Recompute line totals and the header total from the item set."""
        totals = purchase_totals(
            PricedLine(item.quantity, to_money(item.unit_price)) for item in order.items
        )
        for item, line_total in zip(order.items, totals.line_totals):
            if item.total_price is None or to_money(item.total_price) != line_total:
                item.total_price = line_total
        order.total_amount = totals.total_amount
        return totals

    def view(self, order: PurchaseOrder) -> PurchaseOrderView:
        received = LedgerSelector(self.session).received_by_item(i.id for i in order.items)
        return PurchaseOrderView(
            id=order.id,
            po_number=order.po_number,
            supplier_id=order.supplier_id,
            warehouse_id=order.warehouse_id,
            status=status_of(order),
            order_date=order.order_date,
            expected_date=order.expected_date,
            total_amount=round_money(to_money(order.total_amount)),
            items=tuple(
                OrderItemProgress(
                    item_id=item.id,
                    line_no=item.line_no,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=to_money(item.unit_price),
                    discount=Decimal("0"),
                    total_price=to_money(item.total_price),
                    moved_quantity=received.get(item.id, 0),
                )
                for item in order.items
            ),
        )

    # -------------------------------------------------------------------------
    # Header
    # -------------------------------------------------------------------------

    def create_order(
        self,
        supplier_id,
        warehouse_id,
        actor_id: UUID,
        *,
        expected_date: datetime | None = None,
        payment_terms: str | None = None,
        shipping_terms: str | None = None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        supplier_id = as_uuid(supplier_id, "supplier_id")
        warehouse_id = as_uuid(warehouse_id, "warehouse_id")
        if self.session.get(Supplier, supplier_id) is None:
            raise PartyNotFoundError("Supplier", str(supplier_id))
        if self.session.get(Warehouse, warehouse_id) is None:
            raise WarehouseNotFoundError(str(warehouse_id))

        number = SequenceService(self.session).next_document_number(
            SequenceService.PURCHASE_ORDER, self._number_prefix, self._number_width
        )
        order = PurchaseOrder(
            po_number=number,
            supplier_id=supplier_id,
            warehouse_id=warehouse_id,
            order_date=self._clock.now(),
            expected_date=expected_date,
            status=PurchaseOrderStatus.DRAFT.value,
            total_amount=Decimal("0.00"),
            payment_terms=payment_terms,
            shipping_terms=shipping_terms,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(order)
        self.session.flush()

        logger.info(
            "purchase_order_created",
            extra={"order_number": number, "supplier_id": str(supplier_id)},
        )
        self.audit.record(
            actor_id, AuditAction.PURCHASE_ORDER_CREATED, "PurchaseOrder", order.id,
            after=self.view(order),
        )
        return order

    # -------------------------------------------------------------------------
    # Items (draft only)
    # -------------------------------------------------------------------------

    def add_item(self, order_id, product_id, quantity: int, unit_price, actor_id: UUID) -> PurchaseOrderItem:
        order = self.lock_order(order_id)
        self.require_draft(order, "add item to")
        product_id = as_uuid(product_id, "product_id")
        price = _price(unit_price, "unit_price")
        validate_line(quantity, price)
        if self.session.get(Product, product_id) is None:
            raise ProductNotFoundError(str(product_id))

        before = self.view(order)
        item = PurchaseOrderItem(
            line_no=self.next_line_no(order),
            product_id=product_id,
            quantity=quantity,
            unit_price=round_money(price),
            created_by_id=actor_id,
        )
        order.items.append(item)
        self._items_changed(order, actor_id, before)
        return item

    def update_item(self, order_id, item_id, actor_id: UUID, *, quantity: int | None = None,
                    unit_price=None) -> PurchaseOrderItem:
        order = self.lock_order(order_id)
        self.require_draft(order, "update item on")
        item = self.find_item(order, item_id)
        new_quantity = item.quantity if quantity is None else quantity
        new_price = to_money(item.unit_price) if unit_price is None else _price(unit_price, "unit_price")
        validate_line(new_quantity, new_price)

        before = self.view(order)
        item.quantity = new_quantity
        item.unit_price = round_money(new_price)
        item.updated_by_id = actor_id
        self._items_changed(order, actor_id, before)
        return item

    def remove_item(self, order_id, item_id, actor_id: UUID) -> PurchaseOrder:
        order = self.lock_order(order_id)
        self.require_draft(order, "remove item from")
        item = self.find_item(order, item_id)

        before = self.view(order)
        order.items.remove(item)
        self._items_changed(order, actor_id, before)
        return order

    def _items_changed(self, order: PurchaseOrder, actor_id: UUID, before: PurchaseOrderView) -> None:
        totals = self.recalculate(order)
        order.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "purchase_order_items_changed",
            extra={
                "order_number": order.po_number,
                "item_count": len(order.items),
                "total_amount": totals.total_amount,
            },
        )
        self.audit.record(
            actor_id, AuditAction.PURCHASE_ORDER_ITEMS_CHANGED, "PurchaseOrder", order.id,
            before=before, after=self.view(order),
        )

    # -------------------------------------------------------------------------
    # Administrative transitions
    # -------------------------------------------------------------------------

    def submit(self, order_id, actor_id: UUID) -> PurchaseOrder:
        """draft -> pending."""
        order = self.lock_order(order_id)
        self.require_action(order, "submit")
        if not order.items:
            raise EmptyOrderError(order.po_number)
        return self._simple_transition(
            order, "submit", PurchaseOrderStatus.PENDING, actor_id,
            AuditAction.PURCHASE_ORDER_SUBMITTED,
        )

    def approve(self, order_id, actor_id: UUID) -> PurchaseOrder:
        """pending -> approved."""
        order = self.lock_order(order_id)
        self.require_action(order, "approve")
        return self._simple_transition(
            order, "approve", PurchaseOrderStatus.APPROVED, actor_id,
            AuditAction.PURCHASE_ORDER_APPROVED,
        )

    def cancel(self, order_id, actor_id: UUID) -> PurchaseOrder:
        """Any non-terminal status -> cancelled."""
        order = self.lock_order(order_id)
        self.require_action(order, "cancel")
        return self._simple_transition(
            order, "cancel", PurchaseOrderStatus.CANCELLED, actor_id,
            AuditAction.PURCHASE_ORDER_CANCELLED,
        )

    def _simple_transition(self, order, action, to_state, actor_id, audit_action) -> PurchaseOrder:
        before = self.view(order)
        self.transition(order, action, to_state, actor_id)
        self.session.flush()
        self.audit.record(
            actor_id, audit_action, "PurchaseOrder", order.id,
            before=before, after=self.view(order),
        )
        return order
