"""
SalesOrderService -- sales order header, items, totals and administrative
status changes.

Responsibility:
    Creating sales orders, editing items (with percentage discount) while in
    draft, setting shipping cost, and the non-stock transitions (confirm,
    cancel).  Subtotal, tax and total are recomputed by the order calculator
    after every change and persisted with it.

Architecture position:
    Kernel > Services.  Fulfillment lives in sales_fulfillment_service.py.

Invariants enforced:
    - Items change only in draft; shipping cost only in a non-terminal status.
    - subtotal / tax / total_amount always reflect the current item set,
      shipping cost and the configured tax rate.
    - confirm requires at least one item.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.db.types import ZERO, round_money, to_money
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import OrderItemProgress, SalesOrderView
from inventory_kernel.domain.order_totals import (
    DEFAULT_SALES_TAX_RATE,
    PricedLine,
    SalesTotals,
    sales_totals,
    validate_line,
)
from inventory_kernel.domain.order_workflows import SALES_ORDER_WORKFLOW
from inventory_kernel.exceptions import (
    EmptyOrderError,
    InvalidAmountError,
    OrderStatusError,
    PartyNotFoundError,
    ProductNotFoundError,
    WarehouseNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_log import AuditAction
from inventory_kernel.models.catalog import Customer, Product
from inventory_kernel.models.sales_order import SalesOrder, SalesOrderItem, SalesOrderStatus
from inventory_kernel.models.warehouse import Warehouse
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.audit_trail import AuditTrail
from inventory_kernel.services.order_base import OrderServiceBase, as_uuid, status_of
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.sales_order")


def _amount(value, field: str) -> Decimal:
    try:
        return to_money(value)
    except ValueError:
        raise InvalidAmountError(field, value, "not a decimal amount") from None


class SalesOrderService(OrderServiceBase[SalesOrder]):
    """Draft-stage editing and administrative transitions of sales orders."""

    order_model = SalesOrder
    order_label = "SalesOrder"
    workflow = SALES_ORDER_WORKFLOW

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        tax_rate: Decimal = DEFAULT_SALES_TAX_RATE,
        number_prefix: str = "SO",
        number_width: int = 6,
    ):
        super().__init__(session, clock, audit)
        self._tax_rate = tax_rate
        self._number_prefix = number_prefix
        self._number_width = number_width

    @property
    def tax_rate(self) -> Decimal:
        return self._tax_rate

    def order_number(self, order: SalesOrder) -> str:
        return order.so_number

    # -------------------------------------------------------------------------
    # Totals and views
    # -------------------------------------------------------------------------

    def recalculate(self, order: SalesOrder) -> SalesTotals:
        totals = sales_totals(
            (
                PricedLine(item.quantity, to_money(item.unit_price), to_money(item.discount))
                for item in order.items
            ),
            shipping_cost=to_money(order.shipping_cost),
            tax_rate=self._tax_rate,
        )
        for item, line_total in zip(order.items, totals.line_totals):
            if item.total_price is None or to_money(item.total_price) != line_total:
                item.total_price = line_total
        order.subtotal = totals.subtotal
        order.tax = totals.tax
        order.total_amount = totals.total_amount
        return totals

    def view(self, order: SalesOrder) -> SalesOrderView:
        fulfilled = LedgerSelector(self.session).fulfilled_by_item(i.id for i in order.items)
        return SalesOrderView(
            id=order.id,
            so_number=order.so_number,
            customer_id=order.customer_id,
            warehouse_id=order.warehouse_id,
            status=status_of(order),
            order_date=order.order_date,
            shipping_date=order.shipping_date,
            subtotal=round_money(to_money(order.subtotal)),
            tax=round_money(to_money(order.tax)),
            shipping_cost=round_money(to_money(order.shipping_cost)),
            total_amount=round_money(to_money(order.total_amount)),
            payment_status=getattr(order.payment_status, "value", order.payment_status),
            items=tuple(
                OrderItemProgress(
                    item_id=item.id,
                    line_no=item.line_no,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=to_money(item.unit_price),
                    discount=to_money(item.discount),
                    total_price=to_money(item.total_price),
                    moved_quantity=fulfilled.get(item.id, 0),
                )
                for item in order.items
            ),
        )

    # -------------------------------------------------------------------------
    # Header
    # -------------------------------------------------------------------------

    def create_order(self, customer_id, warehouse_id, actor_id: UUID, *,
                     shipping_cost=ZERO, notes: str | None = None) -> SalesOrder:
        customer_id = as_uuid(customer_id, "customer_id")
        warehouse_id = as_uuid(warehouse_id, "warehouse_id")
        shipping = _amount(shipping_cost, "shipping_cost")
        if shipping < ZERO:
            raise InvalidAmountError("shipping_cost", shipping, "must not be negative")
        if self.session.get(Customer, customer_id) is None:
            raise PartyNotFoundError("Customer", str(customer_id))
        if self.session.get(Warehouse, warehouse_id) is None:
            raise WarehouseNotFoundError(str(warehouse_id))

        number = SequenceService(self.session).next_document_number(
            SequenceService.SALES_ORDER, self._number_prefix, self._number_width
        )
        order = SalesOrder(
            so_number=number,
            customer_id=customer_id,
            warehouse_id=warehouse_id,
            order_date=self._clock.now(),
            status=SalesOrderStatus.DRAFT.value,
            shipping_cost=round_money(shipping),
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(order)
        self.recalculate(order)
        self.session.flush()

        logger.info(
            "sales_order_created",
            extra={"order_number": number, "customer_id": str(customer_id)},
        )
        self.audit.record(
            actor_id, AuditAction.SALES_ORDER_CREATED, "SalesOrder", order.id,
            after=self.view(order),
        )
        return order

    def set_shipping_cost(self, order_id, shipping_cost, actor_id: UUID) -> SalesOrder:
        order = self.lock_order(order_id)
        if self.workflow.is_terminal(status_of(order)):
            raise OrderStatusError(
                order.so_number, status_of(order), "set shipping cost on",
                tuple(s for s in self.workflow.states if not self.workflow.is_terminal(s)),
            )
        shipping = _amount(shipping_cost, "shipping_cost")
        if shipping < ZERO:
            raise InvalidAmountError("shipping_cost", shipping, "must not be negative")

        before = self.view(order)
        order.shipping_cost = round_money(shipping)
        order.updated_by_id = actor_id
        self.recalculate(order)
        self.session.flush()
        self.audit.record(
            actor_id, AuditAction.SALES_ORDER_SHIPPING_SET, "SalesOrder", order.id,
            before=before, after=self.view(order),
        )
        return order

    # -------------------------------------------------------------------------
    # Items (draft only)
    # -------------------------------------------------------------------------

    def add_item(self, order_id, product_id, quantity: int, unit_price, actor_id: UUID,
                 discount=ZERO) -> SalesOrderItem:
        order = self.lock_order(order_id)
        self.require_draft(order, "add item to")
        product_id = as_uuid(product_id, "product_id")
        price = _amount(unit_price, "unit_price")
        disc = _amount(discount, "discount")
        validate_line(quantity, price, disc)
        if self.session.get(Product, product_id) is None:
            raise ProductNotFoundError(str(product_id))

        before = self.view(order)
        item = SalesOrderItem(
            line_no=self.next_line_no(order),
            product_id=product_id,
            quantity=quantity,
            unit_price=round_money(price),
            discount=round_money(disc),
            created_by_id=actor_id,
        )
        order.items.append(item)
        self._items_changed(order, actor_id, before)
        return item

    def update_item(self, order_id, item_id, actor_id: UUID, *, quantity: int | None = None,
                    unit_price=None, discount=None) -> SalesOrderItem:
        order = self.lock_order(order_id)
        self.require_draft(order, "update item on")
        item = self.find_item(order, item_id)
        new_quantity = item.quantity if quantity is None else quantity
        new_price = to_money(item.unit_price) if unit_price is None else _amount(unit_price, "unit_price")
        new_discount = to_money(item.discount) if discount is None else _amount(discount, "discount")
        validate_line(new_quantity, new_price, new_discount)

        before = self.view(order)
        item.quantity = new_quantity
        item.unit_price = round_money(new_price)
        item.discount = round_money(new_discount)
        item.updated_by_id = actor_id
        self._items_changed(order, actor_id, before)
        return item

    def remove_item(self, order_id, item_id, actor_id: UUID) -> SalesOrder:
        order = self.lock_order(order_id)
        self.require_draft(order, "remove item from")
        item = self.find_item(order, item_id)

        before = self.view(order)
        order.items.remove(item)
        self._items_changed(order, actor_id, before)
        return order

    def _items_changed(self, order: SalesOrder, actor_id: UUID, before: SalesOrderView) -> None:
        totals = self.recalculate(order)
        order.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "sales_order_items_changed",
            extra={
                "order_number": order.so_number,
                "item_count": len(order.items),
                "subtotal": totals.subtotal,
                "total_amount": totals.total_amount,
            },
        )
        self.audit.record(
            actor_id, AuditAction.SALES_ORDER_ITEMS_CHANGED, "SalesOrder", order.id,
            before=before, after=self.view(order),
        )

    # -------------------------------------------------------------------------
    # Administrative transitions
    # -------------------------------------------------------------------------

    def confirm(self, order_id, actor_id: UUID) -> SalesOrder:
        order = self.lock_order(order_id)
        self.require_action(order, "confirm")
        if not order.items:
            raise EmptyOrderError(order.so_number)
        before = self.view(order)
        self.transition(order, "confirm", SalesOrderStatus.CONFIRMED, actor_id)
        self.session.flush()
        self.audit.record(
            actor_id, AuditAction.SALES_ORDER_CONFIRMED, "SalesOrder", order.id,
            before=before, after=self.view(order),
        )
        return order

    def cancel(self, order_id, actor_id: UUID) -> SalesOrder:
        order = self.lock_order(order_id)
        self.require_action(order, "cancel")
        before = self.view(order)
        self.transition(order, "cancel", SalesOrderStatus.CANCELLED, actor_id)
        self.session.flush()
        self.audit.record(
            actor_id, AuditAction.SALES_ORDER_CANCELLED, "SalesOrder", order.id,
            before=before, after=self.view(order),
        )
        return order
