"""
SalesFulfillmentService -- ship goods against a sales order.

Each line appends ``issue`` ledger entries linked to its order item and
referencing the SO number.  A line that names no location draws from the
receiving location first, then the other locations by address, with one
entry per location touched; the order then moves to ``partial`` or
``fulfilled`` and its shipping date is set.  Insufficient stock on any line
rolls back every line of the request.  See order_movement.py for the shared
algorithm.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import FulfillmentLine
from inventory_kernel.domain.order_workflows import SALES_ORDER_WORKFLOW
from inventory_kernel.models.audit_log import AuditAction
from inventory_kernel.models.inventory_transaction import InventoryTransaction
from inventory_kernel.models.sales_order import SalesOrder, SalesOrderStatus
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.audit_trail import AuditTrail
from inventory_kernel.services.ledger_service import LedgerService
from inventory_kernel.services.order_base import as_uuid
from inventory_kernel.services.order_movement import OrderMovementService
from inventory_kernel.services.sales_order_service import SalesOrderService


class SalesFulfillmentService(OrderMovementService):
    """Fulfillment state machine for sales orders."""

    order_model = SalesOrder
    order_label = "SalesOrder"
    workflow = SALES_ORDER_WORKFLOW
    action = "fulfill"
    completed_state = SalesOrderStatus.FULFILLED.value
    audit_action = AuditAction.SALES_ORDER_FULFILLED.value

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        ledger: LedgerService | None = None,
        orders: SalesOrderService | None = None,
    ):
        super().__init__(session, clock, audit, ledger)
        self._orders = orders or SalesOrderService(session, self._clock, self.audit)

    def order_number(self, order: SalesOrder) -> str:
        return order.so_number

    def moved_to_date(self, item_ids) -> dict[UUID, int]:
        return LedgerSelector(self.session).fulfilled_by_item(item_ids)

    def default_notes(self, order: SalesOrder) -> str:
        return f"Fulfilled from sales order: {order.so_number}"

    def move_line(self, order, item, line, actor_id, notes) -> list[InventoryTransaction]:
        if not line.location_id:
            return self.ledger.issue_from_warehouse(
                item.product_id,
                order.warehouse_id,
                line.quantity,
                actor_id,
                reference_number=order.so_number,
                order_item_id=item.id,
                notes=notes,
            )
        return [self.ledger.issue(
            item.product_id,
            order.warehouse_id,
            line.quantity,
            actor_id,
            location_id=as_uuid(line.location_id, "location_id"),
            reference_number=order.so_number,
            order_item_id=item.id,
            notes=notes,
        )]

    def before_transition(self, order, shipping_date: datetime | None = None, **kwargs) -> None:
        order.shipping_date = shipping_date or self._clock.now()

    def recalculate(self, order):
        return self._orders.recalculate(order)

    def view(self, order):
        return self._orders.view(order)

    def fulfill(self, order_id, lines: list[FulfillmentLine], actor_id: UUID,
                notes: str | None = None, shipping_date: datetime | None = None) -> SalesOrder:
        """Fulfill ``lines`` against the order; all lines or none."""
        return self.execute(order_id, lines, actor_id, notes, shipping_date=shipping_date)
