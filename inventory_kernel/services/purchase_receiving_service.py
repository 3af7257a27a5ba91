"""
PurchaseReceivingService -- receive goods against a purchase order.

Each line appends a ``receive`` ledger entry linked to its order item and
referencing the PO number; the order then moves to ``partial`` or
``received``.  See order_movement.py for the shared algorithm.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import ReceiptLine
from inventory_kernel.domain.order_workflows import PURCHASE_ORDER_WORKFLOW
from inventory_kernel.models.audit_log import AuditAction
from inventory_kernel.models.inventory_transaction import InventoryTransaction
from inventory_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.audit_trail import AuditTrail
from inventory_kernel.services.ledger_service import LedgerService
from inventory_kernel.services.order_base import as_uuid
from inventory_kernel.services.order_movement import OrderMovementService
from inventory_kernel.services.purchase_order_service import PurchaseOrderService


class PurchaseReceivingService(OrderMovementService):
    """Receiving state machine for purchase orders."""

    order_model = PurchaseOrder
    order_label = "PurchaseOrder"
    workflow = PURCHASE_ORDER_WORKFLOW
    action = "receive"
    completed_state = PurchaseOrderStatus.RECEIVED.value
    audit_action = AuditAction.PURCHASE_ORDER_RECEIVED.value

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        ledger: LedgerService | None = None,
        orders: PurchaseOrderService | None = None,
    ):
        super().__init__(session, clock, audit, ledger)
        self._orders = orders or PurchaseOrderService(session, self._clock, self.audit)

    def order_number(self, order: PurchaseOrder) -> str:
        return order.po_number

    def moved_to_date(self, item_ids) -> dict[UUID, int]:
        return LedgerSelector(self.session).received_by_item(item_ids)

    def default_notes(self, order: PurchaseOrder) -> str:
        return f"Received from purchase order: {order.po_number}"

    def move_line(self, order, item, line, actor_id, notes) -> list[InventoryTransaction]:
        location_id = as_uuid(line.location_id, "location_id") if line.location_id else None
        return [self.ledger.receive(
            item.product_id,
            order.warehouse_id,
            line.quantity,
            actor_id,
            location_id=location_id,
            reference_number=order.po_number,
            order_item_id=item.id,
            notes=notes,
        )]

    def recalculate(self, order):
        return self._orders.recalculate(order)

    def view(self, order):
        return self._orders.view(order)

    def receive(self, order_id, lines: list[ReceiptLine], actor_id: UUID,
                notes: str | None = None) -> PurchaseOrder:
        """Receive ``lines`` against the order; all lines or none."""
        return self.execute(order_id, lines, actor_id, notes)
