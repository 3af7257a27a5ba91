"""
OrderMovementService -- the shared state machine behind purchase receiving and
sales fulfillment.

Responsibility:
    Turns a multi-line receive / fulfill request into ledger entries plus one
    order status change, as a single all-or-nothing step.

Algorithm:
    1. Row-lock the order header (serializes with item edits, cancellation
       and other receipts / fulfillments of the same order).
    2. Ask the workflow whether the action may fire from the current status.
    3. Derive moved-to-date per item from the ledger.
    4. Validate EVERY line before applying any: the item belongs to the
       order, the quantity is a positive integer, and the quantity fits in
       what is left for the item.  Repeated lines for one item are checked
       cumulatively.
    5. Row-lock the affected products in ascending id order.
    6. Inside one savepoint, append one ledger entry per line in the
       caller's order, then move the order to ``partial`` or the completed
       status, recalculate totals, and flush.
    7. Record the audit entry (dispatched after commit by the caller).

Invariants enforced:
    - A failing line leaves no ledger row, no quantity change and no status
      change from the whole request.
    - Every error raised for a line carries item_id and line_index.
    - The order reaches the completed status exactly when every item's
      moved-to-date equals its ordered quantity.
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import OrderLineRequest
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    InvalidRequestError,
    InventoryKernelError,
    ItemNotInOrderError,
    LineContextMixin,
    QuantityExceedsRemainingError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_transaction import InventoryTransaction
from inventory_kernel.services.audit_trail import AuditTrail
from inventory_kernel.services.ledger_service import LedgerService
from inventory_kernel.services.order_base import OrderServiceBase, as_uuid

logger = get_logger("services.order_movement")


class OrderMovementService(OrderServiceBase):
    """
    Template for the stock-moving order transition.

    Subclasses set ``action``, ``completed_state`` and ``audit_action`` and
    implement ``moved_to_date``, ``move_line``, ``recalculate`` and ``view``.
    """

    action: str
    completed_state: str
    partial_state: str = "partial"
    audit_action: str

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        ledger: LedgerService | None = None,
    ):
        super().__init__(session, clock, audit)
        self._ledger = ledger or LedgerService(session, self._clock)

    @property
    def ledger(self) -> LedgerService:
        return self._ledger

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def moved_to_date(self, item_ids) -> dict[UUID, int]:
        raise NotImplementedError

    def move_line(self, order, item, line: OrderLineRequest, actor_id: UUID,
                  notes: str) -> list[InventoryTransaction]:
        """Append the ledger entries for one validated line."""
        raise NotImplementedError

    def recalculate(self, order):
        raise NotImplementedError

    def view(self, order):
        raise NotImplementedError

    def default_notes(self, order) -> str:
        raise NotImplementedError

    def before_transition(self, order, **kwargs) -> None:
        """Header fields a subclass sets alongside the status change."""

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def plan_lines(self, order, lines: Sequence[OrderLineRequest], moved: dict[UUID, int]):
        """
        Validate every line against the order and return (index, item, line)
        triples in the caller's order, plus the per-item requested totals.
        """
        if not lines:
            raise InvalidRequestError("items", "at least one line is required")

        items = {item.id: item for item in order.items}
        requested: dict[UUID, int] = {}
        planned = []
        for index, line in enumerate(lines):
            item_id = as_uuid(line.item_id, "item_id")
            item = items.get(item_id)
            if item is None:
                raise ItemNotInOrderError(self.order_number(order), str(line.item_id), index)

            quantity = line.quantity
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise InvalidQuantityError(
                    quantity, "line quantity must be a positive integer",
                    item_id=str(item_id), line_index=index,
                )

            already = moved.get(item_id, 0) + requested.get(item_id, 0)
            remaining = item.quantity - already
            if quantity > remaining:
                raise QuantityExceedsRemainingError(str(item_id), quantity, remaining, index)

            requested[item_id] = requested.get(item_id, 0) + quantity
            planned.append((index, item, line))
        return planned, requested

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def execute(self, order_id, lines: Sequence[OrderLineRequest], actor_id: UUID,
                notes: str | None = None, **header):
        order = self.lock_order(order_id)
        self.require_action(order, self.action)
        number = self.order_number(order)

        moved = self.moved_to_date(item.id for item in order.items)
        planned, requested = self.plan_lines(order, lines, moved)
        before = self.view(order)
        line_notes = notes if notes is not None else self.default_notes(order)

        products = self._ledger.quantities.lock_products(item.product_id for _, item, _ in planned)

        try:
            with self.session.begin_nested():
                for index, item, line in planned:
                    try:
                        self.move_line(order, item, line, actor_id, line_notes)
                    except InventoryKernelError as exc:
                        if isinstance(exc, LineContextMixin):
                            exc.attach_line(item.id, index)
                        raise

                complete = all(
                    moved.get(item.id, 0) + requested.get(item.id, 0) >= item.quantity
                    for item in order.items
                )
                target = self.completed_state if complete else self.partial_state
                self.before_transition(order, **header)
                self.transition(order, self.action, target, actor_id)
                self.recalculate(order)
                self.session.flush()
        except Exception:
            for product in products.values():
                self.session.expire(product, ["quantity"])
            logger.warning(
                "order_movement_rolled_back",
                extra={"order_number": number, "action": self.action, "line_count": len(lines)},
            )
            raise

        logger.info(
            "order_movement_applied",
            extra={
                "order_number": number,
                "action": self.action,
                "line_count": len(planned),
                "units": sum(requested.values()),
                "status": target,
            },
        )
        self.audit.record(
            actor_id, self.audit_action, self.order_label, order.id,
            before=before, after=self.view(order),
        )
        return order
