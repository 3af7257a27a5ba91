"""
OrderServiceBase -- shared mechanics of the purchase and sales order services.

Responsibility:
    Row-locking an order header, asking the order workflow whether a status
    change is legal, enforcing the draft-only item rule, and allocating line
    numbers.  Concrete services add the document-specific fields and totals.

Invariants enforced:
    - Every mutation of an order header or its items happens after
      ``lock_order()`` has taken a row lock on the header in the current
      transaction, so item edits, receipts/fulfillments and cancellation
      on one order serialize.
    - Status changes only along declared workflow transitions.
    - Items change only while the order is in draft.
"""

from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.workflow import Transition, Workflow
from inventory_kernel.exceptions import (
    InvalidRequestError,
    OrderItemNotFoundError,
    OrderNotFoundError,
    OrderStatusError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.audit_trail import AuditTrail
from inventory_kernel.services.base import BaseService

logger = get_logger("services.orders")

OrderT = TypeVar("OrderT")


def as_uuid(value, field_name: str = "id") -> UUID:
    """Coerce a UUID-like value, rejecting malformed ids as a request error."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidRequestError(field_name, f"not a valid id: {value!r}") from None


def status_of(order) -> str:
    """The order status as its plain string value."""
    return getattr(order.status, "value", order.status)


class OrderServiceBase(BaseService, Generic[OrderT]):
    """Common order handling; subclasses set the class attributes."""

    order_model: type
    order_label: str
    workflow: Workflow

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit if audit is not None else AuditTrail(self._clock)

    @property
    def audit(self) -> AuditTrail:
        return self._audit

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def order_number(self, order) -> str:
        raise NotImplementedError

    def lock_order(self, order_id) -> OrderT:
        """SELECT ... FOR UPDATE the order header and load its items."""
        model = self.order_model
        order = self.session.execute(
            select(model)
            .where(model.id == as_uuid(order_id, "order_id"))
            .options(selectinload(model.items))
            .with_for_update(of=model)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(self.order_label, str(order_id))
        return order

    def get_order(self, order_id) -> OrderT:
        order = self.session.get(self.order_model, as_uuid(order_id, "order_id"))
        if order is None:
            raise OrderNotFoundError(self.order_label, str(order_id))
        return order

    def find_item(self, order, item_id):
        item_uuid = as_uuid(item_id, "item_id")
        for item in order.items:
            if item.id == item_uuid:
                return item
        raise OrderItemNotFoundError(str(order.id), str(item_id))

    # -------------------------------------------------------------------------
    # Workflow
    # -------------------------------------------------------------------------

    def require_action(self, order, action: str) -> None:
        """Raise unless ``action`` may fire from the order's current status."""
        allowed = self.workflow.sources_for(action)
        if status_of(order) not in allowed:
            raise OrderStatusError(
                self.order_number(order), status_of(order), action, allowed
            )

    def transition(self, order, action: str, to_state: str, actor_id: UUID) -> Transition:
        """Move the order along a declared transition."""
        from_state = status_of(order)
        to_state = getattr(to_state, "value", to_state)
        found = self.workflow.find(from_state, action, to_state)
        if found is None:
            raise OrderStatusError(
                self.order_number(order), from_state, action,
                self.workflow.sources_for(action),
            )
        order.status = to_state
        order.updated_by_id = actor_id
        logger.info(
            "order_status_changed",
            extra={
                "order_type": self.order_label,
                "order_number": self.order_number(order),
                "from_status": from_state,
                "to_status": to_state,
                "action": action,
            },
        )
        return found

    def require_draft(self, order, action: str) -> None:
        if status_of(order) != self.workflow.initial_state:
            raise OrderStatusError(
                self.order_number(order), status_of(order), action,
                (self.workflow.initial_state,),
            )

    @staticmethod
    def next_line_no(order) -> int:
        return max((item.line_no for item in order.items), default=0) + 1
