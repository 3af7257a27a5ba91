"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock movements fail for a small number of well-understood reasons, and the
caller needs to react to each one differently:

  - a missing product is a client bug (do not retry),
  - an order in the wrong status is a workflow bug (do not retry),
  - a lock wait timeout is transient (retry from the top).

Matching on message strings is fragile, so every failure is a typed class
with:
  1. a CODE class attribute (machine-readable, API-safe),
  2. structured DATA attributes (item id, requested vs. available, ...),
  3. a human-readable message built from that data.

Example:
    try:
        ops.fulfill_sales_order(order_id, payload, actor_id)
    except InsufficientStockError as e:
        api_response(
            409, code=e.code, item_id=e.item_id,
            requested=e.requested, available=e.available,
        )
    except ConcurrencyConflictError:
        retry()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- LocationNotFoundError
    |   +-- OrderNotFoundError
    |   +-- OrderItemNotFoundError
    |   +-- PartyNotFoundError
    |
    +-- InvalidStateError
    |   +-- OrderStatusError
    |   +-- ItemNotInOrderError
    |   +-- EmptyOrderError
    |   +-- SameLocationTransferError
    |   +-- LocationWarehouseMismatchError
    |   +-- DuplicateCodeError
    |
    +-- InvalidQuantityError
    |   +-- QuantityExceedsRemainingError
    |
    +-- InvalidAmountError
    +-- InsufficientStockError
    +-- ConcurrencyConflictError        (retryable)
    +-- ImmutabilityViolationError
    +-- InvalidRequestError

===============================================================================
LINE CONTEXT
===============================================================================

Errors raised while processing one line of a multi-line receive/fulfill call
carry ``item_id`` and ``line_index`` (zero-based position in the caller's
list) so the caller can point at the offending line.  The state machines
attach that context with ``attach_line()`` before re-raising ledger errors.

===============================================================================
RETRY POLICY
===============================================================================

Only ``ConcurrencyConflictError`` has ``retryable = True``.  Retrying any
other error without changing the input repeats the same failure.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"
    retryable: bool = False


class LineContextMixin:
    """Carries the position of the offending line in a multi-line request."""

    item_id: str | None = None
    line_index: int | None = None

    def attach_line(self, item_id, line_index: int | None):
        self.item_id = str(item_id) if item_id is not None else None
        self.line_index = line_index
        return self


# Not-found exceptions


class NotFoundError(InventoryKernelError):
    """Base exception for missing referenced entities."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(LineContextMixin, NotFoundError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = str(product_id)
        super().__init__(f"Product not found: {product_id}")


class WarehouseNotFoundError(NotFoundError):
    """Warehouse with given ID was not found."""

    code: str = "WAREHOUSE_NOT_FOUND"

    def __init__(self, warehouse_id: str):
        self.warehouse_id = str(warehouse_id)
        super().__init__(f"Warehouse not found: {warehouse_id}")


class LocationNotFoundError(LineContextMixin, NotFoundError):
    """Warehouse location with given ID was not found."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: str):
        self.location_id = str(location_id)
        super().__init__(f"Warehouse location not found: {location_id}")


class OrderNotFoundError(NotFoundError):
    """Purchase or sales order was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_type: str, order_id: str):
        self.order_type = order_type
        self.order_id = str(order_id)
        super().__init__(f"{order_type} not found: {order_id}")


class OrderItemNotFoundError(NotFoundError):
    """Order item with given ID was not found on the order."""

    code: str = "ORDER_ITEM_NOT_FOUND"

    def __init__(self, order_id: str, item_id: str):
        self.order_id = str(order_id)
        self.item_id = str(item_id)
        super().__init__(f"Item {item_id} not found on order {order_id}")


class PartyNotFoundError(NotFoundError):
    """Supplier or customer was not found."""

    code: str = "PARTY_NOT_FOUND"

    def __init__(self, party_type: str, party_id: str):
        self.party_type = party_type
        self.party_id = str(party_id)
        super().__init__(f"{party_type} not found: {party_id}")


# Invalid-state exceptions


class InvalidStateError(InventoryKernelError):
    """Base exception for operations attempted in an ineligible state."""

    code: str = "INVALID_STATE"


class OrderStatusError(InvalidStateError):
    """Order is not in a status that permits the requested action."""

    code: str = "ORDER_STATUS_INVALID"

    def __init__(
        self,
        order_number: str,
        current_status: str,
        action: str,
        allowed_statuses: tuple[str, ...] = (),
    ):
        self.order_number = order_number
        self.current_status = str(current_status)
        self.action = action
        self.allowed_statuses = tuple(str(s) for s in allowed_statuses)
        allowed = ", ".join(self.allowed_statuses) or "none"
        super().__init__(
            f"Cannot {action} order {order_number} in status "
            f"'{self.current_status}' (allowed: {allowed})"
        )


class ItemNotInOrderError(LineContextMixin, InvalidStateError):
    """Referenced item does not belong to the order."""

    code: str = "ITEM_NOT_IN_ORDER"

    def __init__(self, order_number: str, item_id: str, line_index: int | None = None):
        self.order_number = order_number
        self.attach_line(item_id, line_index)
        super().__init__(f"Item {item_id} does not belong to order {order_number}")


class EmptyOrderError(InvalidStateError):
    """Order has no items and cannot leave draft."""

    code: str = "ORDER_EMPTY"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order {order_number} has no items")


class SameLocationTransferError(InvalidStateError):
    """Transfer source and destination are the same location."""

    code: str = "SAME_LOCATION_TRANSFER"

    def __init__(self, location_id: str):
        self.location_id = str(location_id)
        super().__init__(
            f"Transfer source and destination are the same location: {location_id}"
        )


class LocationWarehouseMismatchError(LineContextMixin, InvalidStateError):
    """Location does not belong to the warehouse named by the movement."""

    code: str = "LOCATION_WAREHOUSE_MISMATCH"

    def __init__(self, location_id: str, warehouse_id: str):
        self.location_id = str(location_id)
        self.warehouse_id = str(warehouse_id)
        super().__init__(
            f"Location {location_id} does not belong to warehouse {warehouse_id}"
        )


class DuplicateCodeError(InvalidStateError):
    """A unique business code (SKU, warehouse code, location address) is taken."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, entity_type: str, value: str):
        self.entity_type = entity_type
        self.value = value
        super().__init__(f"{entity_type} already exists: {value}")


# Quantity and amount exceptions


class InvalidQuantityError(LineContextMixin, InventoryKernelError):
    """Quantity is zero, negative, or otherwise unusable."""

    code: str = "INVALID_QUANTITY"

    def __init__(
        self,
        quantity,
        reason: str,
        item_id: str | None = None,
        line_index: int | None = None,
    ):
        self.quantity = quantity
        self.reason = reason
        self.attach_line(item_id, line_index)
        super().__init__(f"Invalid quantity {quantity}: {reason}")


class QuantityExceedsRemainingError(InvalidQuantityError):
    """Requested quantity exceeds what is left to receive or fulfill."""

    code: str = "QUANTITY_EXCEEDS_REMAINING"

    def __init__(
        self,
        item_id: str,
        requested: int,
        remaining: int,
        line_index: int | None = None,
    ):
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            requested,
            f"exceeds remaining quantity {remaining} for item {item_id}",
            item_id=item_id,
            line_index=line_index,
        )


class InvalidAmountError(InventoryKernelError):
    """Monetary amount or percentage outside its permitted range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value}: {reason}")


class InsufficientStockError(LineContextMixin, InventoryKernelError):
    """
    Decrement would drive a product or location quantity negative.

    `available` is the quantity observed at the moment the guarded update was
    rejected; it may be stale by the time the caller reads it.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        requested: int,
        available: int,
        location_id: str | None = None,
    ):
        self.product_id = str(product_id)
        self.requested = requested
        self.available = available
        self.location_id = str(location_id) if location_id is not None else None
        where = f" at location {location_id}" if location_id is not None else ""
        super().__init__(
            f"Insufficient stock for product {product_id}{where}: "
            f"requested {requested}, available {available}"
        )


# Concurrency exceptions


class ConcurrencyConflictError(InventoryKernelError):
    """
    Lock wait timed out, deadlock detected, or a concurrent writer won.

    Safe to retry from the top of the operation.
    """

    code: str = "CONCURRENCY_CONFLICT"
    retryable: bool = True

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Concurrency conflict during {operation}: {reason}")


# Immutability exceptions


class ImmutabilityViolationError(InventoryKernelError):
    """
    Attempted to modify or delete an immutable record.

    Ledger transactions and audit rows are append-only; Product.quantity is
    written only by the ledger; order items are frozen once the order leaves
    draft.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Request exceptions


class InvalidRequestError(InventoryKernelError):
    """Request payload is malformed."""

    code: str = "INVALID_REQUEST"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid request field '{field}': {reason}")
