"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The inventory ledger is the source of truth for every on-hand quantity.  If a
ledger row could be edited, replay would stop reproducing the stored totals
and nobody could explain how stock got where it is.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications made through SQLAlchemy's unit of work
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (PostgreSQL triggers)
    - Catches raw SQL and bulk statements against the ledger and audit log

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                   | When Immutable                    | Rule
-------------------------|-----------------------------------|-----------------------------
InventoryTransaction     | ALWAYS                            | no UPDATE, no DELETE
AuditLogEntry            | ALWAYS                            | no UPDATE, no DELETE
Product.quantity         | ALWAYS (via the ORM)              | ledger writes it with a
                         |                                   | guarded SQL UPDATE instead
Product.sku              | once assigned                     | no change
PurchaseOrderItem        | parent order left draft           | no UPDATE, no DELETE
SalesOrderItem           | parent order left draft           | no UPDATE, no DELETE

The quantity store's guarded UPDATE is an ORM-enabled bulk statement, which
does not fire mapper events; that is the single sanctioned write path for
Product.quantity and ProductLocationQuantity.quantity.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup (idempotent)

Tests that must perform a forbidden operation call
unregister_immutability_listeners() and re-register afterwards.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _reject_ledger_update(mapper, connection, target):
    raise _blocked(
        "InventoryTransaction", target.id, "UPDATE",
        "Inventory transactions are append-only",
    )


def _reject_ledger_delete(mapper, connection, target):
    raise _blocked(
        "InventoryTransaction", target.id, "DELETE",
        "Inventory transactions are append-only",
    )


def _reject_audit_update(mapper, connection, target):
    raise _blocked("AuditLogEntry", target.id, "UPDATE", "Audit records are append-only")


def _reject_audit_delete(mapper, connection, target):
    raise _blocked("AuditLogEntry", target.id, "DELETE", "Audit records are append-only")


def _check_product_insert(mapper, connection, target):
    """New products start at zero; stock arrives through the ledger."""
    if target.quantity not in (None, 0):
        raise _blocked(
            "Product", target.id, "INSERT",
            "Product quantity must start at 0 and change only through the ledger",
        )


def _check_product_update(mapper, connection, target):
    if get_history(target, "quantity").has_changes():
        raise _blocked(
            "Product", target.id, "UPDATE",
            "Product quantity changes only through the inventory ledger",
        )
    sku_history = get_history(target, "sku")
    if sku_history.has_changes() and sku_history.deleted and sku_history.deleted[0]:
        raise _blocked("Product", target.id, "UPDATE", "SKU is immutable once assigned")


def _item_frozen(target) -> bool:
    order = target.order
    return order is not None and order.status != "draft"


def _check_item_update(mapper, connection, target):
    if _item_frozen(target):
        raise _blocked(
            type(target).__name__, target.id, "UPDATE",
            "Order items cannot change after the order leaves draft",
        )


def _check_item_delete(mapper, connection, target):
    if _item_frozen(target):
        raise _blocked(
            type(target).__name__, target.id, "DELETE",
            "Order items cannot be removed after the order leaves draft",
        )


def _listeners():
    from inventory_kernel.models.audit_log import AuditLogEntry
    from inventory_kernel.models.catalog import Product
    from inventory_kernel.models.inventory_transaction import InventoryTransaction
    from inventory_kernel.models.purchase_order import PurchaseOrderItem
    from inventory_kernel.models.sales_order import SalesOrderItem

    return [
        (InventoryTransaction, "before_update", _reject_ledger_update),
        (InventoryTransaction, "before_delete", _reject_ledger_delete),
        (AuditLogEntry, "before_update", _reject_audit_update),
        (AuditLogEntry, "before_delete", _reject_audit_delete),
        (Product, "before_insert", _check_product_insert),
        (Product, "before_update", _check_product_update),
        (PurchaseOrderItem, "before_update", _check_item_update),
        (PurchaseOrderItem, "before_delete", _check_item_delete),
        (SalesOrderItem, "before_update", _check_item_update),
        (SalesOrderItem, "before_delete", _check_item_delete),
    ]


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    for target, identifier, fn in _listeners():
        if not event.contains(target, identifier, fn):
            event.listen(target, identifier, fn)


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    for target, identifier, fn in _listeners():
        if event.contains(target, identifier, fn):
            event.remove(target, identifier, fn)
