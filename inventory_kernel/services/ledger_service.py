"""
LedgerService -- the single writer of inventory quantity changes.

Responsibility:
    Validates a TransactionDraft, persists it as an immutable
    InventoryTransaction, then applies its effect to the quantity store.

Architecture position:
    Kernel > Services.  Called by the purchase receiving and sales
    fulfillment state machines and by the direct stock movement operations.
    The ONLY code path that mutates Product.quantity or
    ProductLocationQuantity.

Type -> effect mapping:

    type         Product.quantity     location quantity
    ----------   ------------------   --------------------------------------
    receive      + quantity           destination + quantity
    issue        - quantity           source - quantity
    transfer     unchanged            source - quantity, destination + quantity
    adjustment   + delta (signed)     destination + delta  (delta > 0)
                                      source + delta       (delta < 0)

    A movement that names no location uses the warehouse's receiving
    location, so location quantities always sum to Product.quantity.
    issue_from_warehouse() is the exception: it spreads one issue over the
    warehouse's locations and appends one entry per location it draws from.

Invariants enforced:
    - Record first, then quantities: the transaction row is flushed before
      any quantity is touched.
    - All-or-nothing: the insert and every quantity update run inside one
      savepoint; any failure rolls all of it back, even when the caller
      catches the error and keeps using the session.
    - Non-negative quantities (guarded updates in QuantityStore).
    - Transfers: both locations required, in the same warehouse, and
      distinct.

Failure modes:
    - InvalidQuantityError: zero/negative quantity, or zero adjustment.
    - InvalidRequestError: unknown type / reason code, locations given for a
      side the type does not use, reason code on a non-adjustment.
    - ProductNotFoundError / WarehouseNotFoundError / LocationNotFoundError.
    - LocationWarehouseMismatchError, SameLocationTransferError.
    - InsufficientStockError.

Audit relevance:
    Every appended row is logged as ``ledger_entry_appended`` with its id,
    type, quantity and reference.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import TransactionDraft
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InvalidRequestError,
    LocationNotFoundError,
    LocationWarehouseMismatchError,
    SameLocationTransferError,
    WarehouseNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_transaction import (
    AdjustmentReason,
    InventoryTransaction,
    TransactionType,
)
from inventory_kernel.models.warehouse import Warehouse, WarehouseLocation
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.quantity_store import QuantityStore

logger = get_logger("services.ledger")


class LedgerService(BaseService[InventoryTransaction]):
    """
    Append-only inventory ledger.

    Contract:
        ``append(draft)`` returns the persisted InventoryTransaction after
        its quantity effect has been applied, or raises with no trace left
        in the session.

    Non-goals:
        - Does not commit; the consistency guard owns the transaction.
        - Does not know about orders beyond carrying reference_number and
          order_item_id through to the row.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        quantity_store: QuantityStore | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._quantities = quantity_store or QuantityStore(session)

    @property
    def quantities(self) -> QuantityStore:
        return self._quantities

    # -------------------------------------------------------------------------
    # Append
    # -------------------------------------------------------------------------

    def append(self, draft: TransactionDraft) -> InventoryTransaction:
        tx_type = self._parse_type(draft.type)
        reason = self._parse_reason(tx_type, draft.reason_code)
        self._validate_quantity(tx_type, draft.quantity)

        products = self._quantities.lock_products([draft.product_id])
        product = next(iter(products.values()))
        warehouse = self._warehouse(draft.warehouse_id)
        source_id, destination_id = self._resolve_locations(tx_type, draft, warehouse)

        try:
            with self.session.begin_nested():
                tx = InventoryTransaction(
                    product_id=product.id,
                    warehouse_id=warehouse.id,
                    source_location_id=source_id,
                    destination_location_id=destination_id,
                    type=tx_type.value,
                    quantity=draft.quantity,
                    reference_number=draft.reference_number,
                    order_item_id=draft.order_item_id,
                    reason_code=reason.value if reason else None,
                    user_id=draft.actor_id,
                    notes=draft.notes,
                    created_at=self._clock.now(),
                )
                self.session.add(tx)
                self.session.flush()
                self._apply(tx)
        except Exception as exc:
            # Quantities synced onto the instance were rolled back with the savepoint
            self.session.expire(product, ["quantity"])
            if isinstance(exc, InsufficientStockError):
                logger.warning(
                    "ledger_append_rejected",
                    extra={
                        "type": tx_type.value,
                        "product_id": str(product.id),
                        "quantity": draft.quantity,
                        "reference_number": draft.reference_number,
                    },
                )
            raise

        logger.info(
            "ledger_entry_appended",
            extra={
                "transaction_id": str(tx.id),
                "type": tx_type.value,
                "product_id": str(product.id),
                "warehouse_id": str(warehouse.id),
                "quantity": tx.quantity,
                "reference_number": tx.reference_number,
                "product_quantity": product.quantity,
            },
        )
        return tx

    # -------------------------------------------------------------------------
    # Convenience wrappers
    # -------------------------------------------------------------------------

    def receive(self, product_id, warehouse_id, quantity: int, actor_id, *,
                location_id=None, reference_number=None, order_item_id=None,
                notes=None) -> InventoryTransaction:
        return self.append(TransactionDraft(
            product_id=product_id,
            warehouse_id=warehouse_id,
            type=TransactionType.RECEIVE.value,
            quantity=quantity,
            actor_id=actor_id,
            destination_location_id=location_id,
            reference_number=reference_number,
            order_item_id=order_item_id,
            notes=notes,
        ))

    def issue(self, product_id, warehouse_id, quantity: int, actor_id, *,
              location_id=None, reference_number=None, order_item_id=None,
              notes=None) -> InventoryTransaction:
        return self.append(TransactionDraft(
            product_id=product_id,
            warehouse_id=warehouse_id,
            type=TransactionType.ISSUE.value,
            quantity=quantity,
            actor_id=actor_id,
            source_location_id=location_id,
            reference_number=reference_number,
            order_item_id=order_item_id,
            notes=notes,
        ))

    def issue_from_warehouse(self, product_id, warehouse_id, quantity: int, actor_id, *,
                             reference_number=None, order_item_id=None,
                             notes=None) -> list[InventoryTransaction]:
        """
        Issue ``quantity`` from wherever the warehouse holds it.

        Stock is drawn from the receiving location first, then from the other
        locations by address, with one issue entry per location touched.
        The request is rejected as a whole when the warehouse total is short.
        """
        self._validate_quantity(TransactionType.ISSUE, quantity)
        product = next(iter(self._quantities.lock_products([product_id]).values()))
        warehouse = self._warehouse(warehouse_id)
        rows = self._quantities.lock_warehouse_rows(product.id, warehouse.id)

        available = sum(row.quantity for row in rows)
        if available < quantity:
            logger.warning(
                "warehouse_issue_rejected",
                extra={
                    "product_id": str(product.id),
                    "warehouse_id": str(warehouse.id),
                    "requested": quantity,
                    "available": available,
                },
            )
            raise InsufficientStockError(str(product.id), quantity, available)

        entries = []
        remaining = quantity
        with self.session.begin_nested():
            for row in rows:
                if remaining == 0:
                    break
                take = min(remaining, row.quantity)
                entries.append(self.issue(
                    product.id, warehouse.id, take, actor_id,
                    location_id=row.location_id,
                    reference_number=reference_number,
                    order_item_id=order_item_id,
                    notes=notes,
                ))
                remaining -= take
        return entries

    def transfer(self, product_id, warehouse_id, quantity: int, actor_id, *,
                 source_location_id, destination_location_id,
                 reference_number=None, notes=None) -> InventoryTransaction:
        return self.append(TransactionDraft(
            product_id=product_id,
            warehouse_id=warehouse_id,
            type=TransactionType.TRANSFER.value,
            quantity=quantity,
            actor_id=actor_id,
            source_location_id=source_location_id,
            destination_location_id=destination_location_id,
            reference_number=reference_number,
            notes=notes,
        ))

    def adjust(self, product_id, warehouse_id, delta: int, actor_id, *,
               location_id=None, reason_code=None, reference_number=None,
               notes=None) -> InventoryTransaction:
        """Signed correction; ``location_id`` is the side the sign implies."""
        return self.append(TransactionDraft(
            product_id=product_id,
            warehouse_id=warehouse_id,
            type=TransactionType.ADJUSTMENT.value,
            quantity=delta,
            actor_id=actor_id,
            source_location_id=location_id if delta < 0 else None,
            destination_location_id=location_id if delta > 0 else None,
            reason_code=reason_code,
            reference_number=reference_number,
            notes=notes,
        ))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_type(value) -> TransactionType:
        try:
            return TransactionType(str(getattr(value, "value", value)))
        except ValueError:
            raise InvalidRequestError("type", f"unknown transaction type {value!r}") from None

    @staticmethod
    def _parse_reason(tx_type: TransactionType, value) -> AdjustmentReason | None:
        if value is None:
            return None
        if tx_type != TransactionType.ADJUSTMENT:
            raise InvalidRequestError("reason_code", "only adjustments carry a reason code")
        try:
            return AdjustmentReason(str(getattr(value, "value", value)))
        except ValueError:
            raise InvalidRequestError("reason_code", f"unknown reason code {value!r}") from None

    @staticmethod
    def _validate_quantity(tx_type: TransactionType, quantity) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidQuantityError(quantity, "quantity must be an integer")
        if tx_type == TransactionType.ADJUSTMENT:
            if quantity == 0:
                raise InvalidQuantityError(quantity, "adjustment delta must be nonzero")
        elif quantity <= 0:
            raise InvalidQuantityError(quantity, f"{tx_type.value} quantity must be positive")

    def _warehouse(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse

    def _location(self, location_id: UUID, warehouse: Warehouse) -> WarehouseLocation:
        location = self.session.get(WarehouseLocation, location_id)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        if location.warehouse_id != warehouse.id:
            raise LocationWarehouseMismatchError(str(location_id), str(warehouse.id))
        return location

    def receiving_location(self, warehouse: Warehouse) -> WarehouseLocation:
        location = self.session.execute(
            select(WarehouseLocation).where(
                WarehouseLocation.warehouse_id == warehouse.id,
                WarehouseLocation.is_receiving.is_(True),
            )
        ).scalar_one_or_none()
        if location is None:
            raise LocationNotFoundError(f"receiving location of warehouse {warehouse.id}")
        return location

    def _resolve_locations(
        self,
        tx_type: TransactionType,
        draft: TransactionDraft,
        warehouse: Warehouse,
    ) -> tuple[UUID | None, UUID | None]:
        source_id = draft.source_location_id
        destination_id = draft.destination_location_id

        if tx_type == TransactionType.TRANSFER:
            if source_id is None:
                raise InvalidRequestError("source_location_id", "required for transfer")
            if destination_id is None:
                raise InvalidRequestError("destination_location_id", "required for transfer")
            source = self._location(source_id, warehouse)
            destination = self._location(destination_id, warehouse)
            if source.id == destination.id:
                raise SameLocationTransferError(str(source.id))
            return source.id, destination.id

        incoming = tx_type == TransactionType.RECEIVE or (
            tx_type == TransactionType.ADJUSTMENT and draft.quantity > 0
        )
        if incoming:
            if source_id is not None:
                raise InvalidRequestError(
                    "source_location_id", f"not used by incoming {tx_type.value}"
                )
            location = (
                self._location(destination_id, warehouse)
                if destination_id is not None
                else self.receiving_location(warehouse)
            )
            return None, location.id

        if destination_id is not None:
            raise InvalidRequestError(
                "destination_location_id", f"not used by outgoing {tx_type.value}"
            )
        location = (
            self._location(source_id, warehouse)
            if source_id is not None
            else self.receiving_location(warehouse)
        )
        return location.id, None

    def _apply(self, tx: InventoryTransaction) -> None:
        q = self._quantities
        if tx.type == TransactionType.TRANSFER:
            q.apply_location_delta(tx.product_id, tx.warehouse_id, tx.source_location_id, -tx.quantity)
            q.apply_location_delta(tx.product_id, tx.warehouse_id, tx.destination_location_id, tx.quantity)
            return

        delta = tx.product_delta
        q.apply_product_delta(tx.product_id, delta)
        location_id = tx.destination_location_id if delta > 0 else tx.source_location_id
        q.apply_location_delta(tx.product_id, tx.warehouse_id, location_id, delta)
