"""
QuantityStore -- current on-hand quantities with guarded atomic updates.

Responsibility:
    Reads and writes Product.quantity and ProductLocationQuantity.quantity.
    Every write is a single conditional UPDATE:

        UPDATE ... SET quantity = quantity + :delta
        WHERE id = :id AND quantity + :delta >= 0

    so a decrement that would go negative matches zero rows and is reported
    as InsufficientStockError instead of being applied.

Architecture position:
    Kernel > Services.  Used ONLY by LedgerService (writes) and by the
    order state machines (row locks).  Nothing else may call the apply_*
    methods.

Invariants enforced:
    - Quantities never go negative (guarded UPDATE + CHECK constraints).
    - No read-modify-write: the new value is computed by the database
      inside the UPDATE, so a stale in-memory read can never oversell.
    - Lock ordering: lock_products() locks product rows in ascending id
      order, so two multi-product operations cannot deadlock on them.
    - Location rows are created lazily; a concurrent first insert is
      resolved by savepoint rollback and re-read.

Failure modes:
    - ProductNotFoundError when a locked/updated product does not exist.
    - InsufficientStockError when a guarded decrement matches no row.
    - OperationalError on lock wait timeout (mapped by the consistency guard).
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from inventory_kernel.exceptions import InsufficientStockError, ProductNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.catalog import Product
from inventory_kernel.models.warehouse import ProductLocationQuantity, WarehouseLocation
from inventory_kernel.services.base import BaseService

logger = get_logger("services.quantity_store")


class QuantityStore(BaseService[Product]):
    """
    Atomic accessor for product and per-location quantities.

    Contract:
        apply_* methods return the post-update quantity and keep any loaded
        ORM instance in sync without marking it dirty.

    Non-goals:
        - Does not write ledger rows; LedgerService does, then calls here.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def lock_products(self, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
        """
        SELECT ... FOR UPDATE the given products in ascending id order.

        Raises:
            ProductNotFoundError: for the first (in lock order) missing id.
        """
        ids = sorted({UUID(str(pid)) for pid in product_ids}, key=str)
        if not ids:
            return {}
        rows = self.session.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        found = {p.id: p for p in rows}
        for pid in ids:
            if pid not in found:
                raise ProductNotFoundError(str(pid))
        return found

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def product_quantity(self, product_id: UUID) -> int:
        qty = self.session.execute(
            select(Product.quantity).where(Product.id == product_id)
        ).scalar_one_or_none()
        if qty is None:
            raise ProductNotFoundError(str(product_id))
        return qty

    def location_row(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
        lock: bool = True,
    ) -> ProductLocationQuantity | None:
        stmt = select(ProductLocationQuantity).where(
            ProductLocationQuantity.product_id == product_id,
            ProductLocationQuantity.warehouse_id == warehouse_id,
            ProductLocationQuantity.location_id == location_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def bucket(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
        create: bool = False,
    ) -> ProductLocationQuantity | None:
        """Locked location row; with ``create`` it is made at zero when absent."""
        if create:
            return self.ensure_location_row(product_id, warehouse_id, location_id)
        return self.location_row(product_id, warehouse_id, location_id)

    def lock_warehouse_rows(self, product_id: UUID, warehouse_id: UUID) -> list[ProductLocationQuantity]:
        """
        Locked non-empty location rows of one product in one warehouse.

        Ordered receiving location first, then by location address, which is
        the order stock is drawn in when a movement names no location.
        """
        rows = self.session.execute(
            select(ProductLocationQuantity)
            .join(WarehouseLocation, WarehouseLocation.id == ProductLocationQuantity.location_id)
            .where(
                ProductLocationQuantity.product_id == product_id,
                ProductLocationQuantity.warehouse_id == warehouse_id,
                ProductLocationQuantity.quantity > 0,
            )
            .order_by(
                WarehouseLocation.is_receiving.desc(),
                WarehouseLocation.zone,
                WarehouseLocation.aisle,
                WarehouseLocation.rack,
                WarehouseLocation.shelf,
                WarehouseLocation.bin,
            )
            .with_for_update(of=ProductLocationQuantity)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return list(rows)

    def location_quantity(self, product_id: UUID, warehouse_id: UUID, location_id: UUID) -> int:
        row = self.location_row(product_id, warehouse_id, location_id, lock=False)
        return row.quantity if row is not None else 0

    # -------------------------------------------------------------------------
    # Writes (LedgerService only)
    # -------------------------------------------------------------------------

    def apply_product_delta(self, product_id: UUID, delta: int) -> int:
        """Add ``delta`` (signed) to Product.quantity; never below zero."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=Product.quantity + delta)
        )
        if delta < 0:
            stmt = stmt.where(Product.quantity + delta >= 0)

        result = self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            available = self.product_quantity(product_id)
            logger.warning(
                "product_decrement_rejected",
                extra={
                    "product_id": str(product_id),
                    "requested": -delta,
                    "available": available,
                },
            )
            raise InsufficientStockError(str(product_id), -delta, available)

        new_qty = self.product_quantity(product_id)
        self._sync_loaded(Product, product_id, new_qty)
        return new_qty

    def ensure_location_row(
        self, product_id: UUID, warehouse_id: UUID, location_id: UUID
    ) -> ProductLocationQuantity:
        """Locked location row, created at zero on first use."""
        row = self.location_row(product_id, warehouse_id, location_id)
        if row is not None:
            return row

        savepoint = self.session.begin_nested()
        try:
            row = ProductLocationQuantity(
                product_id=product_id,
                warehouse_id=warehouse_id,
                location_id=location_id,
                quantity=0,
            )
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
            logger.debug(
                "location_quantity_created",
                extra={
                    "product_id": str(product_id),
                    "location_id": str(location_id),
                },
            )
            return row
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "location_quantity_race_retry",
                extra={"product_id": str(product_id), "location_id": str(location_id)},
            )
            row = self.location_row(product_id, warehouse_id, location_id)
            if row is None:
                raise
            return row

    def apply_location_delta(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        location_id: UUID,
        delta: int,
    ) -> int:
        """Add ``delta`` (signed) to one location's quantity; never below zero."""
        if delta > 0:
            row = self.bucket(product_id, warehouse_id, location_id, create=True)
        else:
            row = self.bucket(product_id, warehouse_id, location_id)
            if row is None:
                raise InsufficientStockError(
                    str(product_id), -delta, 0, location_id=str(location_id)
                )

        stmt = (
            update(ProductLocationQuantity)
            .where(ProductLocationQuantity.id == row.id)
            .values(quantity=ProductLocationQuantity.quantity + delta)
        )
        if delta < 0:
            stmt = stmt.where(ProductLocationQuantity.quantity + delta >= 0)

        result = self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            available = self.location_quantity(product_id, warehouse_id, location_id)
            logger.warning(
                "location_decrement_rejected",
                extra={
                    "product_id": str(product_id),
                    "location_id": str(location_id),
                    "requested": -delta,
                    "available": available,
                },
            )
            raise InsufficientStockError(
                str(product_id), -delta, available, location_id=str(location_id)
            )

        new_qty = self.session.execute(
            select(ProductLocationQuantity.quantity).where(
                ProductLocationQuantity.id == row.id
            )
        ).scalar_one()
        set_committed_value(row, "quantity", new_qty)
        return new_qty

    def _sync_loaded(self, model, ident, value: int) -> None:
        """Reflect a bulk-updated quantity onto an already-loaded instance."""
        key = self.session.identity_key(model, ident)
        obj = self.session.identity_map.get(key)
        if obj is not None:
            set_committed_value(obj, "quantity", value)
