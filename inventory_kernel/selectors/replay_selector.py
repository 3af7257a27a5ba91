"""
Module: inventory_kernel.selectors.replay_selector
Responsibility: Rebuild product and location quantities from the inventory
    ledger, starting from empty state, and compare them with the stored
    running totals.
Architecture position: Kernel > Selectors.  Read-only: it reports
    discrepancies and never writes corrected values back.

Invariants verified:
    - Replay-equivalence: for every product, stored Product.quantity equals
      sum(receive) - sum(issue) + sum(adjustment) over its ledger rows.
    - For every (product, warehouse, location), the stored quantity equals
      the replayed one.
    - Location quantities of a product sum to its Product.quantity.

Audit relevance:
    A non-empty discrepancy list means something wrote quantities outside
    the ledger; the ORM listeners and CHECK constraints exist to make that
    impossible.
"""

from collections import defaultdict
from typing import Iterable
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import ReplayDiscrepancy, ReplayResult
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.catalog import Product
from inventory_kernel.models.inventory_transaction import (
    InventoryTransaction,
    TransactionType,
)
from inventory_kernel.models.warehouse import ProductLocationQuantity
from inventory_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.replay")

LocationKey = tuple[UUID, UUID, UUID]


class ReplaySelector(BaseSelector[InventoryTransaction]):
    """
    Ledger replay and verification.

    Non-goals:
        - No backfill or repair.  Fixing a discrepancy is an operational
          decision made outside the kernel.
    """

    def replay(self, product_ids: Iterable[UUID] | None = None) -> ReplayResult:
        """Quantities implied by the ledger alone."""
        ids = list(product_ids) if product_ids is not None else None

        stmt = select(InventoryTransaction).order_by(
            InventoryTransaction.created_at, InventoryTransaction.id
        )
        if ids is not None:
            stmt = stmt.where(InventoryTransaction.product_id.in_(ids))

        products: dict[UUID, int] = defaultdict(int)
        locations: dict[LocationKey, int] = defaultdict(int)
        count = 0

        for tx in self.session.execute(stmt.execution_options(yield_per=500)).scalars():
            count += 1
            products[tx.product_id] += tx.product_delta
            if tx.type == TransactionType.TRANSFER:
                locations[(tx.product_id, tx.warehouse_id, tx.source_location_id)] -= tx.quantity
                locations[(tx.product_id, tx.warehouse_id, tx.destination_location_id)] += tx.quantity
            else:
                delta = tx.product_delta
                location_id = tx.destination_location_id if delta > 0 else tx.source_location_id
                locations[(tx.product_id, tx.warehouse_id, location_id)] += delta

        if ids is not None:
            for pid in ids:
                products.setdefault(pid, 0)

        return ReplayResult(
            product_totals=dict(products),
            location_totals=dict(locations),
            transactions_replayed=count,
        )

    def verify(self, product_ids: Iterable[UUID] | None = None) -> ReplayResult:
        """Replay, then list every stored quantity that disagrees."""
        ids = list(product_ids) if product_ids is not None else None
        replayed = self.replay(ids)

        product_stmt = select(Product.id, Product.quantity)
        location_stmt = select(
            ProductLocationQuantity.product_id,
            ProductLocationQuantity.warehouse_id,
            ProductLocationQuantity.location_id,
            ProductLocationQuantity.quantity,
        )
        if ids is not None:
            product_stmt = product_stmt.where(Product.id.in_(ids))
            location_stmt = location_stmt.where(ProductLocationQuantity.product_id.in_(ids))

        stored_products = dict(self.session.execute(product_stmt).all())
        stored_locations = {
            (pid, wid, lid): qty
            for pid, wid, lid, qty in self.session.execute(location_stmt).all()
        }

        discrepancies: list[ReplayDiscrepancy] = []

        for pid in sorted(set(stored_products) | set(replayed.product_totals), key=str):
            stored = stored_products.get(pid, 0)
            expected = replayed.product_totals.get(pid, 0)
            if stored != expected:
                discrepancies.append(ReplayDiscrepancy(pid, None, None, stored, expected))

        for key in sorted(set(stored_locations) | set(replayed.location_totals), key=str):
            stored = stored_locations.get(key, 0)
            expected = replayed.location_totals.get(key, 0)
            if stored != expected:
                discrepancies.append(ReplayDiscrepancy(key[0], key[1], key[2], stored, expected))

        # Location rows must add up to the product total
        location_sums: dict[UUID, int] = defaultdict(int)
        for (pid, _, _), qty in stored_locations.items():
            location_sums[pid] += qty
        for pid, stored in stored_products.items():
            if location_sums.get(pid, 0) != stored:
                discrepancies.append(
                    ReplayDiscrepancy(pid, None, None, stored, location_sums.get(pid, 0))
                )

        if discrepancies:
            logger.error(
                "replay_discrepancies_found",
                extra={
                    "count": len(discrepancies),
                    "transactions_replayed": replayed.transactions_replayed,
                },
            )
        else:
            logger.info(
                "replay_verified",
                extra={
                    "products": len(stored_products),
                    "transactions_replayed": replayed.transactions_replayed,
                },
            )

        return ReplayResult(
            product_totals=replayed.product_totals,
            location_totals=replayed.location_totals,
            transactions_replayed=replayed.transactions_replayed,
            discrepancies=tuple(discrepancies),
        )
