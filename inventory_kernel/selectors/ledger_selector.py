"""
Module: inventory_kernel.selectors.ledger_selector
Responsibility: Read access to the inventory ledger: per-product and
    per-reference history, and the per-item cumulative quantities that the
    order state machines derive received-to-date / fulfilled-to-date from.
Architecture position: Kernel > Selectors.
"""

from datetime import datetime
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import TransactionView
from inventory_kernel.models.inventory_transaction import (
    InventoryTransaction,
    TransactionType,
)
from inventory_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector[InventoryTransaction]):
    """Queries over InventoryTransaction rows."""

    def transactions_for_product(
        self,
        product_id: UUID,
        tx_type: TransactionType | str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[TransactionView]:
        stmt = select(InventoryTransaction).where(
            InventoryTransaction.product_id == product_id
        )
        if tx_type is not None:
            stmt = stmt.where(InventoryTransaction.type == str(getattr(tx_type, "value", tx_type)))
        if since is not None:
            stmt = stmt.where(InventoryTransaction.created_at >= since)
        if until is not None:
            stmt = stmt.where(InventoryTransaction.created_at < until)
        stmt = stmt.order_by(InventoryTransaction.created_at, InventoryTransaction.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [TransactionView.from_model(tx) for tx in self.session.execute(stmt).scalars()]

    def transactions_for_reference(self, reference_number: str) -> list[TransactionView]:
        stmt = (
            select(InventoryTransaction)
            .where(InventoryTransaction.reference_number == reference_number)
            .order_by(InventoryTransaction.created_at, InventoryTransaction.id)
        )
        return [TransactionView.from_model(tx) for tx in self.session.execute(stmt).scalars()]

    def moved_by_item(
        self, item_ids: Iterable[UUID], tx_type: TransactionType
    ) -> dict[UUID, int]:
        """Sum of ``tx_type`` quantities per order item (0 for untouched items)."""
        ids = list(item_ids)
        totals: dict[UUID, int] = {item_id: 0 for item_id in ids}
        if not ids:
            return totals
        rows = self.session.execute(
            select(
                InventoryTransaction.order_item_id,
                func.coalesce(func.sum(InventoryTransaction.quantity), 0),
            )
            .where(
                InventoryTransaction.order_item_id.in_(ids),
                InventoryTransaction.type == tx_type.value,
            )
            .group_by(InventoryTransaction.order_item_id)
        ).all()
        for item_id, total in rows:
            totals[item_id] = int(total)
        return totals

    def received_by_item(self, item_ids: Iterable[UUID]) -> dict[UUID, int]:
        return self.moved_by_item(item_ids, TransactionType.RECEIVE)

    def fulfilled_by_item(self, item_ids: Iterable[UUID]) -> dict[UUID, int]:
        return self.moved_by_item(item_ids, TransactionType.ISSUE)
