"""
Module: inventory_kernel.selectors.stock_selector
Responsibility: Read access to current on-hand quantities.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import StockLevel
from inventory_kernel.exceptions import ProductNotFoundError
from inventory_kernel.models.catalog import Product
from inventory_kernel.models.warehouse import ProductLocationQuantity, WarehouseLocation
from inventory_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector[ProductLocationQuantity]):
    """Current quantities per product and per location."""

    def product_quantity(self, product_id: UUID) -> int:
        qty = self.session.execute(
            select(Product.quantity).where(Product.id == product_id)
        ).scalar_one_or_none()
        if qty is None:
            raise ProductNotFoundError(str(product_id))
        return qty

    def _levels(self, *criteria) -> list[StockLevel]:
        rows = self.session.execute(
            select(ProductLocationQuantity, WarehouseLocation)
            .join(WarehouseLocation, WarehouseLocation.id == ProductLocationQuantity.location_id)
            .where(*criteria)
            .order_by(
                ProductLocationQuantity.warehouse_id,
                WarehouseLocation.zone,
                WarehouseLocation.aisle,
                WarehouseLocation.rack,
                WarehouseLocation.shelf,
                WarehouseLocation.bin,
            )
        ).all()
        return [
            StockLevel(
                product_id=plq.product_id,
                warehouse_id=plq.warehouse_id,
                location_id=plq.location_id,
                location_code=loc.code,
                quantity=plq.quantity,
            )
            for plq, loc in rows
        ]

    def stock_levels(self, product_id: UUID) -> list[StockLevel]:
        """Every location row for the product, including empty ones."""
        return self._levels(ProductLocationQuantity.product_id == product_id)

    def warehouse_stock(self, warehouse_id: UUID) -> list[StockLevel]:
        return self._levels(ProductLocationQuantity.warehouse_id == warehouse_id)

    def location_quantity(self, product_id: UUID, location_id: UUID) -> int:
        qty = self.session.execute(
            select(ProductLocationQuantity.quantity).where(
                ProductLocationQuantity.product_id == product_id,
                ProductLocationQuantity.location_id == location_id,
            )
        ).scalar_one_or_none()
        return qty or 0
