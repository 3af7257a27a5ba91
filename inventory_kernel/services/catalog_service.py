"""
CatalogService -- products and order counterparties.

Products are created at quantity 0; stock only ever arrives through the
ledger.  Prices are Decimal and non-negative.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.types import ZERO, round_money, to_money
from inventory_kernel.exceptions import DuplicateCodeError, InvalidAmountError, InvalidRequestError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.catalog import Customer, Product, Supplier

logger = get_logger("services.catalog")


def _non_negative(value, field: str) -> Decimal:
    try:
        amount = to_money(value)
    except ValueError:
        raise InvalidAmountError(field, value, "not a decimal amount") from None
    if amount < ZERO:
        raise InvalidAmountError(field, amount, "must not be negative")
    return round_money(amount)


class CatalogService:
    def __init__(self, session: Session):
        self.session = session

    def create_product(self, sku: str, name: str, actor_id: UUID, *, price=ZERO,
                       cost_price=ZERO, reorder_level: int = 5,
                       description: str | None = None) -> Product:
        sku = (sku or "").strip()
        if not sku:
            raise InvalidRequestError("sku", "SKU is required")
        if self.session.execute(select(Product.id).where(Product.sku == sku)).first():
            raise DuplicateCodeError("Product", sku)

        product = Product(
            sku=sku,
            name=name,
            description=description,
            reorder_level=reorder_level,
            price=_non_negative(price, "price"),
            cost_price=_non_negative(cost_price, "cost_price"),
            created_by_id=actor_id,
        )
        self.session.add(product)
        self.session.flush()
        logger.info("product_created", extra={"sku": sku, "product_id": str(product.id)})
        return product

    def create_supplier(self, name: str, actor_id: UUID, email: str | None = None,
                        phone: str | None = None) -> Supplier:
        supplier = Supplier(name=name, email=email, phone=phone, created_by_id=actor_id)
        self.session.add(supplier)
        self.session.flush()
        return supplier

    def create_customer(self, name: str, actor_id: UUID, email: str | None = None,
                        phone: str | None = None) -> Customer:
        customer = Customer(name=name, email=email, phone=phone, created_by_id=actor_id)
        self.session.add(customer)
        self.session.flush()
        return customer

    def low_stock(self) -> list[Product]:
        """Products at or below their reorder level."""
        return list(
            self.session.execute(
                select(Product)
                .where(Product.quantity <= Product.reorder_level)
                .order_by(Product.sku)
            ).scalars()
        )
