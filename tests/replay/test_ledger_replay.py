"""
Ledger replay: quantities rebuilt from the ledger alone must equal the
stored running totals.  Replay is read-only and reports drift rather than
repairing it.
"""

from decimal import Decimal

from sqlalchemy import select, update

from inventory_kernel.domain.dtos import FulfillmentLine, ReceiptLine
from inventory_kernel.models.catalog import Product
from inventory_kernel.models.warehouse import ProductLocationQuantity
from inventory_kernel.selectors.replay_selector import ReplaySelector


class TestReplayTotals:

    def test_empty_ledger(self, session):
        result = ReplaySelector(session).replay()
        assert result.transactions_replayed == 0
        assert result.product_totals == {}

    def test_requested_product_without_history(self, session, product):
        result = ReplaySelector(session).replay([product.id])
        assert result.product_totals == {product.id: 0}

    def test_all_movement_kinds(
        self, session, ledger, product, warehouse, receiving_location, bin_a, test_actor_id,
    ):
        ledger.receive(product.id, warehouse.id, 10, test_actor_id)
        ledger.transfer(
            product.id, warehouse.id, 4, test_actor_id,
            source_location_id=receiving_location.id, destination_location_id=bin_a.id,
        )
        ledger.issue(product.id, warehouse.id, 1, test_actor_id, location_id=bin_a.id)
        ledger.adjust(product.id, warehouse.id, -2, test_actor_id, reason_code="damaged")

        result = ReplaySelector(session).replay([product.id])

        assert result.transactions_replayed == 4
        assert result.product_totals[product.id] == 7
        assert result.location_totals[(product.id, warehouse.id, receiving_location.id)] == 4
        assert result.location_totals[(product.id, warehouse.id, bin_a.id)] == 3

    def test_scoped_to_requested_products(self, session, ledger, create_product, warehouse, test_actor_id):
        a, b = create_product(), create_product()
        ledger.receive(a.id, warehouse.id, 2, test_actor_id)
        ledger.receive(b.id, warehouse.id, 3, test_actor_id)

        result = ReplaySelector(session).replay([b.id])
        assert result.product_totals == {b.id: 3}


class TestReplayVerification:

    def test_consistent_after_order_flows(
        self, session, receiving, fulfillment, make_purchase_order, make_sales_order, product, test_actor_id,
    ):
        po = make_purchase_order([(product, 8, Decimal("3.00"))])
        receiving.receive(po.id, [ReceiptLine(po.items[0].id, 8)], test_actor_id)
        so = make_sales_order([(product, 5, Decimal("9.00"))])
        fulfillment.fulfill(so.id, [FulfillmentLine(so.items[0].id, 5)], test_actor_id)

        result = ReplaySelector(session).verify()

        assert result.is_consistent
        assert result.product_totals[product.id] == 3

    def test_product_tampering_detected(self, session, stock, product, captured_logs):
        stock(product, 5)
        # Core bulk UPDATE skips mapper events, simulating an out-of-band write
        session.execute(
            update(Product).where(Product.id == product.id).values(quantity=9),
            execution_options={"synchronize_session": False},
        )

        result = ReplaySelector(session).verify([product.id])

        assert not result.is_consistent
        product_level = [d for d in result.discrepancies if d.location_id is None]
        assert product_level[0].stored == 9
        assert product_level[0].replayed == 5
        assert product_level[0].difference == 4
        assert "replay_discrepancies_found" in [r["message"] for r in captured_logs()]

    def test_location_tampering_detected(self, session, stock, product, bin_a):
        stock(product, 5, location_id=bin_a.id)
        session.execute(
            update(ProductLocationQuantity)
            .where(ProductLocationQuantity.product_id == product.id)
            .values(quantity=1),
            execution_options={"synchronize_session": False},
        )

        result = ReplaySelector(session).verify([product.id])

        located = [d for d in result.discrepancies if d.location_id == bin_a.id]
        assert located[0].stored == 1
        assert located[0].replayed == 5

    def test_verify_does_not_repair(self, session, stock, product):
        stock(product, 5)
        session.execute(
            update(Product).where(Product.id == product.id).values(quantity=9),
            execution_options={"synchronize_session": False},
        )

        ReplaySelector(session).verify([product.id])

        stored = session.scalar(select(Product.quantity).where(Product.id == product.id))
        assert stored == 9

    def test_clean_verify_logged(self, session, stock, product, captured_logs):
        stock(product, 1)
        ReplaySelector(session).verify()
        assert "replay_verified" in [r["message"] for r in captured_logs()]
