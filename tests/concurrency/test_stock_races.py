"""
Concurrent stock decrements and lock-wait bounds.

Two callers racing for the last units must serialize on the product row:
exactly one wins and the other sees InsufficientStockError, never a
negative quantity.  The same holds for two sales orders fulfilled at once,
whatever order their lines name the products in.  A caller that cannot
get the lock within the timeout gets ConcurrencyConflictError instead of
waiting forever.

On SQLite the database-wide write lock gives the same serialization.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlalchemy import select

from inventory_kernel.db.engine import build_engine, build_session_factory
from inventory_kernel.exceptions import ConcurrencyConflictError, InsufficientStockError
from inventory_kernel.models.catalog import Product
from inventory_kernel.services.ledger_service import LedgerService
from inventory_services.consistency_guard import ConsistencyGuard

pytestmark = pytest.mark.slow_locks


class TestConcurrentIssue:

    def test_only_one_of_two_overdrawing_issues_wins(self, operations, stocked_setup, guard, test_actor_id):
        product, warehouse = stocked_setup["product"], stocked_setup["warehouse"]
        operations.receive_stock(product.id, warehouse.id, 5, test_actor_id)
        barrier = threading.Barrier(2)

        def issue_three():
            barrier.wait(timeout=10)
            try:
                guard.run(
                    "issue_stock",
                    lambda scope: LedgerService(scope.session, scope.clock).issue(
                        product.id, warehouse.id, 3, test_actor_id,
                    ),
                    test_actor_id,
                )
                return "ok"
            except InsufficientStockError:
                return "insufficient"

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = sorted(f.result(timeout=30) for f in [pool.submit(issue_three) for _ in range(2)])

        assert outcomes == ["insufficient", "ok"]
        assert operations.product_quantity(product.id) == 2
        assert operations.verify_ledger([product.id]).is_consistent

    def test_many_small_issues_never_overdraw(self, operations, stocked_setup, guard, test_actor_id):
        product, warehouse = stocked_setup["product"], stocked_setup["warehouse"]
        operations.receive_stock(product.id, warehouse.id, 4, test_actor_id)

        def issue_one():
            try:
                operations.issue_stock(product.id, warehouse.id, 1, test_actor_id)
                return True
            except InsufficientStockError:
                return False

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: issue_one(), range(8)))

        assert results.count(True) == 4
        assert operations.product_quantity(product.id) == 0


class TestConcurrentFulfillment:

    def _confirmed_order(self, operations, stocked_setup, lines, actor_id):
        so = operations.create_sales_order(
            stocked_setup["customer_id"], stocked_setup["warehouse"].id, actor_id,
        )
        for product, quantity in lines:
            so = operations.add_sales_order_item(so.id, product.id, quantity, Decimal("10.00"), actor_id)
        return operations.confirm_sales_order(so.id, actor_id)

    def test_two_orders_racing_for_the_same_stock(self, operations, stocked_setup, test_actor_id):
        """Each order needs 3 of both products, listed in opposite order; 5 of each on hand."""
        warehouse = stocked_setup["warehouse"]
        first = stocked_setup["product"]
        second = operations.create_product("SKU-OPS-2", "Gadget", test_actor_id, price=Decimal("10.00"))
        for product in (first, second):
            operations.receive_stock(product.id, warehouse.id, 5, test_actor_id)

        orders = [
            self._confirmed_order(operations, stocked_setup, [(first, 3), (second, 3)], test_actor_id),
            self._confirmed_order(operations, stocked_setup, [(second, 3), (first, 3)], test_actor_id),
        ]
        barrier = threading.Barrier(2)

        def fulfill(so):
            payload = {"items": [
                {"item_id": str(item.item_id), "quantity_fulfilled": item.quantity} for item in so.items
            ]}
            barrier.wait(timeout=10)
            try:
                return operations.fulfill_sales_order(so.id, payload, test_actor_id).status
            except InsufficientStockError:
                return "insufficient"

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = sorted(f.result(timeout=30) for f in [pool.submit(fulfill, so) for so in orders])

        assert outcomes == ["fulfilled", "insufficient"]
        assert operations.product_quantity(first.id) == 2
        assert operations.product_quantity(second.id) == 2
        statuses = sorted(operations.get_sales_order(so.id).status for so in orders)
        assert statuses == ["confirmed", "fulfilled"]
        assert operations.verify_ledger([first.id, second.id]).is_consistent


class TestLockTimeout:

    def test_blocked_writer_gets_conflict(
        self, db_engine, committed_session_factory, operations, stocked_setup, deterministic_clock, test_actor_id,
    ):
        product, warehouse = stocked_setup["product"], stocked_setup["warehouse"]
        short_engine = build_engine(
            db_engine.url.render_as_string(hide_password=False), lock_timeout_ms=100,
        )
        impatient = ConsistencyGuard(
            build_session_factory(short_engine), deterministic_clock,
            lock_timeout_ms=100, max_retries=0, retry_backoff_ms=0,
        )

        blocker = committed_session_factory()
        try:
            blocker.execute(select(Product).where(Product.id == product.id).with_for_update()).all()

            with pytest.raises(ConcurrencyConflictError) as exc_info:
                impatient.run(
                    "receive_stock",
                    lambda scope: LedgerService(scope.session, scope.clock).receive(
                        product.id, warehouse.id, 1, test_actor_id,
                    ),
                    test_actor_id,
                )
            assert exc_info.value.operation == "receive_stock"
        finally:
            blocker.rollback()
            blocker.close()
            short_engine.dispose()

        assert operations.product_quantity(product.id) == 0
