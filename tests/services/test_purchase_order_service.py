"""
Tests for PurchaseOrderService -- header, draft-stage items, totals and the
administrative transitions (submit, approve, cancel).
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.exceptions import (
    EmptyOrderError,
    InvalidAmountError,
    InvalidQuantityError,
    OrderItemNotFoundError,
    OrderNotFoundError,
    OrderStatusError,
    PartyNotFoundError,
    ProductNotFoundError,
    WarehouseNotFoundError,
)
from inventory_kernel.services.purchase_order_service import PurchaseOrderService


class TestCreatePurchaseOrder:

    def test_created_in_draft_with_number(self, purchase_orders, supplier, warehouse, test_actor_id):
        order = purchase_orders.create_order(supplier.id, warehouse.id, test_actor_id)

        assert order.status == "draft"
        assert order.po_number == "PO-000001"
        assert order.total_amount == Decimal("0.00")
        assert order.created_by_id == test_actor_id

    def test_numbers_are_sequential(self, purchase_orders, supplier, warehouse, test_actor_id):
        first = purchase_orders.create_order(supplier.id, warehouse.id, test_actor_id)
        second = purchase_orders.create_order(supplier.id, warehouse.id, test_actor_id)
        assert (first.po_number, second.po_number) == ("PO-000001", "PO-000002")

    def test_custom_prefix_and_width(
        self, session, deterministic_clock, audit_trail, supplier, warehouse, test_actor_id,
    ):
        service = PurchaseOrderService(
            session, deterministic_clock, audit_trail, number_prefix="BUY", number_width=3,
        )
        order = service.create_order(supplier.id, warehouse.id, test_actor_id)
        assert order.po_number == "BUY-001"

    def test_unknown_supplier(self, purchase_orders, warehouse, test_actor_id):
        with pytest.raises(PartyNotFoundError) as exc_info:
            purchase_orders.create_order(uuid4(), warehouse.id, test_actor_id)
        assert exc_info.value.party_type == "Supplier"

    def test_unknown_warehouse(self, purchase_orders, supplier, test_actor_id):
        with pytest.raises(WarehouseNotFoundError):
            purchase_orders.create_order(supplier.id, uuid4(), test_actor_id)

    def test_creation_audited(self, purchase_orders, supplier, warehouse, test_actor_id, audit_trail):
        order = purchase_orders.create_order(supplier.id, warehouse.id, test_actor_id)

        records = [r for r in audit_trail.drain() if r.entity_type == "PurchaseOrder"]
        assert [r.action for r in records] == ["purchase_order_created"]
        assert records[0].entity_id == str(order.id)
        assert records[0].after["po_number"] == order.po_number
        assert records[0].before is None


class TestPurchaseOrderItems:

    def test_add_item_updates_total(self, purchase_orders, make_purchase_order, product):
        order = make_purchase_order([(product, 10, Decimal("4.25"))], submit=False)

        assert len(order.items) == 1
        item = order.items[0]
        assert item.line_no == 1
        assert item.total_price == Decimal("42.50")
        assert order.total_amount == Decimal("42.50")

    def test_line_numbers_increase(self, make_purchase_order, create_product):
        order = make_purchase_order(
            [(create_product(), 1, Decimal("1")), (create_product(), 2, Decimal("1"))],
            submit=False,
        )
        assert [i.line_no for i in order.items] == [1, 2]

    def test_update_item(self, purchase_orders, make_purchase_order, product, test_actor_id):
        order = make_purchase_order([(product, 10, Decimal("4.25"))], submit=False)
        item = order.items[0]

        purchase_orders.update_item(order.id, item.id, test_actor_id, quantity=4, unit_price="5.00")

        assert item.quantity == 4
        assert item.total_price == Decimal("20.00")
        assert order.total_amount == Decimal("20.00")

    def test_remove_item(self, purchase_orders, make_purchase_order, create_product, test_actor_id):
        keep, drop = create_product(), create_product()
        order = make_purchase_order(
            [(keep, 1, Decimal("3.00")), (drop, 1, Decimal("7.00"))], submit=False,
        )
        dropped = next(i for i in order.items if i.product_id == drop.id)

        purchase_orders.remove_item(order.id, dropped.id, test_actor_id)

        assert [i.product_id for i in order.items] == [keep.id]
        assert order.total_amount == Decimal("3.00")

    def test_remove_unknown_item(self, purchase_orders, make_purchase_order, product, test_actor_id):
        order = make_purchase_order([(product, 1, Decimal("1"))], submit=False)
        with pytest.raises(OrderItemNotFoundError):
            purchase_orders.remove_item(order.id, uuid4(), test_actor_id)

    def test_items_frozen_after_submit(self, purchase_orders, make_purchase_order, product, test_actor_id):
        order = make_purchase_order([(product, 1, Decimal("1"))])

        with pytest.raises(OrderStatusError) as exc_info:
            purchase_orders.add_item(order.id, product.id, 1, Decimal("1"), test_actor_id)
        assert exc_info.value.current_status == "pending"
        assert exc_info.value.allowed_statuses == ("draft",)

        with pytest.raises(OrderStatusError):
            purchase_orders.update_item(order.id, order.items[0].id, test_actor_id, quantity=2)

    def test_invalid_quantity(self, purchase_orders, make_purchase_order, product, test_actor_id):
        order = make_purchase_order([], submit=False)
        with pytest.raises(InvalidQuantityError):
            purchase_orders.add_item(order.id, product.id, 0, Decimal("1"), test_actor_id)

    def test_invalid_price(self, purchase_orders, make_purchase_order, product, test_actor_id):
        order = make_purchase_order([], submit=False)
        with pytest.raises(InvalidAmountError):
            purchase_orders.add_item(order.id, product.id, 1, "ten", test_actor_id)
        with pytest.raises(InvalidAmountError):
            purchase_orders.add_item(order.id, product.id, 1, Decimal("-1"), test_actor_id)

    def test_unknown_product(self, purchase_orders, make_purchase_order, test_actor_id):
        order = make_purchase_order([], submit=False)
        with pytest.raises(ProductNotFoundError):
            purchase_orders.add_item(order.id, uuid4(), 1, Decimal("1"), test_actor_id)

    def test_item_change_audited_with_before_and_after(
        self, make_purchase_order, product, audit_trail,
    ):
        make_purchase_order([(product, 2, Decimal("5.00"))], submit=False)

        changed = [r for r in audit_trail.drain() if r.action == "purchase_order_items_changed"]
        assert len(changed) == 1
        assert changed[0].before["total_amount"] == "0.00"
        assert changed[0].after["total_amount"] == "10.00"
        assert len(changed[0].after["items"]) == 1


class TestPurchaseOrderTransitions:

    def test_submit_and_approve(self, purchase_orders, make_purchase_order, product, test_actor_id):
        order = make_purchase_order([(product, 1, Decimal("1"))])
        assert order.status == "pending"

        purchase_orders.approve(order.id, test_actor_id)
        assert order.status == "approved"
        assert order.updated_by_id == test_actor_id

    def test_submit_empty_order(self, purchase_orders, make_purchase_order, test_actor_id):
        order = make_purchase_order([], submit=False)
        with pytest.raises(EmptyOrderError):
            purchase_orders.submit(order.id, test_actor_id)
        assert order.status == "draft"

    def test_approve_requires_pending(self, purchase_orders, make_purchase_order, product, test_actor_id):
        order = make_purchase_order([(product, 1, Decimal("1"))], submit=False)
        with pytest.raises(OrderStatusError) as exc_info:
            purchase_orders.approve(order.id, test_actor_id)
        assert exc_info.value.action == "approve"
        assert exc_info.value.code == "ORDER_STATUS_INVALID"

    @pytest.mark.parametrize("submit,approve", [(False, False), (True, False), (True, True)])
    def test_cancel_from_open_states(
        self, purchase_orders, make_purchase_order, product, test_actor_id, submit, approve,
    ):
        order = make_purchase_order([(product, 1, Decimal("1"))], submit=submit, approve=approve)
        purchase_orders.cancel(order.id, test_actor_id)
        assert order.status == "cancelled"

    def test_cancel_twice_rejected(self, purchase_orders, make_purchase_order, product, test_actor_id):
        order = make_purchase_order([(product, 1, Decimal("1"))])
        purchase_orders.cancel(order.id, test_actor_id)
        with pytest.raises(OrderStatusError):
            purchase_orders.cancel(order.id, test_actor_id)

    def test_unknown_order(self, purchase_orders, test_actor_id):
        with pytest.raises(OrderNotFoundError):
            purchase_orders.submit(uuid4(), test_actor_id)

    def test_status_change_logged(self, purchase_orders, make_purchase_order, product, test_actor_id, captured_logs):
        order = make_purchase_order([(product, 1, Decimal("1"))])
        purchase_orders.approve(order.id, test_actor_id)

        changes = [r for r in captured_logs() if r["message"] == "order_status_changed"]
        assert [(c["from_status"], c["to_status"]) for c in changes][-1] == ("pending", "approved")

    def test_view_reports_received_progress(
        self, purchase_orders, receiving, make_purchase_order, product, test_actor_id,
    ):
        from inventory_kernel.domain.dtos import ReceiptLine

        order = make_purchase_order([(product, 10, Decimal("2.00"))])
        receiving.receive(order.id, [ReceiptLine(order.items[0].id, 4)], test_actor_id)

        view = purchase_orders.view(order)
        assert view.status == "partial"
        assert view.items[0].moved_quantity == 4
        assert view.items[0].remaining == 6
        assert view.to_dict()["items"][0]["remaining"] == 6
