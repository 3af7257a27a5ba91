"""Tests for the workflow value objects and the two order lifecycles."""

import pytest

from inventory_kernel.domain.order_workflows import (
    PURCHASE_ORDER_WORKFLOW,
    SALES_ORDER_WORKFLOW,
)
from inventory_kernel.domain.workflow import Transition, Workflow
from inventory_kernel.models.purchase_order import PurchaseOrderStatus


class TestWorkflowDefinition:

    def test_unknown_initial_state_rejected(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow("w", "", "start", ("a",), ())

    def test_transition_to_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow("w", "", "a", ("a",), (Transition("a", "b", "go"),))

    def test_terminal_state_with_exit_rejected(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                "w", "", "a", ("a", "b"),
                (Transition("a", "b", "go"), Transition("b", "a", "back")),
                terminal_states=("b",),
            )


class TestPurchaseOrderWorkflow:

    def test_receive_sources(self):
        assert PURCHASE_ORDER_WORKFLOW.sources_for("receive") == ("pending", "approved", "partial")

    def test_cannot_receive_draft(self):
        assert "draft" not in PURCHASE_ORDER_WORKFLOW.sources_for("receive")

    def test_cancel_sources_exclude_terminal(self):
        sources = PURCHASE_ORDER_WORKFLOW.sources_for("cancel")
        assert "received" not in sources
        assert "cancelled" not in sources

    def test_receive_transitions_move_stock(self):
        t = PURCHASE_ORDER_WORKFLOW.find("approved", "receive", "partial")
        assert t is not None and t.moves_stock

    def test_find_accepts_enum_members(self):
        t = PURCHASE_ORDER_WORKFLOW.find(
            PurchaseOrderStatus.DRAFT, "submit", PurchaseOrderStatus.PENDING
        )
        assert t is not None
        assert t.guard.name == "has_items"

    def test_no_transition_out_of_received(self):
        assert PURCHASE_ORDER_WORKFLOW.is_terminal("received")
        assert PURCHASE_ORDER_WORKFLOW.find("received", "cancel", "cancelled") is None


class TestSalesOrderWorkflow:

    def test_fulfill_sources(self):
        assert SALES_ORDER_WORKFLOW.sources_for("fulfill") == ("confirmed", "partial")

    def test_partial_can_complete(self):
        assert SALES_ORDER_WORKFLOW.find("partial", "fulfill", "fulfilled") is not None

    def test_terminal_states(self):
        assert SALES_ORDER_WORKFLOW.is_terminal("fulfilled")
        assert SALES_ORDER_WORKFLOW.is_terminal("cancelled")
        assert not SALES_ORDER_WORKFLOW.is_terminal("partial")
