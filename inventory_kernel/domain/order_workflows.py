"""
Purchase and sales order lifecycles.

Purchase:  draft -> pending -> approved -> partial -> received
           (receiving may start from pending or approved)
Sales:     draft -> confirmed -> partial -> fulfilled
Both:      any non-terminal state -> cancelled

``receive`` / ``fulfill`` transitions land in ``partial`` or the completed
state depending on cumulative quantities, so each source state declares both
targets.
"""

from inventory_kernel.domain.workflow import Guard, Transition, Workflow

HAS_ITEMS = Guard("has_items", "Order has at least one item")
WITHIN_REMAINING = Guard(
    "within_remaining",
    "Every line is > 0 and <= ordered minus already moved for its item",
)


def _cancel_from(states: tuple[str, ...]) -> tuple[Transition, ...]:
    return tuple(Transition(s, "cancelled", "cancel") for s in states)


PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order receiving lifecycle",
    initial_state="draft",
    states=("draft", "pending", "approved", "partial", "received", "cancelled"),
    transitions=(
        Transition("draft", "pending", "submit", guard=HAS_ITEMS),
        Transition("pending", "approved", "approve"),
        Transition("pending", "partial", "receive", WITHIN_REMAINING, moves_stock=True),
        Transition("pending", "received", "receive", WITHIN_REMAINING, moves_stock=True),
        Transition("approved", "partial", "receive", WITHIN_REMAINING, moves_stock=True),
        Transition("approved", "received", "receive", WITHIN_REMAINING, moves_stock=True),
        Transition("partial", "partial", "receive", WITHIN_REMAINING, moves_stock=True),
        Transition("partial", "received", "receive", WITHIN_REMAINING, moves_stock=True),
    )
    + _cancel_from(("draft", "pending", "approved", "partial")),
    terminal_states=("received", "cancelled"),
)

SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order fulfillment lifecycle",
    initial_state="draft",
    states=("draft", "confirmed", "partial", "fulfilled", "cancelled"),
    transitions=(
        Transition("draft", "confirmed", "confirm", guard=HAS_ITEMS),
        Transition("confirmed", "partial", "fulfill", WITHIN_REMAINING, moves_stock=True),
        Transition("confirmed", "fulfilled", "fulfill", WITHIN_REMAINING, moves_stock=True),
        Transition("partial", "partial", "fulfill", WITHIN_REMAINING, moves_stock=True),
        Transition("partial", "fulfilled", "fulfill", WITHIN_REMAINING, moves_stock=True),
    )
    + _cancel_from(("draft", "confirmed", "partial")),
    terminal_states=("fulfilled", "cancelled"),
)
