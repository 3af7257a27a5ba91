"""
Canonical workflow types (``inventory_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for order state machines.  The purchase and sales order
lifecycles (``domain/order_workflows.py``) are declared with these types,
and the order services ask the workflow whether a status change is legal
instead of hard-coding status lists.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


def _state(value) -> str:
    return getattr(value, "value", value)


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the owning service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``moves_stock=True`` marks transitions that append ledger entries
    (receive, fulfill).
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an order lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                "is not a declared state"
            )
        for t in self.transitions:
            for state in (t.from_state, t.to_state):
                if state not in self.states:
                    raise ValueError(
                        f"Workflow {self.name}: transition {t.action} references "
                        f"unknown state {state!r}"
                    )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    "has an outgoing transition"
                )

    def is_terminal(self, state: str) -> bool:
        return _state(state) in self.terminal_states

    def sources_for(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` may fire, in declaration order."""
        seen: list[str] = []
        for t in self.transitions:
            if t.action == action and t.from_state not in seen:
                seen.append(t.from_state)
        return tuple(seen)

    def find(self, from_state: str, action: str, to_state: str) -> Transition | None:
        """The transition matching all three, or None."""
        for t in self.transitions:
            if (
                t.from_state == _state(from_state)
                and t.action == action
                and t.to_state == _state(to_state)
            ):
                return t
        return None
