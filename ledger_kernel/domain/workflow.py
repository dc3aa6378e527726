"""
Canonical workflow types (``ledger_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document lifecycles.  Variation orders, IPCs and
subcontractor bills all declare their state machines with these types so
that Guard, Transition, and Workflow are defined once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow executor does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``mutates_register=True`` marks transitions with side effects on the
    BOQ register (variation approval).  ``allowed_roles`` restricts who may
    fire the transition; empty means any authenticated actor.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    mutates_register: bool = False
    allowed_roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class TransitionResult:
    """Result of executing a workflow transition.

    ``failed_guard`` is set when a transition exists but its guard did not
    pass; a failure without it means no transition matched.
    """

    success: bool
    new_state: str | None = None
    mutates_register: bool = False
    reason: str = ""
    failed_guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    ``terminal_states`` are states with no outgoing transitions.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state '{self.initial_state}' "
                "is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition '{t.action}' references "
                    f"undeclared state ({t.from_state} -> {t.to_state})"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state '{t.from_state}' "
                    f"has outgoing transition '{t.action}'"
                )

    def find_transition(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for (state, action), or None."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Actions available from a state, in declaration order."""
        return tuple(t.action for t in self.transitions if t.from_state == state)
