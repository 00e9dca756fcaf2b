"""
Canonical workflow types (``inventory_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for state machines.  The transfer lifecycle is declared
with these in ``inventory_services.transfer_workflow`` and executed by the
Transfer Orchestrator.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` and every terminal state are members of ``states``.
* Terminal states have no outgoing transitions.
* At most one transition per (from_state, to_state) pair.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A named precondition on a transition.

    Descriptive only; the orchestrator evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition.

    ``action`` names the saga that performs the transition's side effects.
    ``moves_stock=False`` marks a transition that only changes status.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_stock: bool = True


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        for state in self.terminal_states:
            if state not in known:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {state!r} not in states"
                )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    f"has outgoing transition {t.action}"
                )
            key = (t.from_state, t.to_state)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate transition {t.from_state} -> {t.to_state}"
                )
            seen.add(key)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def find_transition(self, from_state: str, to_state: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def transitions_from(self, state: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_state == state)
