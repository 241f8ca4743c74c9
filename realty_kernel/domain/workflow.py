"""
Canonical workflow types (``realty_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for lifecycle state machines.  A ``Workflow`` declares the
legal ``(state, action) -> state`` moves; modules look up the transition
before applying an action so that illegal moves are rejected up front.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning module does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``appends_ledger=True`` marks transitions that write a ledger entry.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    appends_ledger: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action!r} references unknown state"
                )

    def transition_for(self, state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``state``, if any."""
        for t in self.transitions:
            if t.from_state == state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Actions available from ``state``, in declaration order."""
        return tuple(t.action for t in self.transitions if t.from_state == state)
