"""
Workflow types (``payroll_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects describing a lifecycle state machine: named guards,
allowed transitions and the workflow that groups them.  The payroll run
lifecycle is declared with these types in ``payroll_services.workflows``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Guards are
descriptive only; the service evaluates them.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* At most one transition per (from_state, action).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """An allowed move between two states, triggered by ``action``."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    requires_reason: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
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
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            for state in (t.from_state, t.to_state):
                if state not in self.states:
                    raise ValueError(
                        f"Workflow {self.name}: transition {t.action!r} "
                        f"references unknown state {state!r}"
                    )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    f"has outgoing transition {t.action!r}"
                )
            if (t.from_state, t.action) in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate action {t.action!r} from {t.from_state!r}"
                )
            seen.add((t.from_state, t.action))

    def find_transition(self, from_state: str, action: str) -> Transition | None:
        """The transition for action from from_state, or None if not allowed."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Actions allowed from state, in declaration order."""
        return tuple(t.action for t in self.transitions if t.from_state == state)
