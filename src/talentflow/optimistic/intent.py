"""
Intent records.

An intent is one user-triggered state change. Each intent runs its own small
state machine: idle -> applying -> settling -> committed | rolled-back.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IntentState(str, Enum):
    """Lifecycle of a single intent."""

    IDLE = "idle"
    APPLYING = "applying"
    SETTLING = "settling"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled-back"

    @property
    def is_terminal(self) -> bool:
        """Check whether the intent has settled."""
        return self in (IntentState.COMMITTED, IntentState.ROLLED_BACK)


class IntentKind(str, Enum):
    """What an intent does."""

    REORDER = "reorder"
    STAGE_MOVE = "stage-move"
    PATCH = "patch"


_TRANSITIONS: dict[IntentState, frozenset[IntentState]] = {
    IntentState.IDLE: frozenset({IntentState.APPLYING}),
    IntentState.APPLYING: frozenset({IntentState.SETTLING, IntentState.ROLLED_BACK}),
    IntentState.SETTLING: frozenset({IntentState.COMMITTED, IntentState.ROLLED_BACK}),
    IntentState.COMMITTED: frozenset(),
    IntentState.ROLLED_BACK: frozenset(),
}


@dataclass(eq=False)
class Intent:
    """
    A pending or settled state change.

    ``changes`` maps entity id to the field values the intent writes. While
    the intent is pending those values are layered over the committed record;
    ``snapshot`` is the rendered view immediately before application and is
    dropped on commit.
    """

    intent_id: int
    kind: IntentKind
    changes: dict[int, dict[str, Any]]
    state: IntentState = IntentState.IDLE
    snapshot: tuple[Any, ...] | None = None
    error: BaseException | None = None
    settled: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def entity_ids(self) -> frozenset[int]:
        """Get the ids of the entities the intent touches."""
        return frozenset(self.changes)

    def transition(self, new_state: IntentState) -> None:
        """
        Move to a new state.

        Raises:
            RuntimeError: If the transition is not part of the state machine.
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Intent {self.intent_id}: illegal transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        if new_state.is_terminal:
            self.settled.set()
