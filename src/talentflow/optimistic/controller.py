"""
Optimistic mutation controller.

Owns the rendered view of a collection and runs every state-changing intent
through snapshot -> apply locally -> dispatch -> commit or roll back.
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from talentflow.api.dispatcher import EndpointDispatcher, parse_payload
from talentflow.optimistic.intent import Intent, IntentKind, IntentState

T = TypeVar("T", bound=BaseModel)

ViewListener = Callable[[list[Any]], None]


class OptimisticController(ABC, Generic[T]):
    """
    Base class for views that mutate optimistically.

    The rendered view is the last committed records with every pending
    intent's changes layered on top, in intent order. Committing an intent
    folds its changes into the committed records; rolling one back drops its
    layer, so the view becomes what it would be had that intent never been
    issued. With nothing else in flight this is exactly the snapshot taken
    before the intent was applied.

    Intents that touch the same entity send their dispatcher calls one after
    the other, in the order they were issued, so the store sees writes in
    the same order the user made them. Each one is still applied to the view
    immediately.
    """

    #: Request model used to validate field patches.
    patch_model: type[BaseModel]

    def __init__(self, dispatcher: EndpointDispatcher) -> None:
        """
        Initialize the controller.

        Args:
            dispatcher: Endpoint dispatcher every intent is sent through.
        """
        self._logger = logging.getLogger(__name__)
        self._dispatcher = dispatcher
        self._committed: dict[int, T] = {}
        self._loaded_ids: list[int] = []
        self._pending: list[Intent] = []
        self._tails: dict[int, Intent] = {}  # entity id -> latest intent touching it
        self._intent_ids = itertools.count(1)
        self._listeners: list[ViewListener] = []
        self._view: tuple[T, ...] = ()

    @property
    def view(self) -> list[T]:
        """Get the rendered records, including unconfirmed changes."""
        return list(self._view)

    @property
    def pending_intents(self) -> list[Intent]:
        """Get the intents that have not settled yet, in issue order."""
        return list(self._pending)

    @property
    def is_idle(self) -> bool:
        """Check whether no intent is in flight."""
        return not self._pending

    def get(self, entity_id: int) -> T | None:
        """Get the rendered record of an entity, if it is loaded."""
        for record in self._view:
            if record.id == entity_id:
                return record
        return None

    def committed(self, entity_id: int) -> T | None:
        """Get the last confirmed record of an entity, if it is loaded."""
        return self._committed.get(entity_id)

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """
        Register a callback invoked with the new view after every change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def replace_records(self, records: Sequence[T]) -> None:
        """
        Replace the committed records with freshly loaded ones.

        Pending intents stay layered on top of the new records.
        """
        self._committed = {record.id: record for record in records}
        self._loaded_ids = [record.id for record in records]
        self._refresh()

    async def patch(self, entity_id: int, changes: Mapping[str, Any]) -> Intent:
        """
        Optimistically patch fields of one loaded entity.

        Raises:
            ValueError: If the entity is not loaded.
            ValidationError: If the patch is malformed.
        """
        if entity_id not in self._committed:
            raise ValueError(f"Entity {entity_id} is not loaded")
        patch = parse_payload(self.patch_model, changes)
        return await self._run(
            IntentKind.PATCH,
            {entity_id: patch.model_dump(exclude_unset=True)},
            lambda: self._send_patch(entity_id, patch.changes()),
        )

    @abstractmethod
    async def _send_patch(self, entity_id: int, changes: dict[str, Any]) -> Any:
        """Send a field patch through the dispatcher."""
        ...

    def _arrange(self, records: list[T]) -> list[T]:
        """Order the projected records for rendering."""
        return records

    def _overlay(self, record: T) -> T:
        """Apply transient, never-dispatched changes such as a drag preview."""
        return record

    def _project(self, record: T) -> T:
        for intent in self._pending:
            values = intent.changes.get(record.id)
            if values:
                record = record.model_copy(update=values)
        return self._overlay(record)

    def _compose(self) -> list[T]:
        return self._arrange([self._project(self._committed[entity_id]) for entity_id in self._loaded_ids])

    def _refresh(self) -> None:
        self._view = tuple(self._compose())
        view = list(self._view)
        for listener in list(self._listeners):
            listener(view)

    async def _run(
        self,
        kind: IntentKind,
        changes: dict[int, dict[str, Any]],
        send: Callable[[], Awaitable[Any]],
    ) -> Intent:
        """
        Drive one intent through its state machine.

        The changes are visible in the view (and to listeners) before the
        dispatcher call is issued.

        Returns:
            The committed intent.

        Raises:
            Exception: Whatever the dispatcher raised, after the rollback.
            asyncio.CancelledError: If the caller was cancelled, after the
                rollback.
        """
        intent = Intent(intent_id=next(self._intent_ids), kind=kind, changes=changes)
        intent.transition(IntentState.APPLYING)
        intent.snapshot = tuple(self._compose())

        predecessors = {self._tails[entity_id] for entity_id in intent.entity_ids if entity_id in self._tails}
        for entity_id in intent.entity_ids:
            self._tails[entity_id] = intent
        self._pending.append(intent)
        self._refresh()

        try:
            try:
                for predecessor in predecessors:
                    await predecessor.settled.wait()

                intent.transition(IntentState.SETTLING)
                await send()
            except BaseException as exc:
                # Cancellation (and timeouts built on it) rolls back like a failure.
                intent.error = exc
                self._pending.remove(intent)
                intent.transition(IntentState.ROLLED_BACK)
                self._refresh()
                self._logger.warning(f"Intent {intent.intent_id} ({kind.value}) rolled back: {exc!r}")
                raise

            self._pending.remove(intent)
            for entity_id, values in changes.items():
                if entity_id in self._committed:
                    self._committed[entity_id] = self._committed[entity_id].model_copy(update=values)
            intent.snapshot = None
            intent.transition(IntentState.COMMITTED)
            self._refresh()
            self._logger.debug(f"Intent {intent.intent_id} ({kind.value}) committed")
            return intent
        finally:
            for entity_id in intent.entity_ids:
                if self._tails.get(entity_id) is intent:
                    del self._tails[entity_id]
