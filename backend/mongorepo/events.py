"""Lifecycle events emitted by a repository and the listener registry."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict

from .update_set import UpdateSet

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    CREATED = "created"
    BATCH_CREATED = "batch_created"
    UPDATED = "updated"
    DELETED = "deleted"
    FETCHED = "fetched"


class RepositoryEvent(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: ClassVar[EventKind]


class CreatedEvent(RepositoryEvent):
    """A model was created on the data store."""

    kind: ClassVar[EventKind] = EventKind.CREATED

    id: Any
    model: Any


class BatchCreatedEvent(RepositoryEvent):
    """Several models were created by one batch insert."""

    kind: ClassVar[EventKind] = EventKind.BATCH_CREATED

    models: list[CreatedEvent]


class UpdatedEvent(RepositoryEvent):
    """A stored model was updated; ``affected`` is 0 or 1."""

    kind: ClassVar[EventKind] = EventKind.UPDATED

    id: Any
    change_set: UpdateSet
    affected: int


class DeletedEvent(RepositoryEvent):
    """A model was deleted by identity."""

    kind: ClassVar[EventKind] = EventKind.DELETED

    id: Any
    affected: int = 1


class MatchDeletedEvent(RepositoryEvent):
    """Models matching a query were deleted."""

    kind: ClassVar[EventKind] = EventKind.DELETED

    match: dict[str, Any]
    count: int


class FetchedEvent(RepositoryEvent):
    """A model was fetched by identity."""

    kind: ClassVar[EventKind] = EventKind.FETCHED

    id: Any
    model: Any


Listener = Callable[[RepositoryEvent], Any]


class RepositoryEvents:
    """Listeners registered on one repository.

    Listeners are called synchronously, in registration order. A listener that
    raises is logged and does not affect the operation that emitted the event.
    """

    def __init__(self) -> None:
        self._listeners: list[tuple[Listener, frozenset[EventKind] | None]] = []

    def add_listener(self, listener: Listener, *kinds: EventKind | str) -> Listener:
        """Register ``listener`` for ``kinds`` (all kinds when none given)."""
        if not callable(listener):
            raise TypeError(f"Listener must be callable: {listener!r}")
        selected = frozenset(EventKind(k) for k in kinds) if kinds else None
        self._listeners.append((listener, selected))
        return listener

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [
            (registered, kinds)
            for registered, kinds in self._listeners
            if registered != listener
        ]

    def listener_count(self, kind: EventKind | str | None = None) -> int:
        if kind is None:
            return len(self._listeners)
        kind = EventKind(kind)
        return sum(1 for _, kinds in self._listeners if kinds is None or kind in kinds)

    def emit(self, event: RepositoryEvent) -> None:
        for listener, kinds in list(self._listeners):
            if kinds is not None and event.kind not in kinds:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception(
                    f"Listener {listener!r} failed handling {event.kind.value} event"
                )
