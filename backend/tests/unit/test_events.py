"""Tests for lifecycle event models and the listener registry."""

import logging

import pydantic
import pytest

from mongorepo.events import (
    CreatedEvent,
    DeletedEvent,
    EventKind,
    FetchedEvent,
    MatchDeletedEvent,
    RepositoryEvents,
    UpdatedEvent,
)
from mongorepo.update_set import UpdateSet


def test_event_kinds() -> None:
    assert CreatedEvent(id="1", model={}).kind is EventKind.CREATED
    assert UpdatedEvent(id="1", change_set=UpdateSet(), affected=1).kind is EventKind.UPDATED
    assert DeletedEvent(id="1").kind is EventKind.DELETED
    assert MatchDeletedEvent(match={"a": 1}, count=2).kind is EventKind.DELETED
    assert FetchedEvent(id="1", model={}).kind is EventKind.FETCHED


def test_events_are_immutable() -> None:
    event = CreatedEvent(id="1", model={"a": 1})
    with pytest.raises(pydantic.ValidationError):
        event.id = "2"


def test_listeners_receive_events_in_registration_order() -> None:
    events = RepositoryEvents()
    calls = []
    events.add_listener(lambda e: calls.append(("first", e.id)))
    events.add_listener(lambda e: calls.append(("second", e.id)))

    events.emit(FetchedEvent(id="7", model={}))
    assert calls == [("first", "7"), ("second", "7")]


def test_listener_filtered_by_kind() -> None:
    events = RepositoryEvents()
    created = []
    events.add_listener(created.append, EventKind.CREATED, "batch_created")

    events.emit(FetchedEvent(id="1", model={}))
    events.emit(CreatedEvent(id="2", model={}))
    assert [e.id for e in created] == ["2"]
    assert events.listener_count("fetched") == 0
    assert events.listener_count(EventKind.CREATED) == 1


def test_remove_listener() -> None:
    events = RepositoryEvents()
    seen = []
    events.add_listener(seen.append)
    events.remove_listener(seen.append)

    events.emit(DeletedEvent(id="1"))
    assert seen == []
    assert events.listener_count() == 0


def test_failing_listener_is_logged_and_others_still_run(caplog) -> None:
    events = RepositoryEvents()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    events.add_listener(broken)
    events.add_listener(seen.append)

    with caplog.at_level(logging.ERROR, logger="mongorepo.events"):
        events.emit(DeletedEvent(id="1"))

    assert len(seen) == 1
    assert "failed handling deleted event" in caplog.text


def test_non_callable_listener_is_rejected() -> None:
    with pytest.raises(TypeError):
        RepositoryEvents().add_listener("not callable")
