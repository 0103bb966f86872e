from __future__ import annotations

import logging
import threading

import pytest

from payrecon.domain.reconciliation import EventDispatcher
from tests.support.records import RecordingListener


@pytest.fixture
def dispatcher():
    dispatcher = EventDispatcher("test-engine", max_queue_size=8)
    yield dispatcher
    dispatcher.close()


def test_listeners_receive_events_in_order(dispatcher: EventDispatcher) -> None:
    first, second = RecordingListener(), RecordingListener()
    dispatcher.add_listener(first)
    dispatcher.add_listener(second)

    for message in ("Matching started", "Matched 3 records"):
        assert dispatcher.publish(message)
    assert dispatcher.flush(timeout=5)

    assert first.events == [
        ("test-engine", "Matching started"),
        ("test-engine", "Matched 3 records"),
    ]
    assert second.messages == first.messages


def test_adding_a_listener_twice_delivers_once(dispatcher: EventDispatcher) -> None:
    listener = RecordingListener()
    dispatcher.add_listener(listener)
    dispatcher.add_listener(listener)

    dispatcher.publish("Run started")
    dispatcher.flush(timeout=5)

    assert listener.messages == ["Run started"]
    assert dispatcher.listeners == (listener,)


def test_removed_listener_stops_receiving(dispatcher: EventDispatcher) -> None:
    listener = RecordingListener()
    dispatcher.add_listener(listener)

    assert dispatcher.remove_listener(listener)
    assert not dispatcher.remove_listener(listener)

    dispatcher.publish("Run started")
    dispatcher.flush(timeout=5)
    assert listener.messages == []


def test_failing_listener_is_logged_and_skipped(
    dispatcher: EventDispatcher, caplog: pytest.LogCaptureFixture
) -> None:
    class Broken:
        def on_event(self, engine_id: str, message: str) -> None:
            raise RuntimeError("listener exploded")

    healthy = RecordingListener()
    dispatcher.add_listener(Broken())
    dispatcher.add_listener(healthy)

    with caplog.at_level(logging.ERROR, logger="payrecon.domain.reconciliation.events"):
        dispatcher.publish("Run completed")
        dispatcher.flush(timeout=5)

    assert healthy.messages == ["Run completed"]
    assert "Event listener" in caplog.text
    assert "listener exploded" in caplog.text


def test_full_queue_drops_events_without_blocking(caplog: pytest.LogCaptureFixture) -> None:
    entered = threading.Event()
    release = threading.Event()

    def block(message: str) -> None:
        entered.set()
        release.wait(timeout=5)

    listener = RecordingListener(on_message=block)
    dispatcher = EventDispatcher("test-engine", max_queue_size=1)
    dispatcher.add_listener(listener)
    try:
        assert dispatcher.publish("first")
        assert entered.wait(timeout=5)

        with caplog.at_level(logging.WARNING, logger="payrecon.domain.reconciliation.events"):
            assert dispatcher.publish("second")
            assert not dispatcher.publish("third")

        assert dispatcher.dropped == 1
        assert "Event queue full, dropping event: third" in caplog.text
    finally:
        release.set()
        dispatcher.flush(timeout=5)
        dispatcher.close()

    assert listener.messages == ["first", "second"]


def test_closed_dispatcher_rejects_events() -> None:
    dispatcher = EventDispatcher("test-engine")
    dispatcher.close()
    dispatcher.close()

    assert not dispatcher.publish("late")


def test_queue_size_must_be_positive() -> None:
    with pytest.raises(ValueError, match="max_queue_size"):
        EventDispatcher("test-engine", max_queue_size=0)
