"""Best-effort, asynchronous delivery of engine events to listeners."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Protocol

log = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


class EventListener(Protocol):
    def on_event(self, engine_id: str, message: str) -> None: ...


_STOP = object()


class EventDispatcher:
    """Fan events out to listeners from a dedicated worker thread.

    ``publish`` never blocks: when the bounded queue is full the event is
    dropped and a warning is logged. A listener that raises is logged and
    skipped; remaining listeners still receive the event.
    """

    def __init__(self, engine_id: str, *, max_queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be positive")
        self._engine_id = engine_id
        self._queue: queue.Queue[object] = queue.Queue(max_queue_size)
        self._listeners: list[EventListener] = []
        self._listeners_lock = threading.Lock()
        self._closed = False
        self._dropped = 0
        self._worker = threading.Thread(
            target=self._drain,
            name=f"payrecon-events-{engine_id}",
            daemon=True,
        )
        self._worker.start()

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def listeners(self) -> tuple[EventListener, ...]:
        with self._listeners_lock:
            return tuple(self._listeners)

    def add_listener(self, listener: EventListener) -> None:
        with self._listeners_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> bool:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                return True
        return False

    def publish(self, message: str) -> bool:
        """Queue ``message`` for delivery; return ``False`` if it was dropped."""

        if self._closed:
            log.debug("Dispatcher closed, dropping event: %s", message)
            return False
        try:
            self._queue.put_nowait(message)
        except queue.Full:
            self._dropped += 1
            log.warning("Event queue full, dropping event: %s", message)
            return False
        return True

    def flush(self, timeout: float | None = None) -> bool:
        """Block until every queued event has been delivered or ``timeout`` passes."""

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                if deadline is None:
                    self._queue.all_tasks_done.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def close(self, *, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        if wait:
            self._worker.join()

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._deliver(str(item))
            finally:
                self._queue.task_done()

    def _deliver(self, message: str) -> None:
        for listener in self.listeners:
            try:
                listener.on_event(self._engine_id, message)
            except Exception:
                log.exception("Event listener %r failed for event: %s", listener, message)
