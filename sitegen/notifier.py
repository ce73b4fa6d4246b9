"""Hot-reload notifier for sitegen.

Fans out "a build finished" events to connected hot-reload clients. One loop
thread owns the subscriber set; register, unregister and broadcast requests
reach it through its inbox queue, so callers on other threads never touch
the set directly.

Subscribers are ``queue.Queue`` instances: the dev server's event-stream
handler registers one per client, blocks on it, and unregisters it when the
client goes away.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any

logger = logging.getLogger(__name__)

UPDATED = "updated"

_REGISTER = "register"
_UNREGISTER = "unregister"
_BROADCAST = "broadcast"
_FLUSH = "flush"
_STOP = "stop"


class Notifier:
    """Broadcasts events to registered subscriber queues.

    Attributes:
        name: Name of the loop thread.
    """

    def __init__(self, name: str = "sitegen-notifier"):
        self.name = name
        self._inbox: queue.Queue[tuple[str, Any]] = queue.Queue()
        self._subscribers: set[queue.Queue] = set()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._inbox.put((_STOP, None))
        self._thread.join(timeout=timeout)
        self._thread = None

    def register(self, subscriber: queue.Queue) -> None:
        self._inbox.put((_REGISTER, subscriber))

    def unregister(self, subscriber: queue.Queue) -> None:
        self._inbox.put((_UNREGISTER, subscriber))

    def broadcast(self, event: Any = UPDATED) -> None:
        self._inbox.put((_BROADCAST, event))

    @property
    def subscriber_count(self) -> int:
        """Subscribers known to the loop; call ``flush()`` first for a settled count."""
        return len(self._subscribers)

    def subscribe(self) -> queue.Queue:
        """Create and register a new subscriber queue."""
        subscriber: queue.Queue = queue.Queue()
        self.register(subscriber)
        return subscriber

    def flush(self, timeout: float = 5.0) -> None:
        """Wait until every request queued so far has been handled."""
        done = threading.Event()
        self._inbox.put((_FLUSH, done))
        done.wait(timeout)

    def _loop(self) -> None:
        while True:
            op, payload = self._inbox.get()
            if op == _STOP:
                return
            if op == _REGISTER:
                self._subscribers.add(payload)
            elif op == _UNREGISTER:
                self._subscribers.discard(payload)
            elif op == _FLUSH:
                payload.set()
            elif op == _BROADCAST:
                for subscriber in self._subscribers:
                    subscriber.put(payload)
                logger.debug("Broadcast %r to %d client(s)", payload, len(self._subscribers))
