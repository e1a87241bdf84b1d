"""Thread-safe state bus for HomeStats Hub.

Pollers publish an immutable SourceState per topic from their scheduler
threads. The bus remembers the latest value per topic (pull access for
the web surface), calls direct subscribers, and fans out to SSE clients.
"""

import logging
import threading
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventBus:
    """Latest-value cache plus subscriber fan-out. No UI dependency."""

    def __init__(self):
        self._latest: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._sse_clients: List[Queue] = []
        self._subscribers: Dict[str, List[Callable]] = {}

    def publish(self, topic: str, payload: Any):
        """Push data from any thread. Thread-safe."""
        with self._lock:
            self._latest[topic] = payload
            clients = list(self._sse_clients)
            callbacks = list(self._subscribers.get(topic, []))

        # Notify SSE clients (non-blocking)
        dead = []
        for q in clients:
            try:
                q.put_nowait((topic, payload))
            except Full:
                dead.append(q)
        if dead:
            with self._lock:
                for q in dead:
                    if q in self._sse_clients:
                        self._sse_clients.remove(q)

        # Direct subscribers (called from publisher thread)
        for cb in callbacks:
            try:
                cb(payload)
            except Exception as exc:
                logger.error("EventBus callback error [%s]: %s", topic, exc)

    def subscribe(self, topic: str, callback: Callable):
        """Register a callback for a topic."""
        with self._lock:
            self._subscribers.setdefault(topic, []).append(callback)

    def unsubscribe(self, topic: str, callback: Callable):
        """Remove a callback."""
        with self._lock:
            if topic in self._subscribers:
                self._subscribers[topic] = [
                    cb for cb in self._subscribers[topic] if cb != callback
                ]

    def get_latest(self, topic: Optional[str] = None) -> Any:
        """Get latest payload for a topic, or all topics."""
        with self._lock:
            if topic:
                return self._latest.get(topic)
            return dict(self._latest)

    def sse_stream(self, keepalive: float = 30.0):
        """Generator for SSE clients. Yields (topic, payload) tuples.

        Yields ("keepalive", None) when nothing was published for
        `keepalive` seconds.
        """
        q = Queue(maxsize=100)
        with self._lock:
            self._sse_clients.append(q)
        try:
            while True:
                try:
                    yield q.get(timeout=keepalive)
                except Empty:
                    yield "keepalive", None
        finally:
            with self._lock:
                if q in self._sse_clients:
                    self._sse_clients.remove(q)
