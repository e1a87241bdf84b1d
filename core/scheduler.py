"""Per-source refresh scheduler.

start() fetches once immediately, then every `interval` seconds on a
daemon thread. stop() cancels the timer; a cycle already in flight runs
to completion and publishes, it is just not rescheduled.

Ticks go through DataSource.refresh(skip_if_busy=True), so a tick that
lands while the previous cycle is still running is dropped. The first
fetch after start() is never dropped: it waits for the running cycle.
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Drives one DataSource on a fixed interval."""

    def __init__(self, source, interval: Optional[float] = None):
        self.source = source
        self.interval = interval if interval is not None else source.interval
        self._lock = threading.Lock()
        self._stop: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._stop is not None and not self._stop.is_set()

    def start(self, interval: Optional[float] = None):
        """(Re)start polling. Calling twice leaves exactly one timer."""
        with self._lock:
            self._cancel()
            if interval is not None:
                self.interval = interval
            stop = threading.Event()
            self._stop = stop
            self._thread = threading.Thread(
                target=self._run,
                args=(stop, self.interval),
                daemon=True,
                name=f"sched-{self.source.source_id}",
            )
            self._thread.start()
        logger.info(
            "Scheduler %s started (%.1fs interval)", self.source.source_id, self.interval
        )

    def stop(self):
        """Cancel the timer. Safe to call any number of times."""
        with self._lock:
            was_running = self._stop is not None
            self._cancel()
        if was_running:
            logger.info("Scheduler %s stopped", self.source.source_id)

    def _cancel(self):
        if self._stop is not None:
            self._stop.set()
        self._stop = None
        self._thread = None

    def _run(self, stop: threading.Event, interval: float):
        """Immediate fetch, then one tick per interval until stopped."""
        if stop.is_set():
            return
        self.source.refresh()
        while not stop.wait(max(interval, 0.01)):
            self.source.refresh(skip_if_busy=True)
