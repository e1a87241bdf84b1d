"""Data source abstraction for HomeStats Hub.

A DataSource runs one fetch-decode-normalize-publish cycle against one
backend. Subclasses implement fetch(), which returns a new immutable
snapshot or raises a SourceError. refresh() wraps it: on success the new
snapshot replaces the old one wholesale; on failure the previous snapshot
is kept and the error is recorded next to it. Either way a SourceState
is published to the EventBus under self.topic.

Scheduling lives in core.scheduler.RefreshScheduler.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import requests

from config import DEFAULT_INTERVAL, REFRESH_INTERVALS
from core.errors import SourceError
from core.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceState:
    """What a poller publishes: last good snapshot + last error."""

    snapshot: Any = None
    error: Optional[Exception] = None
    last_updated: Optional[float] = None
    last_error_at: Optional[float] = None
    is_loading: bool = False

    @property
    def has_error(self) -> bool:
        return self.error is not None


class DataSource(ABC):
    """Base class for all backend pollers.

    Args:
        source_id: unique id, also the bus topic.
        bus: EventBus the states are published on.
        config: per-source options from dashboard.yaml.
        settings: ConfigSyncManager holding the user's credentials.
        session: optional requests.Session (tests inject a fake).
    """

    source_type = ""

    def __init__(
        self,
        source_id: str,
        bus: EventBus,
        config: Dict,
        settings=None,
        session: Optional[requests.Session] = None,
    ):
        self.source_id = source_id
        self.bus = bus
        self.config = config
        self.settings = settings
        self.topic = source_id  # subscribers use this to listen
        self.interval = float(config.get(
            "interval", REFRESH_INTERVALS.get(self.source_type, DEFAULT_INTERVAL)
        ))
        self.session = session or requests.Session()
        self._state = SourceState()
        self._state_lock = threading.Lock()
        self._refresh_lock = threading.Lock()

    @property
    def state(self) -> SourceState:
        with self._state_lock:
            return self._state

    @property
    def snapshot(self) -> Any:
        return self.state.snapshot

    @property
    def busy(self) -> bool:
        return self._refresh_lock.locked()

    def refresh(self, skip_if_busy: bool = False) -> Optional[SourceState]:
        """Run one cycle and publish the result.

        Returns the published state, or None when skip_if_busy is set and
        another cycle for this source is still running.
        """
        if not self._refresh_lock.acquire(blocking=not skip_if_busy):
            logger.debug("DataSource %s busy, skipping cycle", self.source_id)
            return None
        try:
            self._publish(replace(self.state, is_loading=True))
            started = time.time()
            try:
                snapshot = self.fetch()
            except SourceError as exc:
                logger.warning("DataSource %s fetch error: %s", self.source_id, exc)
                new_state = replace(
                    self.state, error=exc, last_error_at=time.time(), is_loading=False
                )
            except Exception as exc:
                logger.exception("DataSource %s unexpected error", self.source_id)
                new_state = replace(
                    self.state, error=exc, last_error_at=time.time(), is_loading=False
                )
            else:
                new_state = SourceState(snapshot=snapshot, last_updated=time.time())
                logger.debug(
                    "DataSource %s refreshed in %.2fs", self.source_id, time.time() - started
                )
            self._publish(new_state)
            return new_state
        finally:
            self._refresh_lock.release()

    def _publish(self, state: SourceState):
        with self._state_lock:
            self._state = state
        self.bus.publish(self.topic, state)

    @abstractmethod
    def fetch(self) -> Any:
        """Fetch and normalize one snapshot. Runs on a scheduler thread.

        Raises:
            SourceError: the cycle failed; the previous snapshot is kept.
        """
        ...

    def user_config(self):
        """Current user config from the injected settings manager."""
        if self.settings is None:
            raise RuntimeError(f"DataSource {self.source_id} has no settings manager")
        return self.settings.current_config()

    def verify_tls(self) -> bool:
        return not self.user_config().allow_insecure_certs

    def view_model(self) -> Any:
        """Derived presentation state for the latest snapshot, or None."""
        return None

    def close(self):
        """Release resources. Override if needed."""
        self.session.close()
