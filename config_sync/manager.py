"""Config sync manager -- the one owner of the user config.

Constructed once by the station and handed to every poller (no module
global). Reads are lock-protected snapshots of an immutable model; every
edit writes through to the local store, then to the replica.

Conflict policy: when the replica reports an external change (server
change or initial sync) the replica copy replaces the in-memory and local
copies unconditionally. An account change triggers a full refresh(). A
replica write over quota leaves the local copy authoritative and surfaces
an error status.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Container, List, Optional

import requests

from config import CLOUD_KEY, CONNECTION_TEST_TIMEOUT, LOCAL_KEY
from core.auth import api_key_auth, bearer_token_auth, plex_token_auth
from core.errors import NotConfigured, QuotaExceeded, SourceError
from core.http import HTTPClient
from config_sync.stores import ChangeReason, LocalStore, ReplicaStore
from models.settings import HomeStatsConfig, ServiceType

logger = logging.getLogger(__name__)

IDLE = "idle"
SYNCING = "syncing"
SYNCED = "synced"
ERROR = "error"

PROXMOX_REACHABLE = range(200, 402)


@dataclass(frozen=True)
class SyncStatus:
    state: str = IDLE
    message: Optional[str] = None

    @classmethod
    def error(cls, message: str) -> "SyncStatus":
        return cls(ERROR, message)


@dataclass(frozen=True)
class ConnectionResult:
    """Outcome of test_connection(): a message on success, an error otherwise."""

    ok: bool
    message: str
    error: Optional[Exception] = None


class ConfigSyncManager:
    """Holds the current HomeStatsConfig and keeps both stores in step."""

    def __init__(
        self,
        local: LocalStore,
        replica: ReplicaStore,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.local = local
        self.replica = replica
        self.session = session or requests.Session()
        self._clock = clock
        self._lock = threading.RLock()
        self._subscribers: List[Callable] = []
        self._status = SyncStatus()
        self._last_sync: Optional[float] = None

        # local first, then replica, then defaults
        self._config = self._load_local() or self._load_replica() or HomeStatsConfig()
        self.replica.observe(self._handle_replica_change)

    # ─── Reads ───

    def current_config(self) -> HomeStatsConfig:
        with self._lock:
            return self._config

    @property
    def sync_status(self) -> SyncStatus:
        with self._lock:
            return self._status

    @property
    def last_sync(self) -> Optional[float]:
        with self._lock:
            return self._last_sync

    def is_configured(self, service: ServiceType) -> bool:
        return self.current_config().is_configured(service)

    # ─── Writes ───

    def set_config(self, config: HomeStatsConfig) -> bool:
        """Replace the config and write it through. False when unchanged."""
        with self._lock:
            if config == self._config:
                return False
            self._config = config
            self.save()
        self._notify(config)
        return True

    def save(self):
        """Write the current config to local, then to the replica."""
        with self._lock:
            data = self._config.to_json()
            self.local.set(LOCAL_KEY, data)
            self._set_status(SyncStatus(SYNCING))
            try:
                self.replica.set(CLOUD_KEY, data)
            except QuotaExceeded:
                self._set_status(SyncStatus.error("Replica storage quota exceeded"))
                return
            except OSError as exc:
                logger.error("Replica write failed: %s", exc)
                self._set_status(SyncStatus.error(f"Replica write failed: {exc}"))
                return
            self._last_sync = self._clock()
            self._set_status(SyncStatus(SYNCED))

    def refresh(self):
        """Force-pull the replica; a decodable copy replaces local."""
        self._set_status(SyncStatus(SYNCING))
        self.replica.synchronize()
        remote = self._load_replica()
        if remote is None:
            self._set_status(SyncStatus(IDLE))
            return
        self._apply_remote(remote)

    def _apply_remote(self, remote: HomeStatsConfig):
        with self._lock:
            changed = remote != self._config
            self._config = remote
            self.local.set(LOCAL_KEY, remote.to_json())
            self._last_sync = self._clock()
            self._set_status(SyncStatus(SYNCED))
        if changed:
            logger.info("Config replaced from replica")
            self._notify(remote)

    def _handle_replica_change(self, reason: ChangeReason, keys: List[str]):
        if reason in (ChangeReason.SERVER_CHANGE, ChangeReason.INITIAL_SYNC):
            if CLOUD_KEY not in keys:
                return
            remote = self._load_replica()
            if remote is not None:
                self._apply_remote(remote)
        elif reason is ChangeReason.QUOTA_VIOLATION:
            self._set_status(SyncStatus.error("Replica storage quota exceeded"))
        elif reason is ChangeReason.ACCOUNT_CHANGE:
            self.refresh()

    def _set_status(self, status: SyncStatus):
        with self._lock:
            self._status = status

    # ─── Loading ───

    def _load_local(self) -> Optional[HomeStatsConfig]:
        return HomeStatsConfig.from_json(self.local.get(LOCAL_KEY))

    def _load_replica(self) -> Optional[HomeStatsConfig]:
        return HomeStatsConfig.from_json(self.replica.get(CLOUD_KEY))

    # ─── Subscribers ───

    def subscribe(self, callback: Callable):
        """callback(config) after every change, on the changing thread."""
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable):
        with self._lock:
            self._subscribers = [cb for cb in self._subscribers if cb != callback]

    def _notify(self, config: HomeStatsConfig):
        with self._lock:
            callbacks = list(self._subscribers)
        for cb in callbacks:
            try:
                cb(config)
            except Exception as exc:
                logger.error("Config subscriber error: %s", exc)

    # ─── Lifecycle ───

    def start(self):
        """Initial replica scan, then watch it in the background."""
        self.replica.synchronize()
        self.replica.start()

    def stop(self):
        self.replica.stop()

    def close(self):
        """Stop watching and release the local database."""
        self.stop()
        self.local.close()

    # ─── Connection tests ───

    def test_connection(self, service: ServiceType) -> ConnectionResult:
        """One bounded GET against a cheap endpoint of `service`.

        Unconfigured services fail with NotConfigured without touching
        the network.
        """
        config = self.current_config()
        block = config.service(service)
        if block is None or not getattr(block, "url", ""):
            exc = NotConfigured(service.display_name)
            return ConnectionResult(False, str(exc), exc)

        verify = not config.allow_insecure_certs
        ok_statuses: Container[int] = (200,)
        params = None
        auth = None
        success = f"Connected to {service.display_name}"

        if service is ServiceType.HOME_ASSISTANT:
            path, auth = "api/", bearer_token_auth(block.token)
        elif service is ServiceType.PLEX:
            path, auth = "", plex_token_auth(block.token)
        elif service in (ServiceType.SONARR, ServiceType.RADARR):
            path, auth = "api/v3/system/status", api_key_auth(block.api_key)
        elif service is ServiceType.SABNZBD:
            path = "api"
            params = {"mode": "version", "output": "json", "apikey": block.api_key}
        elif service is ServiceType.PROXMOX:
            # reachability only, before the token is known-good
            path, verify, ok_statuses = "api2/json/version", False, PROXMOX_REACHABLE
            success = "Proxmox server reachable"
        else:
            path = "admin/api.php"

        client = HTTPClient(
            block.url,
            session=self.session,
            auth=auth,
            timeout=CONNECTION_TEST_TIMEOUT,
            verify=verify,
        )
        try:
            client.get(path, params=params, ok_statuses=ok_statuses)
        except SourceError as exc:
            logger.info("Connection test for %s failed: %s", service.display_name, exc)
            return ConnectionResult(False, str(exc), exc)
        return ConnectionResult(True, success)
