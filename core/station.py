"""Station -- process wiring for HomeStats Hub.

Loads dashboard.yaml, builds the config sync manager, the event bus and
one DataSource + RefreshScheduler per configured source, and owns their
lifecycle. The web surface and the headless runner both drive a Station.
"""

import logging
import os
from typing import Dict, List, Optional

import requests
import yaml

from config import DATA_DIR, REPLICA_DIR, REPLICA_QUOTA_BYTES
from config_sync import ConfigSyncManager, LocalStore, ReplicaStore
from core.data_source import DataSource
from core.event_bus import EventBus
from core.registry import get_source_class
from core.scheduler import RefreshScheduler

import sources  # noqa: F401  (registers source types)

logger = logging.getLogger(__name__)


def load_config(path: str) -> Dict:
    """Load dashboard config from YAML file."""
    try:
        with open(path) as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file not found: %s", path)
        return {}


def get_builtin_config() -> Dict:
    """One source per backend, default intervals."""
    return {
        "sources": [
            {"id": "ha.entities", "type": "home_assistant"},
            {"id": "ha.dashboard", "type": "home_dashboard"},
            {"id": "ha.all", "type": "home_assistant_all"},
            {"id": "proxmox", "type": "proxmox"},
            {"id": "pihole", "type": "pihole"},
            {"id": "media", "type": "media"},
        ],
    }


class Station:
    """Sources, schedulers and the config manager for one process."""

    def __init__(
        self,
        config: Dict,
        settings: Optional[ConfigSyncManager] = None,
        session: Optional[requests.Session] = None,
    ):
        self._config = config if config.get("sources") else dict(config, **get_builtin_config())
        self.bus = EventBus()
        self.settings = settings or self._build_settings(self._config.get("storage") or {})
        self._session = session
        self.sources: Dict[str, DataSource] = {}
        self.schedulers: Dict[str, RefreshScheduler] = {}
        self._started = False
        self._create_sources()

    @classmethod
    def from_file(cls, path: str, **kwargs) -> "Station":
        config = load_config(path)
        if not config.get("sources"):
            logger.info("Using built-in configuration")
        return cls(config, **kwargs)

    @staticmethod
    def _build_settings(storage: Dict) -> ConfigSyncManager:
        data_dir = storage.get("data_dir", DATA_DIR)
        local = LocalStore(storage.get("local_db", os.path.join(data_dir, "homestats.db")))
        replica = ReplicaStore(
            storage.get("replica_dir", REPLICA_DIR),
            quota_bytes=int(storage.get("replica_quota_bytes", REPLICA_QUOTA_BYTES)),
        )
        return ConfigSyncManager(local, replica)

    def _create_sources(self):
        """Create a source and its scheduler per configured entry."""
        shared = {
            key: self._config[key]
            for key in ("light_groups", "dashboard_entities")
            if key in self._config
        }
        for src_cfg in self._config.get("sources", []):
            src_id = src_cfg.get("id", "")
            src_type = src_cfg.get("type", "")

            cls = get_source_class(src_type)
            if not cls:
                logger.warning("Unknown source type: %s (for %s)", src_type, src_id)
                continue
            if src_id in self.sources:
                logger.warning("Duplicate source id: %s", src_id)
                continue

            try:
                config = dict(shared, **src_cfg)
                source = cls(src_id, self.bus, config, settings=self.settings, session=self._session)
            except Exception as exc:
                logger.error("Failed to create source %s: %s", src_id, exc)
                continue
            self.sources[src_id] = source
            self.schedulers[src_id] = RefreshScheduler(source)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        if not self._started:
            self.settings.start()
            self.settings.subscribe(self._on_config_changed)
            self._started = True
        for scheduler in self.schedulers.values():
            scheduler.start()
        logger.info("Station: %d sources started", len(self.schedulers))

    def stop(self):
        for scheduler in self.schedulers.values():
            scheduler.stop()
        if self._started:
            self.settings.unsubscribe(self._on_config_changed)
            self._started = False
        self.settings.close()
        for source in self.sources.values():
            source.close()
        logger.info("Station stopped")

    def _on_config_changed(self, config):
        """New credentials: restart every scheduler so it fetches now."""
        logger.info("Config changed, restarting %d schedulers", len(self.schedulers))
        for scheduler in self.schedulers.values():
            scheduler.start()

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def config(self) -> Dict:
        return self._config

    def get_source(self, source_id: str) -> Optional[DataSource]:
        return self.sources.get(source_id)

    def source_ids(self) -> List[str]:
        return list(self.sources)
