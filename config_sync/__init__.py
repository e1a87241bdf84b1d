"""User config persistence and replication.

    stores   -- LocalStore (SQLite) and ReplicaStore (shared directory)
    manager  -- ConfigSyncManager, the single owner of HomeStatsConfig
"""

from config_sync.manager import ConfigSyncManager, ConnectionResult, SyncStatus
from config_sync.stores import ChangeReason, LocalStore, ReplicaStore

__all__ = [
    "ConfigSyncManager",
    "ConnectionResult",
    "SyncStatus",
    "ChangeReason",
    "LocalStore",
    "ReplicaStore",
]
