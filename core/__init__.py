"""Core framework for HomeStats Hub.

Provides the building blocks every backend poller is made of.

Architecture:
    DataSource       -- one fetch/decode/publish cycle against one backend
    RefreshScheduler -- runs a DataSource on a fixed interval, skip-if-busy
    EventBus         -- thread-safe latest-value cache + subscriber fan-out
    Registry         -- maps source type names to DataSource classes
    Station          -- wires the above together (core.station)
"""

from core.event_bus import EventBus
from core.data_source import DataSource, SourceState
from core.registry import SOURCE_REGISTRY, register_source
from core.scheduler import RefreshScheduler

__all__ = [
    "EventBus",
    "DataSource",
    "SourceState",
    "SOURCE_REGISTRY",
    "register_source",
    "RefreshScheduler",
]
