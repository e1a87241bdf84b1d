"""Pi-hole v6 API models."""

from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class _PiholeModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Queries(_PiholeModel):
    total: int = 0
    blocked: int = 0
    percent_blocked: float = 0.0
    unique_domains: int = 0
    forwarded: int = 0
    cached: int = 0


class Clients(_PiholeModel):
    active: int = 0
    total: int = 0


class Gravity(_PiholeModel):
    domains_being_blocked: int = 0
    last_update: int = 0


class Summary(_PiholeModel):
    """/api/stats/summary"""

    queries: Queries
    clients: Clients = Clients()
    gravity: Gravity = Gravity()


class HistoryPoint(_PiholeModel):
    """One bucket of /api/history."""

    timestamp: int
    total: int = 0
    cached: int = 0
    blocked: int = 0
    forwarded: int = 0


@dataclass(frozen=True)
class PiholeSnapshot:
    """stale names the slices that failed in the latest cycle."""

    summary: Optional[Summary] = None
    history: Tuple[HistoryPoint, ...] = ()
    stale: FrozenSet[str] = frozenset()
