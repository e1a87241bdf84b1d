"""Proxmox VE API models (api2/json)."""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from config import RUNNING_STATUSES


class _ProxmoxModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ProxmoxResource(_ProxmoxModel):
    """Entry of /cluster/resources (qemu, lxc, node, storage, ...)."""

    id: str
    type: str
    node: str = ""
    status: str = ""
    name: Optional[str] = None
    vmid: Optional[int] = None
    cpu: Optional[float] = None
    mem: Optional[int] = None
    maxmem: Optional[int] = None
    maxcpu: Optional[int] = None
    uptime: Optional[int] = None
    template: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self.status in RUNNING_STATUSES

    @property
    def is_node(self) -> bool:
        return self.type == "node"

    @property
    def is_template(self) -> bool:
        return (self.template or 0) == 1

    @property
    def display_name(self) -> str:
        return self.name or "Unknown"


class RRDPoint(_ProxmoxModel):
    """One sample of /nodes/{node}/rrddata. Rates are bytes/sec."""

    time: float
    cpu: Optional[float] = None
    memused: Optional[float] = None
    memtotal: Optional[float] = None
    netin: Optional[float] = None
    netout: Optional[float] = None
    loadavg: Optional[float] = None
    rootused: Optional[float] = None
    roottotal: Optional[float] = None
    iowait: Optional[float] = None


class MemoryInfo(_ProxmoxModel):
    used: int
    total: int
    free: int


class CPUInfo(_ProxmoxModel):
    model: str
    cpus: int
    cores: int
    sockets: int


class NodeStatus(_ProxmoxModel):
    cpu: float
    memory: MemoryInfo
    uptime: int
    cpuinfo: CPUInfo
    loadavg: List[str] = []
    kversion: str = ""
    pveversion: str = ""


@dataclass(frozen=True)
class ProxmoxSnapshot:
    resources: Tuple[ProxmoxResource, ...] = ()
    node_status: Optional[NodeStatus] = None
    rrd: Tuple[RRDPoint, ...] = ()
