"""Proxmox VE source.

Three concurrent GETs joined before publish:
    api2/json/cluster/resources
    api2/json/nodes/{node}/status
    api2/json/nodes/{node}/rrddata?timeframe=day

Any failed sub-fetch aborts the cycle; the previous snapshot stays.
Proxmox hosts ship self-signed certificates, so TLS verification is
always off for this source.

Config example (in dashboard.yaml):
    sources:
      - id: "proxmox"
        type: "proxmox"
        interval: 30
        node: "pve"        # defaults to the first configured node
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Tuple

from pydantic import ValidationError

from config import RRD_TIMEFRAME
from core.auth import proxmox_token_auth
from core.data_source import DataSource
from core.errors import DecodeError, NotConfigured
from core.http import HTTPClient
from core.registry import register_source
from core.view_models import cpu_percent, memory_percent, partition_resources, rrd_samples
from models.proxmox import NodeStatus, ProxmoxResource, ProxmoxSnapshot, RRDPoint
from models.settings import ServiceType

logger = logging.getLogger(__name__)


def _data(payload: Any) -> Any:
    """Unwrap the {"data": ...} envelope every api2/json answer uses."""
    if not isinstance(payload, dict) or "data" not in payload:
        raise DecodeError("Missing 'data' envelope")
    return payload["data"]


def decode_resources(payload: Any) -> Tuple[ProxmoxResource, ...]:
    """Guests only, sorted by vmid (missing vmid sorts as 0)."""
    items = _data(payload)
    if not isinstance(items, list):
        raise DecodeError("Expected a list of cluster resources")

    resources: List[ProxmoxResource] = []
    for raw in items:
        try:
            resource = ProxmoxResource.model_validate(raw)
        except ValidationError as exc:
            logger.debug("Dropping undecodable resource: %s", exc)
            continue
        if resource.is_node or resource.is_template:
            continue
        resources.append(resource)
    resources.sort(key=lambda r: r.vmid or 0)
    return tuple(resources)


def decode_node_status(payload: Any) -> NodeStatus:
    try:
        return NodeStatus.model_validate(_data(payload))
    except ValidationError as exc:
        raise DecodeError(f"Unexpected node status: {exc}") from exc


def decode_rrd(payload: Any) -> Tuple[RRDPoint, ...]:
    items = _data(payload)
    if items is None:
        return ()
    if not isinstance(items, list):
        raise DecodeError("Expected a list of RRD samples")
    points = []
    for raw in items:
        try:
            points.append(RRDPoint.model_validate(raw))
        except ValidationError:
            continue
    return tuple(points)


@register_source("proxmox")
class ProxmoxSource(DataSource):
    """Cluster guests, node status and the node's RRD history."""

    def client(self) -> Tuple[HTTPClient, str]:
        pve = self.user_config().proxmox
        if pve is None or not pve.url:
            raise NotConfigured(ServiceType.PROXMOX.display_name)
        node = self.config.get("node") or (pve.nodes[0] if pve.nodes else None)
        if not node:
            raise NotConfigured(f"{ServiceType.PROXMOX.display_name} node")
        client = HTTPClient(
            pve.url,
            session=self.session,
            auth=proxmox_token_auth(pve.username, pve.password),
            verify=False,
        )
        return client, node

    def fetch(self) -> ProxmoxSnapshot:
        client, node = self.client()
        with ThreadPoolExecutor(max_workers=3) as pool:
            resources = pool.submit(client.get_json, "api2/json/cluster/resources")
            status = pool.submit(client.get_json, f"api2/json/nodes/{node}/status")
            rrd = pool.submit(
                client.get_json,
                f"api2/json/nodes/{node}/rrddata",
                params={"timeframe": RRD_TIMEFRAME},
            )
            # result() re-raises, so one failed call fails the cycle
            return ProxmoxSnapshot(
                resources=decode_resources(resources.result()),
                node_status=decode_node_status(status.result()),
                rrd=decode_rrd(rrd.result()),
            )

    def view_model(self):
        snapshot = self.snapshot
        if not isinstance(snapshot, ProxmoxSnapshot):
            return None
        node = None
        if snapshot.node_status is not None:
            status = snapshot.node_status
            node = {
                "cpu_percent": cpu_percent(status.cpu),
                "memory_percent": memory_percent(status.memory.used, status.memory.total),
                "uptime": status.uptime,
            }
        return {
            "resources": partition_resources(snapshot.resources),
            "node": node,
            "rrd": rrd_samples(snapshot.rrd),
        }
