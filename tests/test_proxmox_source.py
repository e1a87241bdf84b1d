from core.errors import HTTPStatusError, NotConfigured
from models.proxmox import ProxmoxSnapshot
from sources.proxmox_source import ProxmoxSource
from conftest import FakeSettings, make_config

PVE = "https://pve.local:8006"
RESOURCES = f"{PVE}/api2/json/cluster/resources"
STATUS = f"{PVE}/api2/json/nodes/pve/status"
RRD = f"{PVE}/api2/json/nodes/pve/rrddata"

RESOURCES_PAYLOAD = {"data": [
    {"id": "node/pve", "type": "node", "status": "online", "node": "pve"},
    {"id": "lxc/200", "type": "lxc", "status": "running", "name": "pihole", "vmid": 200},
    {"id": "qemu/101", "type": "qemu", "status": "stopped", "name": "win", "vmid": 101},
    {"id": "qemu/9000", "type": "qemu", "status": "stopped", "name": "tmpl", "vmid": 9000, "template": 1},
    {"id": "storage/pve/local", "type": "storage", "status": "available"},
    {"id": "qemu/100", "type": "qemu", "status": "running", "name": "web", "vmid": 100,
     "cpu": 0.1, "mem": 1024, "maxmem": 4096},
    {"type": "qemu"},
]}

STATUS_PAYLOAD = {"data": {
    "cpu": 0.12,
    "memory": {"used": 8, "total": 32, "free": 24},
    "uptime": 86400,
    "cpuinfo": {"model": "Ryzen", "cpus": 16, "cores": 8, "sockets": 1},
    "loadavg": ["0.5", "0.4", "0.3"],
}}

RRD_PAYLOAD = {"data": [{"time": 1700000000, "cpu": 0.2, "netin": 125000}]}


def _source(bus, session, node=None, nodes=("pve",)) -> ProxmoxSource:
    settings = FakeSettings(make_config(proxmox={
        "url": PVE, "username": "root@pam!hub", "password": "tok", "nodes": list(nodes),
    }))
    config = {"node": node} if node else {}
    return ProxmoxSource("proxmox", bus, config, settings=settings, session=session)


def _routes(session) -> None:
    session.add("GET", RESOURCES, payload=RESOURCES_PAYLOAD)
    session.add("GET", STATUS, payload=STATUS_PAYLOAD)
    session.add("GET", RRD, payload=RRD_PAYLOAD)


def test_fetch_joins_three_calls(bus, session) -> None:
    _routes(session)
    state = _source(bus, session).refresh()

    assert state.error is None
    snapshot = state.snapshot
    assert isinstance(snapshot, ProxmoxSnapshot)
    assert [r.vmid for r in snapshot.resources] == [None, 100, 101, 200]
    assert snapshot.node_status.memory.total == 32
    assert len(snapshot.rrd) == 1

    assert {c["url"] for c in session.calls} == {RESOURCES, STATUS, RRD}
    assert session.calls_to(RRD)[0]["params"] == {"timeframe": "day"}
    for call in session.calls:
        assert call["verify"] is False
        assert call["headers"]["Authorization"] == "PVEAPIToken=root@pam!hub=tok"


def test_storage_entries_are_kept_with_missing_vmid_first(bus, session) -> None:
    _routes(session)
    snapshot = _source(bus, session).refresh().snapshot
    assert snapshot.resources[0].type == "storage"
    assert all(not r.is_node and not r.is_template for r in snapshot.resources)


def test_one_failed_call_aborts_cycle(bus, session) -> None:
    _routes(session)
    source = _source(bus, session)
    first = source.refresh().snapshot
    session.add("GET", STATUS, status=500)

    state = source.refresh()
    assert isinstance(state.error, HTTPStatusError)
    assert state.error.status_code == 500
    assert state.snapshot is first


def test_null_rrd_data_is_empty(bus, session) -> None:
    _routes(session)
    session.add("GET", RRD, payload={"data": None})
    assert _source(bus, session).refresh().snapshot.rrd == ()


def test_configured_node_overrides_first_node(bus, session) -> None:
    session.add("GET", RESOURCES, payload=RESOURCES_PAYLOAD)
    _source(bus, session, node="pve2").refresh()
    assert f"{PVE}/api2/json/nodes/pve2/status" in {c["url"] for c in session.calls}


def test_no_node_is_not_configured(bus, session) -> None:
    state = _source(bus, session, nodes=()).refresh()
    assert isinstance(state.error, NotConfigured)
    assert session.calls == []


def test_view_model_partitions_guests(bus, session) -> None:
    _routes(session)
    source = _source(bus, session)
    source.refresh()
    view = source.view_model()

    assert [r.name for r in view["resources"].running_vms] == ["web"]
    assert [r.name for r in view["resources"].stopped_vms] == ["win"]
    assert [r.name for r in view["resources"].running_containers] == ["pihole"]
    assert view["node"]["memory_percent"] == 25.0
    assert view["rrd"][0].netin_mbps == 1.0
