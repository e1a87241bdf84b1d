"""View-model builders -- secondary state derived from snapshots.

Everything here is a pure function of the latest snapshot(s); nothing is
fetched or persisted. Renderers call these after each publish.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from config import DEFAULT_WEATHER_ICON, RUNNING_STATUSES, WEATHER_ICONS


# ---------------------------------------------------------------------------
# Light groups
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LightGroup:
    id: str
    name: str
    icon: str
    member_ids: Tuple[str, ...]
    on_count: int = 0

    @property
    def is_on(self) -> bool:
        return self.on_count > 0

    @property
    def status_text(self) -> str:
        if self.on_count == 0:
            return "All Off"
        if self.on_count == len(self.member_ids):
            return "All On"
        return f"{self.on_count} On"


def build_light_group(definition: Mapping, states: Mapping[str, str]) -> LightGroup:
    """Aggregate one group.

    Args:
        definition: {"id", "name", "icon", "entity_ids"} from config.
        states: entity_id -> raw state string. Missing members count as off.
    """
    members = tuple(definition.get("entity_ids", ()))
    on_count = sum(1 for entity_id in members if states.get(entity_id) == "on")
    return LightGroup(
        id=definition["id"],
        name=definition.get("name", definition["id"]),
        icon=definition.get("icon", "lightbulb.fill"),
        member_ids=members,
        on_count=on_count,
    )


def build_light_groups(definitions: Iterable[Mapping], entities: Iterable) -> Tuple[LightGroup, ...]:
    states = {e.entity_id: e.state for e in entities}
    return tuple(build_light_group(d, states) for d in definitions)


# ---------------------------------------------------------------------------
# Resource math
# ---------------------------------------------------------------------------

def memory_percent(used: Optional[float], maximum: Optional[float]) -> float:
    if not used or not maximum or maximum <= 0:
        return 0.0
    return used / maximum * 100


def cpu_percent(fraction: Optional[float]) -> float:
    return (fraction or 0) * 100


def bytes_to_mbps(bytes_per_sec: Optional[float]) -> float:
    return (bytes_per_sec or 0) * 8 / 1_000_000


def blocked_percent(total: int, blocked: int) -> float:
    """Share of DNS queries blocked, 0 when there were no queries."""
    if not total:
        return 0.0
    return blocked / total * 100


# ---------------------------------------------------------------------------
# Proxmox resources
# ---------------------------------------------------------------------------

KIND_BY_TYPE = {"qemu": "vm", "lxc": "container", "node": "node"}


@dataclass(frozen=True)
class ResourceSnapshot:
    id: str
    name: str
    kind: str            # vm | container | node | other
    running: bool
    cpu_fraction: float = 0.0
    mem_used: int = 0
    mem_max: int = 0

    @property
    def memory_percent(self) -> float:
        return memory_percent(self.mem_used, self.mem_max)

    @property
    def cpu_percent(self) -> float:
        return cpu_percent(self.cpu_fraction)


def classify(resource_type: str, status: str) -> Tuple[str, bool]:
    """(kind, running) for a cluster resource."""
    return KIND_BY_TYPE.get(resource_type, "other"), status in RUNNING_STATUSES


def resource_snapshot(resource) -> ResourceSnapshot:
    kind, running = classify(resource.type, resource.status)
    return ResourceSnapshot(
        id=resource.id,
        name=resource.display_name,
        kind=kind,
        running=running,
        cpu_fraction=resource.cpu or 0.0,
        mem_used=resource.mem or 0,
        mem_max=resource.maxmem or 0,
    )


@dataclass(frozen=True)
class ResourceBuckets:
    running_vms: Tuple[ResourceSnapshot, ...] = ()
    stopped_vms: Tuple[ResourceSnapshot, ...] = ()
    running_containers: Tuple[ResourceSnapshot, ...] = ()
    stopped_containers: Tuple[ResourceSnapshot, ...] = ()


def partition_resources(resources: Iterable) -> ResourceBuckets:
    """Split into running/stopped x VM/container, keeping input order."""
    buckets: Dict[Tuple[str, bool], List[ResourceSnapshot]] = {
        ("vm", True): [], ("vm", False): [],
        ("container", True): [], ("container", False): [],
    }
    for resource in resources:
        snap = resource_snapshot(resource)
        bucket = buckets.get((snap.kind, snap.running))
        if bucket is not None:
            bucket.append(snap)
    return ResourceBuckets(
        running_vms=tuple(buckets[("vm", True)]),
        stopped_vms=tuple(buckets[("vm", False)]),
        running_containers=tuple(buckets[("container", True)]),
        stopped_containers=tuple(buckets[("container", False)]),
    )


@dataclass(frozen=True)
class RRDSample:
    time: float
    cpu_percent: float
    memory_percent: float
    netin_mbps: float
    netout_mbps: float


def rrd_samples(points: Iterable) -> Tuple[RRDSample, ...]:
    return tuple(
        RRDSample(
            time=p.time,
            cpu_percent=cpu_percent(p.cpu),
            memory_percent=memory_percent(p.memused, p.memtotal),
            netin_mbps=bytes_to_mbps(p.netin),
            netout_mbps=bytes_to_mbps(p.netout),
        )
        for p in points
    )


# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WeatherData:
    location: str
    condition: str
    icon: str
    temperature: Optional[float] = None
    humidity: Optional[int] = None


def display_condition(state: str) -> str:
    """Hyphens to spaces, words capitalized: partly-cloudy -> Partly Cloudy."""
    return " ".join(word.capitalize() for word in state.replace("-", " ").split(" "))


def weather_icon(condition: str) -> str:
    return WEATHER_ICONS.get(condition.lower(), DEFAULT_WEATHER_ICON)


def weather_from_entity(state: str, attributes: Mapping, location: str) -> WeatherData:
    temperature = attributes.get("temperature")
    humidity = attributes.get("humidity")
    return WeatherData(
        location=location,
        condition=display_condition(state),
        icon=weather_icon(state),
        temperature=float(temperature) if isinstance(temperature, (int, float)) else None,
        humidity=int(humidity) if isinstance(humidity, (int, float)) else None,
    )


# ---------------------------------------------------------------------------
# 3D printers (Home Assistant Bambu entities)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PrinterStatus:
    name: str
    online: bool
    print_status: str
    progress: int
    remaining_time: str
    current_layer: int
    total_layers: int
    nozzle_temp: float
    nozzle_target_temp: float
    bed_temp: float
    bed_target_temp: float
    cooling_fan_speed: int
    task_name: str
    material_used: float
    active_tray: str
    ams_humidity: str
    camera_entity_id: Optional[str] = None


def format_remaining(minutes: int) -> str:
    if minutes <= 0:
        return "--"
    hours, mins = divmod(minutes, 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def _as_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def printer_status(entities: Iterable, printer) -> PrinterStatus:
    """Collect one printer's sensors by entity-id suffix.

    Sensors live under the printer's id; AMS sensors may use a separate
    ams_id.
    """
    entities = list(entities)
    ams_prefix = printer.ams_id or printer.printer_id

    def state(suffix: str, prefix: str = printer.printer_id) -> str:
        for e in entities:
            if prefix in e.entity_id and e.entity_id.endswith(suffix):
                return e.state
        return "unknown"

    def number(suffix: str) -> float:
        return _as_float(state(suffix))

    camera_id = f"camera.{printer.printer_id}_camera"
    has_camera = any(e.entity_id == camera_id for e in entities)

    return PrinterStatus(
        name=printer.name,
        online=state("online") == "on",
        print_status=state("print_status"),
        progress=int(number("print_progress")),
        remaining_time=format_remaining(int(number("remaining_time"))),
        current_layer=int(number("current_layer")),
        total_layers=int(number("total_layer_count")),
        nozzle_temp=number("nozzle_temperature"),
        nozzle_target_temp=number("nozzle_target_temperature"),
        bed_temp=number("bed_temperature"),
        bed_target_temp=number("bed_target_temperature"),
        cooling_fan_speed=int(number("cooling_fan_speed")),
        task_name=state("task_name"),
        material_used=number("total_usage"),
        active_tray=state("active_tray"),
        ams_humidity=state("ams_1_humidity_index", ams_prefix),
        camera_entity_id=camera_id if has_camera else None,
    )
