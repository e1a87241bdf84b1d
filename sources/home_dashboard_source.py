"""Home dashboard source.

Same /api/states fetch as HomeAssistantSource, but unfiltered and reduced
to the handful of things the home page shows: garage door state and
camera, climate temperatures, weather cards and room light groups.

Config example (in dashboard.yaml):
    sources:
      - id: "ha.dashboard"
        type: "home_dashboard"
        interval: 10

Entity ids come from `dashboard_entities` and `light_groups` in the source
block, falling back to config.DASHBOARD_ENTITIES / config.LIGHT_GROUPS.
"""

import logging
import time
from typing import Dict, List, Optional

from config import DASHBOARD_ENTITIES, LIGHT_GROUPS
from core.filters import FilterSpec
from core.registry import register_source
from core.view_models import LightGroup, build_light_groups, weather_from_entity
from models.home_assistant import EntitySnapshot, HomeDashboardSnapshot, index_states
from sources.home_assistant_source import HomeAssistantSource

logger = logging.getLogger(__name__)


def _temperature(entity: Optional[EntitySnapshot]) -> Optional[float]:
    if entity is None:
        return None
    value = entity.attributes.get("current_temperature")
    if isinstance(value, (int, float)):
        return float(value)
    return None


@register_source("home_dashboard")
class HomeDashboardSource(HomeAssistantSource):
    """Derived home page state plus garage and light group commands."""

    def __init__(self, source_id: str, bus, config, settings=None, session=None):
        super().__init__(source_id, bus, config, settings=settings, session=session)
        self.entities = dict(DASHBOARD_ENTITIES)
        self.entities.update(config.get("dashboard_entities") or {})
        self.light_groups: Dict[str, List[Dict]] = dict(
            config.get("light_groups") or LIGHT_GROUPS
        )

    def _filter_spec(self, config) -> FilterSpec:
        return FilterSpec.disabled()

    def build_snapshot(self, entities: List[EntitySnapshot]) -> HomeDashboardSnapshot:
        states = index_states(entities)

        garage = states.get(self.entities["garage_door"])
        camera = states.get(self.entities["garage_camera"])
        camera_url = None
        if camera is not None and camera.attributes.get("entity_picture"):
            base = self.user_config().home_assistant.url.rstrip("/")
            camera_url = base + camera.attributes["entity_picture"]

        temperatures = {
            room: _temperature(states.get(entity_id))
            for room, entity_id in self.entities.get("climates", {}).items()
        }

        weather = []
        for spec in self.entities.get("weather", []):
            entity = states.get(spec["entity_id"])
            if entity is None:
                continue
            weather.append(weather_from_entity(entity.state, entity.attributes, spec["location"]))

        return HomeDashboardSnapshot(
            garage_door_state=garage.state if garage is not None else "unknown",
            garage_camera_url=camera_url,
            temperatures=temperatures,
            weather=tuple(weather),
            main_house_lights=build_light_groups(self.light_groups.get("main_house", []), entities),
            barn_lights=build_light_groups(self.light_groups.get("barn", []), entities),
        )

    # ─── Garage ───

    def open_garage_door(self) -> bool:
        return self.call_service("cover", "open_cover", self.entities["garage_door"])

    def close_garage_door(self) -> bool:
        return self.call_service("cover", "close_cover", self.entities["garage_door"])

    def toggle_garage_door(self) -> bool:
        snapshot = self.snapshot
        state = snapshot.garage_door_state if isinstance(snapshot, HomeDashboardSnapshot) else "unknown"
        if state == "closed":
            return self.open_garage_door()
        return self.close_garage_door()

    # ─── Light groups ───

    def find_light_group(self, group_id: str) -> Optional[LightGroup]:
        snapshot = self.snapshot
        if isinstance(snapshot, HomeDashboardSnapshot):
            for group in snapshot.main_house_lights + snapshot.barn_lights:
                if group.id == group_id:
                    return group
        return None

    def _group_members(self, group_id: str) -> List[str]:
        for groups in self.light_groups.values():
            for definition in groups:
                if definition["id"] == group_id:
                    return list(definition.get("entity_ids", ()))
        raise KeyError(group_id)

    def _set_lights(self, entity_ids: List[str], service: str) -> bool:
        """Call light.<service> per member, then refresh once."""
        ok = True
        for entity_id in entity_ids:
            ok = self.call_service("light", service, entity_id, refresh=False) and ok
        if self.settle_delay > 0:
            time.sleep(self.settle_delay)
        self.refresh()
        return ok

    def turn_on_light_group(self, group_id: str) -> bool:
        return self._set_lights(self._group_members(group_id), "turn_on")

    def turn_off_light_group(self, group_id: str) -> bool:
        return self._set_lights(self._group_members(group_id), "turn_off")

    def toggle_light_group(self, group_id: str) -> bool:
        """Any member on turns the whole group off, otherwise on."""
        members = self._group_members(group_id)
        group = self.find_light_group(group_id)
        if group is not None and group.is_on:
            return self._set_lights(members, "turn_off")
        return self._set_lights(members, "turn_on")

    def turn_off_all_lights(self) -> bool:
        members = [
            entity_id
            for groups in self.light_groups.values()
            for definition in groups
            for entity_id in definition.get("entity_ids", ())
        ]
        logger.info("Turning off %d lights", len(members))
        return self._set_lights(members, "turn_off")
