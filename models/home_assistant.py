"""Home Assistant entity model and snapshots."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from core.errors import DecodeError

logger = logging.getLogger(__name__)

ON_STATES = ("on", "home", "playing")


class EntitySnapshot(BaseModel):
    """One remote object (light, sensor, cover, ...) from /api/states."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    entity_id: str
    state: str
    attributes: Dict[str, Any] = {}
    last_changed: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    @property
    def id(self) -> str:
        return self.entity_id

    @property
    def domain(self) -> str:
        domain, sep, _ = self.entity_id.partition(".")
        return domain if sep else "unknown"

    @property
    def object_id(self) -> str:
        return self.entity_id.split(".")[-1]

    @property
    def name(self) -> str:
        return str(self.attributes.get("friendly_name") or self.object_id)

    @property
    def unit_of_measurement(self) -> Optional[str]:
        return self.attributes.get("unit_of_measurement")

    @property
    def is_on(self) -> bool:
        return self.state.lower() in ON_STATES


def decode_entities(payload: Any) -> List[EntitySnapshot]:
    """Decode /api/states, dropping items that do not fit the schema."""
    if not isinstance(payload, list):
        raise DecodeError("Expected a list of entity states")

    entities = []
    for raw in payload:
        try:
            entities.append(EntitySnapshot.model_validate(raw))
        except ValidationError as exc:
            logger.debug("Dropping undecodable entity %r: %s",
                         raw.get("entity_id") if isinstance(raw, dict) else raw, exc)
    return entities


@dataclass(frozen=True)
class HomeAssistantSnapshot:
    entities: Tuple[EntitySnapshot, ...] = ()

    def get(self, entity_id: str) -> Optional[EntitySnapshot]:
        for entity in self.entities:
            if entity.entity_id == entity_id:
                return entity
        return None

    def by_domain(self) -> Dict[str, List[EntitySnapshot]]:
        grouped: Dict[str, List[EntitySnapshot]] = {}
        for entity in self.entities:
            grouped.setdefault(entity.domain, []).append(entity)
        return grouped

    def domains(self) -> List[str]:
        return sorted({e.domain for e in self.entities})


def index_states(entities: Iterable[EntitySnapshot]) -> Dict[str, EntitySnapshot]:
    return {e.entity_id: e for e in entities}


@dataclass(frozen=True)
class HomeDashboardSnapshot:
    """Derived state for the home dashboard page."""

    garage_door_state: str = "unknown"
    garage_camera_url: Optional[str] = None
    temperatures: Dict[str, Optional[float]] = field(default_factory=dict)
    weather: Tuple[Any, ...] = ()
    main_house_lights: Tuple[Any, ...] = ()
    barn_lights: Tuple[Any, ...] = ()
