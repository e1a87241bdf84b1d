"""Home Assistant entity source.

Fetches the full entity list from /api/states, filters it (domain
allow-list, then name substrings), sorts it by (domain, name) and
publishes a HomeAssistantSnapshot. Also exposes the write commands the
dashboard needs: toggle, generic service calls, button presses and the
camera proxy.

Config example (in dashboard.yaml):
    sources:
      - id: "ha.entities"
        type: "home_assistant"
        interval: 10
        allowed_domains: ["cover", "light", "camera", "sensor"]
        name_filters: ["big door", "kitchen", "boatsy"]
"""

import logging
import time
from typing import Any, List, Optional

from config import SETTLE_DELAY, SIMPLE_TOGGLE_DOMAINS
from core.auth import bearer_token_auth
from core.data_source import DataSource
from core.errors import NotConfigured, SourceError
from core.filters import FilterSpec, apply_filter, sort_entities
from core.http import HTTPClient
from core.registry import register_source
from core.view_models import PrinterStatus, printer_status
from models.home_assistant import EntitySnapshot, HomeAssistantSnapshot, decode_entities
from models.settings import ServiceType

logger = logging.getLogger(__name__)


def toggle_service(entity: EntitySnapshot) -> str:
    """Service name that flips `entity` to its other state."""
    domain = entity.domain
    if domain in SIMPLE_TOGGLE_DOMAINS:
        return "toggle"
    if domain == "cover":
        return "open_cover" if entity.state == "closed" else "close_cover"
    if domain == "lock":
        return "unlock" if entity.state == "locked" else "lock"
    return "toggle"


@register_source("home_assistant")
class HomeAssistantSource(DataSource):
    """Filtered, sorted Home Assistant entity list."""

    def __init__(self, source_id: str, bus, config, settings=None, session=None):
        super().__init__(source_id, bus, config, settings=settings, session=session)
        self.filter_spec = self._filter_spec(config)
        self.settle_delay = float(config.get("settle_delay", SETTLE_DELAY))

    def _filter_spec(self, config) -> FilterSpec:
        return FilterSpec.from_config(config)

    def client(self) -> HTTPClient:
        ha = self.user_config().home_assistant
        if ha is None:
            raise NotConfigured(ServiceType.HOME_ASSISTANT.display_name)
        return HTTPClient(
            ha.url,
            session=self.session,
            auth=bearer_token_auth(ha.token),
            verify=self.verify_tls(),
        )

    def fetch_entities(self) -> List[EntitySnapshot]:
        payload = self.client().get_json("api/states")
        return decode_entities(payload)

    def fetch(self) -> Any:
        entities = apply_filter(self.fetch_entities(), self.filter_spec)
        return self.build_snapshot(sort_entities(entities))

    def build_snapshot(self, entities: List[EntitySnapshot]) -> Any:
        return HomeAssistantSnapshot(entities=tuple(entities))

    # ─── Commands ───

    def call_service(self, domain: str, service: str, entity_id: str, refresh: bool = True) -> bool:
        """POST /api/services/{domain}/{service}.

        On success waits the settle delay and runs one extra refresh so
        callers see the new state. Returns False when the call failed.
        """
        try:
            self.client().post(
                f"api/services/{domain}/{service}",
                json={"entity_id": entity_id},
            )
        except SourceError as exc:
            logger.warning("Service call %s.%s(%s) failed: %s", domain, service, entity_id, exc)
            return False

        logger.info("Called %s.%s for %s", domain, service, entity_id)
        if refresh:
            if self.settle_delay > 0:
                time.sleep(self.settle_delay)
            self.refresh()
        return True

    def toggle(self, entity: EntitySnapshot) -> bool:
        return self.call_service(entity.domain, toggle_service(entity), entity.entity_id)

    def toggle_entity(self, entity_id: str) -> bool:
        """Toggle by id using the latest snapshot's state."""
        entity = self._find(entity_id)
        if entity is None:
            entity = EntitySnapshot(entity_id=entity_id, state="unknown")
        return self.toggle(entity)

    def press_button(self, entity_id: str) -> bool:
        """Fire-and-forget button.press; no refresh afterwards."""
        return self.call_service("button", "press", entity_id, refresh=False)

    def camera_image(self, entity_id: str) -> bytes:
        """JPEG bytes from /api/camera_proxy/{entity_id}."""
        resp = self.client().get(
            f"api/camera_proxy/{entity_id}", headers={"Accept": "image/*"}
        )
        return resp.content

    def view_model(self):
        snapshot = self.snapshot
        if not isinstance(snapshot, HomeAssistantSnapshot):
            return None
        return {"by_domain": snapshot.by_domain()}

    def _find(self, entity_id: str) -> Optional[EntitySnapshot]:
        snapshot = self.snapshot
        if isinstance(snapshot, HomeAssistantSnapshot):
            return snapshot.get(entity_id)
        return None


@register_source("home_assistant_all")
class HomeAssistantAllSource(HomeAssistantSource):
    """Unfiltered entity universe, for device dashboards (printers, cameras)."""

    def _filter_spec(self, config) -> FilterSpec:
        return FilterSpec.disabled()

    def printer_statuses(self) -> List[PrinterStatus]:
        """Status of every configured printer from the latest snapshot."""
        snapshot = self.snapshot
        if not isinstance(snapshot, HomeAssistantSnapshot):
            return []
        return [
            printer_status(snapshot.entities, printer)
            for printer in self.user_config().printers
        ]

    def view_model(self):
        return {"printers": self.printer_statuses()}
