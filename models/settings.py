"""User-editable configuration: credentials, printers, feature flags.

One JSON document, same shape locally and in the replica, camelCase keys:

    {"appMode": "Simple", "homeAssistant": {"url": ..., "token": ...},
     "plex": ..., "sonarr": ..., "radarr": ..., "sabnzbd": ...,
     "proxmox": {"url", "username", "password", "nodes"},
     "pihole": {"url", "apiToken"}, "printers": [...],
     "allowInsecureCerts": false}

Models are frozen; edit with model_copy(update=...).
"""

import logging
import uuid
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class AppMode(str, Enum):
    SIMPLE = "Simple"
    ADVANCED = "Advanced"


class HomeAssistantConfig(_ConfigModel):
    url: str
    token: str


class PlexConfig(_ConfigModel):
    url: str
    token: str


class ServiceConfig(_ConfigModel):
    """Sonarr, Radarr and SABnzbd: URL + API key."""

    url: str
    api_key: str


class ProxmoxConfig(_ConfigModel):
    """username/password hold the API token id and secret."""

    url: str = ""
    username: str = ""
    password: str = ""
    nodes: List[str] = Field(default_factory=list)


class PiholeConfig(_ConfigModel):
    url: str
    api_token: Optional[str] = None


class PrinterConfig(_ConfigModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()).upper())
    name: str = ""
    printer_id: str = ""
    access_code: str = ""
    ams_id: Optional[str] = None


class ServiceType(str, Enum):
    """Configurable services; value is the config block name."""

    HOME_ASSISTANT = "homeAssistant"
    PLEX = "plex"
    SONARR = "sonarr"
    RADARR = "radarr"
    SABNZBD = "sabnzbd"
    PROXMOX = "proxmox"
    PIHOLE = "pihole"

    @property
    def field_name(self) -> str:
        return _FIELD_NAMES[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def category(self) -> str:
        if self is ServiceType.HOME_ASSISTANT:
            return "Smart Home"
        if self in (ServiceType.PROXMOX, ServiceType.PIHOLE):
            return "Infrastructure"
        return "Media"


_FIELD_NAMES = {
    ServiceType.HOME_ASSISTANT: "home_assistant",
    ServiceType.PLEX: "plex",
    ServiceType.SONARR: "sonarr",
    ServiceType.RADARR: "radarr",
    ServiceType.SABNZBD: "sabnzbd",
    ServiceType.PROXMOX: "proxmox",
    ServiceType.PIHOLE: "pihole",
}

_DISPLAY_NAMES = {
    ServiceType.HOME_ASSISTANT: "Home Assistant",
    ServiceType.PLEX: "Plex",
    ServiceType.SONARR: "Sonarr",
    ServiceType.RADARR: "Radarr",
    ServiceType.SABNZBD: "SABnzbd",
    ServiceType.PROXMOX: "Proxmox",
    ServiceType.PIHOLE: "Pi-hole",
}


class HomeStatsConfig(_ConfigModel):
    app_mode: AppMode = AppMode.SIMPLE
    home_assistant: Optional[HomeAssistantConfig] = None
    plex: Optional[PlexConfig] = None
    sonarr: Optional[ServiceConfig] = None
    radarr: Optional[ServiceConfig] = None
    sabnzbd: Optional[ServiceConfig] = None
    proxmox: Optional[ProxmoxConfig] = None
    pihole: Optional[PiholeConfig] = None
    printers: List[PrinterConfig] = Field(default_factory=list)
    allow_insecure_certs: bool = False

    def service(self, service: ServiceType):
        """The config block for `service`, or None when not configured."""
        return getattr(self, service.field_name)

    def is_configured(self, service: ServiceType) -> bool:
        return self.service(service) is not None

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")

    @classmethod
    def from_json(cls, data: Optional[Union[bytes, str]]) -> Optional["HomeStatsConfig"]:
        """Decode a stored copy. Missing or undecodable data yields None."""
        if not data:
            return None
        try:
            return cls.model_validate_json(data)
        except ValidationError as exc:
            logger.warning("Stored config could not be decoded: %d errors", exc.error_count())
            return None
