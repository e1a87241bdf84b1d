"""Data source implementations for HomeStats Hub.

Importing this package registers all built-in source types.
"""

from sources.home_assistant_source import HomeAssistantAllSource, HomeAssistantSource
from sources.home_dashboard_source import HomeDashboardSource
from sources.proxmox_source import ProxmoxSource
from sources.pihole_source import PiholeSource
from sources.media_source import MediaSource

__all__ = [
    "HomeAssistantSource",
    "HomeAssistantAllSource",
    "HomeDashboardSource",
    "ProxmoxSource",
    "PiholeSource",
    "MediaSource",
]
