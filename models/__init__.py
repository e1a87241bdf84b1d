"""Typed records for HomeStats Hub.

settings      -- user config (credentials, printers, flags), persisted + synced
home_assistant, proxmox, pihole, media -- decoded upstream payloads and the
immutable snapshots pollers publish.
"""

from models.settings import HomeStatsConfig, PrinterConfig, ServiceType

__all__ = ["HomeStatsConfig", "PrinterConfig", "ServiceType"]
