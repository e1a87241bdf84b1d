"""Error taxonomy shared by pollers, authenticators and the config manager.

Pollers never let these escape a refresh cycle: DataSource.refresh()
catches them, keeps the last good snapshot and records the error so the
renderer can show stale data with an error flag.
"""

from typing import Optional


class SourceError(Exception):
    """Base class for everything a fetch cycle can fail with."""


class TransportError(SourceError):
    """Network unreachable, DNS failure, TLS failure or timeout."""


class HTTPStatusError(SourceError):
    """Upstream answered with an unexpected status code."""

    def __init__(self, status_code: int, url: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP error: {status_code}")


class DecodeError(SourceError):
    """Payload did not match the expected schema."""


class AuthenticationFailed(SourceError):
    """Login exchange was rejected."""


class NotConfigured(SourceError):
    """The service has no credentials in the user config."""

    def __init__(self, service: str):
        self.service = service
        super().__init__(f"{service} is not configured")


class QuotaExceeded(Exception):
    """Replica store refused a write because it is over quota."""
