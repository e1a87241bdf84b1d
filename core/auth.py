"""Authenticators -- build the auth headers for an upstream request.

Two shapes:
    StaticHeaderAuth      -- fixed header (bearer token, API key, PVE token)
    SessionAuthenticator  -- renewable session from a login exchange
                             (Pi-hole v6 /api/auth)

Both expose auth_headers(), which HTTPClient merges into every request.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from pydantic import BaseModel, ValidationError

from config import SESSION_SAFETY_MARGIN
from core.errors import AuthenticationFailed, DecodeError

logger = logging.getLogger(__name__)


class StaticHeaderAuth:
    """Attaches one fixed header to every request."""

    def __init__(self, header: str, value: str):
        self.header = header
        self._value = value

    def auth_headers(self) -> Dict[str, str]:
        return {self.header: self._value}

    def __repr__(self):
        return f"StaticHeaderAuth({self.header!r})"


def bearer_token_auth(token: str) -> StaticHeaderAuth:
    return StaticHeaderAuth("Authorization", f"Bearer {token}")


def api_key_auth(api_key: str) -> StaticHeaderAuth:
    return StaticHeaderAuth("X-Api-Key", api_key)


def plex_token_auth(token: str) -> StaticHeaderAuth:
    return StaticHeaderAuth("X-Plex-Token", token)


def proxmox_token_auth(token_id: str, secret: str) -> StaticHeaderAuth:
    return StaticHeaderAuth("Authorization", f"PVEAPIToken={token_id}={secret}")


# ---------------------------------------------------------------------------
# Session based
# ---------------------------------------------------------------------------

class _SessionInfo(BaseModel):
    valid: bool
    sid: Optional[str] = None
    validity: int = 0


class _AuthResponse(BaseModel):
    session: _SessionInfo


@dataclass(frozen=True)
class Session:
    """A login session. valid_until is the server-side expiry (epoch secs)."""

    sid: str
    valid_until: float

    def is_usable(self, now: float, margin: float = SESSION_SAFETY_MARGIN) -> bool:
        return self.valid_until - now >= margin


class SessionAuthenticator:
    """Logs in with a password and caches the session until near expiry.

    A lock serializes ensure_authenticated(), so concurrent sub-fetches of
    one cycle share a single login exchange.
    """

    def __init__(
        self,
        client,
        password: str,
        login_path: str = "api/auth",
        header: str = "sid",
        margin: float = SESSION_SAFETY_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self._password = password
        self._login_path = login_path
        self._header = header
        self._margin = margin
        self._clock = clock
        self._lock = threading.Lock()
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def ensure_authenticated(self) -> Session:
        """Return a usable session, logging in first if needed.

        Raises:
            AuthenticationFailed: the server answered valid=false.
            TransportError, HTTPStatusError, DecodeError: login call failed.
        """
        with self._lock:
            session = self._session
            if session is not None and session.is_usable(self._clock(), self._margin):
                return session
            self._session = None
            self._session = self._login()
            return self._session

    def _login(self) -> Session:
        logger.debug("Logging in to %s", self._client.url(self._login_path))
        payload = self._client.post_json(
            self._login_path,
            json={"password": self._password},
            authenticate=False,
        )
        try:
            info = _AuthResponse.model_validate(payload).session
        except ValidationError as exc:
            raise DecodeError(f"Unexpected auth response: {exc}") from exc

        if not info.valid or not info.sid:
            raise AuthenticationFailed("Pi-hole authentication failed")

        session = Session(sid=info.sid, valid_until=self._clock() + info.validity)
        logger.info("Session established (valid for %ds)", info.validity)
        return session

    def auth_headers(self) -> Dict[str, str]:
        return {self._header: self.ensure_authenticated().sid}

    def invalidate(self):
        """Forget the current session; the next request logs in again."""
        with self._lock:
            self._session = None
