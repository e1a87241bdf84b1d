"""Pi-hole v6 source.

Logs in through POST /api/auth (session id, renewed before expiry), then
fetches the summary and the query history concurrently with the `sid`
header. Each slice degrades on its own: a failed slice keeps its previous
value and is named in snapshot.stale. A failed login aborts the cycle.

Config example (in dashboard.yaml):
    sources:
      - id: "pihole"
        type: "pihole"
        interval: 30
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Tuple

from pydantic import ValidationError

from core.auth import SessionAuthenticator
from core.data_source import DataSource
from core.errors import DecodeError, HTTPStatusError, NotConfigured, SourceError
from core.http import HTTPClient
from core.registry import register_source
from core.view_models import blocked_percent
from models.pihole import HistoryPoint, PiholeSnapshot, Summary
from models.settings import ServiceType

logger = logging.getLogger(__name__)

SUMMARY = "summary"
HISTORY = "history"


def decode_summary(payload: Any) -> Summary:
    try:
        return Summary.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"Unexpected summary: {exc}") from exc


def decode_history(payload: Any) -> Tuple[HistoryPoint, ...]:
    if not isinstance(payload, dict) or not isinstance(payload.get("history"), list):
        raise DecodeError("Expected {'history': [...]}")
    points = []
    for raw in payload["history"]:
        try:
            points.append(HistoryPoint.model_validate(raw))
        except ValidationError:
            continue
    return tuple(points)


@register_source("pihole")
class PiholeSource(DataSource):
    """DNS query stats and history."""

    def __init__(self, source_id: str, bus, config, settings=None, session=None):
        super().__init__(source_id, bus, config, settings=settings, session=session)
        self._client: Optional[HTTPClient] = None
        self._auth: Optional[SessionAuthenticator] = None
        self._auth_key = None

    def client(self) -> HTTPClient:
        pihole = self.user_config().pihole
        if pihole is None:
            raise NotConfigured(ServiceType.PIHOLE.display_name)

        password = pihole.api_token or ""
        verify = self.verify_tls()
        key = (pihole.url, password, verify)
        if self._client is None or self._auth_key != key:
            # new credentials, new session
            client = HTTPClient(pihole.url, session=self.session, verify=verify)
            self._auth = SessionAuthenticator(client, password)
            client.auth = self._auth
            self._client = client
            self._auth_key = key
        return self._client

    @property
    def authenticator(self) -> Optional[SessionAuthenticator]:
        return self._auth

    def fetch(self) -> PiholeSnapshot:
        client = self.client()
        self._auth.ensure_authenticated()

        previous = self.snapshot if isinstance(self.snapshot, PiholeSnapshot) else PiholeSnapshot()
        with ThreadPoolExecutor(max_workers=2) as pool:
            summary_future = pool.submit(self._slice, client, "api/stats/summary", decode_summary)
            history_future = pool.submit(self._slice, client, "api/history", decode_history)
            summary = summary_future.result()
            history = history_future.result()

        stale = set()
        if summary is None:
            stale.add(SUMMARY)
            summary = previous.summary
        if history is None:
            stale.add(HISTORY)
            history = previous.history

        return PiholeSnapshot(summary=summary, history=history, stale=frozenset(stale))

    def _slice(self, client: HTTPClient, path: str, decode):
        """One sub-fetch; None when it failed."""
        try:
            return decode(client.get_json(path))
        except SourceError as exc:
            if isinstance(exc, HTTPStatusError) and exc.status_code == 401:
                self._auth.invalidate()
            logger.warning("Pi-hole %s fetch failed: %s", path, exc)
            return None

    def blocked_percent(self) -> float:
        snapshot = self.snapshot
        if not isinstance(snapshot, PiholeSnapshot) or snapshot.summary is None:
            return 0.0
        queries = snapshot.summary.queries
        return blocked_percent(queries.total, queries.blocked)

    def view_model(self):
        if not isinstance(self.snapshot, PiholeSnapshot):
            return None
        return {"blocked_percent": self.blocked_percent()}
