"""Media cluster source: Plex, Sonarr, Radarr and SABnzbd.

Four concurrent slices, each decoded on its own:
    plex     GET library/recentlyAdded                (X-Plex-Token)
    sonarr   GET api/v3/calendar?start&end&...        (X-Api-Key)
    radarr   GET api/v3/movie                         (X-Api-Key + apikey)
    sabnzbd  GET api?mode=queue&output=json&apikey=

A slice that fails, or whose service is not configured, keeps its value
from the previous snapshot; failed slices are named in snapshot.stale.
Items with missing fields are dropped one at a time.

Config example (in dashboard.yaml):
    sources:
      - id: "media"
        type: "media"
        interval: 60
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from config import (
    CALENDAR_WINDOW_DAYS,
    DOWNLOAD_QUEUE_LIMIT,
    MOVIE_LIBRARY_LIMIT,
    PLEX_RECENT_SCAN_LIMIT,
    RECENT_DISPLAY_COUNT,
)
from core.auth import api_key_auth, plex_token_auth
from core.data_source import DataSource
from core.errors import DecodeError, NotConfigured, SourceError
from core.http import HTTPClient
from core.registry import register_source
from models.media import (
    MediaSnapshot,
    PlexItem,
    PlexMetadata,
    RadarrMovie,
    SABDownload,
    SABStatus,
    SonarrEpisode,
)

logger = logging.getLogger(__name__)

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)

M = TypeVar("M", bound=BaseModel)


def _validate_each(model: Type[M], items: Iterable[Any]) -> List[M]:
    """Validate item by item, dropping the ones that do not fit."""
    decoded = []
    for raw in items:
        try:
            decoded.append(model.model_validate(raw))
        except ValidationError as exc:
            logger.debug("Dropping undecodable %s: %d errors", model.__name__, exc.error_count())
    return decoded


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------

def decode_plex_recent(payload: Any, base_url: str, token: str) -> Tuple[Tuple[PlexItem, ...], Tuple[PlexItem, ...]]:
    """(recent_tv, recent_movies) from /library/recentlyAdded."""
    container = payload.get("MediaContainer") if isinstance(payload, dict) else None
    metadata = container.get("Metadata") if isinstance(container, dict) else None
    if not isinstance(metadata, list):
        raise DecodeError("Expected MediaContainer.Metadata")

    base = base_url.rstrip("/")
    items = [
        PlexItem(
            id=meta.rating_key,
            title=meta.display_title,
            kind="movie" if meta.type == "movie" else "show",
            added_at=meta.added_at,
            year=meta.year,
            thumb_url=f"{base}{meta.thumb_path}?X-Plex-Token={token}" if meta.thumb_path else None,
            summary=meta.summary,
        )
        for meta in _validate_each(PlexMetadata, metadata[:PLEX_RECENT_SCAN_LIMIT])
    ]

    tv = tuple(i for i in items if i.kind != "movie")[:RECENT_DISPLAY_COUNT]
    movies = tuple(i for i in items if i.kind == "movie")[:RECENT_DISPLAY_COUNT]
    return tv, movies


def decode_sonarr_calendar(payload: Any) -> Tuple[SonarrEpisode, ...]:
    if not isinstance(payload, list):
        raise DecodeError("Expected a list of calendar entries")
    return tuple(_validate_each(SonarrEpisode, payload))


def decode_radarr_movies(payload: Any) -> Tuple[RadarrMovie, ...]:
    """Downloaded movies, newest first (undated last), capped."""
    if not isinstance(payload, list):
        raise DecodeError("Expected a list of movies")

    movies = [m for m in _validate_each(RadarrMovie, payload) if m.has_file]
    movies.sort(key=lambda m: m.added_date or _UNDATED, reverse=True)
    return tuple(movies[:MOVIE_LIBRARY_LIMIT])


def decode_sab_queue(payload: Any) -> SABStatus:
    queue = payload.get("queue") if isinstance(payload, dict) else None
    if not isinstance(queue, dict):
        raise DecodeError("Expected a 'queue' object")

    slots = queue.get("slots")
    downloads = _validate_each(SABDownload, slots[:DOWNLOAD_QUEUE_LIMIT] if isinstance(slots, list) else ())
    try:
        return SABStatus.model_validate(dict(queue, slots=downloads))
    except ValidationError as exc:
        raise DecodeError(f"Unexpected SABnzbd queue: {exc}") from exc


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------

@register_source("media")
class MediaSource(DataSource):
    """Recently added, upcoming episodes, movie library and download queue."""

    def __init__(self, source_id: str, bus, config, settings=None, session=None, today: Callable[[], date] = None):
        super().__init__(source_id, bus, config, settings=settings, session=session)
        self._today = today or (lambda: datetime.now(timezone.utc).date())

    def _client(self, url: str, auth=None) -> HTTPClient:
        return HTTPClient(url, session=self.session, auth=auth, verify=self.verify_tls())

    def _slices(self, cfg) -> Dict[str, Callable[[], Dict[str, Any]]]:
        """Fetchers for the configured services, keyed by slice name."""
        slices = {}
        if cfg.plex is not None:
            slices["plex"] = lambda: self.fetch_plex(cfg.plex)
        if cfg.sonarr is not None:
            slices["sonarr"] = lambda: self.fetch_sonarr(cfg.sonarr)
        if cfg.radarr is not None:
            slices["radarr"] = lambda: self.fetch_radarr(cfg.radarr)
        if cfg.sabnzbd is not None:
            slices["sabnzbd"] = lambda: self.fetch_sabnzbd(cfg.sabnzbd)
        return slices

    def fetch(self) -> MediaSnapshot:
        cfg = self.user_config()
        slices = self._slices(cfg)
        if not slices:
            raise NotConfigured("Media services")

        previous = self.snapshot if isinstance(self.snapshot, MediaSnapshot) else MediaSnapshot()
        fields: Dict[str, Any] = {
            "recent_tv": previous.recent_tv,
            "recent_movies": previous.recent_movies,
            "upcoming_episodes": previous.upcoming_episodes,
            "movies": previous.movies,
            "downloads": previous.downloads,
        }
        stale = set()

        with ThreadPoolExecutor(max_workers=len(slices)) as pool:
            futures = {name: pool.submit(fetcher) for name, fetcher in slices.items()}
            for name, future in futures.items():
                try:
                    fields.update(future.result())
                except SourceError as exc:
                    logger.warning("Media slice %s failed: %s", name, exc)
                    stale.add(name)

        return MediaSnapshot(stale=frozenset(stale), **fields)

    # ─── Slices ───

    def fetch_plex(self, plex) -> Dict[str, Any]:
        client = self._client(plex.url, plex_token_auth(plex.token))
        tv, movies = decode_plex_recent(
            client.get_json("library/recentlyAdded"), plex.url, plex.token
        )
        return {"recent_tv": tv, "recent_movies": movies}

    def fetch_sonarr(self, sonarr) -> Dict[str, Any]:
        start = self._today()
        end = start + timedelta(days=CALENDAR_WINDOW_DAYS)
        client = self._client(sonarr.url, api_key_auth(sonarr.api_key))
        payload = client.get_json("api/v3/calendar", params={
            "start": start.isoformat(),
            "end": end.isoformat(),
            "includeSeries": "true",
            "includeEpisodeFile": "true",
        })
        return {"upcoming_episodes": decode_sonarr_calendar(payload)}

    def fetch_radarr(self, radarr) -> Dict[str, Any]:
        client = self._client(radarr.url, api_key_auth(radarr.api_key))
        payload = client.get_json("api/v3/movie", params={"apikey": radarr.api_key})
        return {"movies": decode_radarr_movies(payload)}

    def fetch_sabnzbd(self, sabnzbd) -> Dict[str, Any]:
        client = self._client(sabnzbd.url)
        payload = client.get_json("api", params={
            "mode": "queue",
            "output": "json",
            "apikey": sabnzbd.api_key,
        })
        return {"downloads": decode_sab_queue(payload)}

