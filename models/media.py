"""Media cluster records: Plex, Sonarr, Radarr, SABnzbd.

Wire models are decoded one item at a time; an item that does not fit is
dropped by the caller. SABnzbd sends most numbers as strings, which the
lax pydantic mode accepts for numeric fields; text fields that may carry
a bare number are normalized before validation.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, FrozenSet, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def parse_timestamp(value) -> Optional[datetime]:
    """ISO-8601 (with or without Z) to an aware datetime, else None."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _number_text(value) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


Timestamp = Annotated[Optional[datetime], BeforeValidator(parse_timestamp)]
NumberText = Annotated[str, BeforeValidator(_number_text)]


class _MediaModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class MediaImage(_MediaModel):
    cover_type: str = ""
    remote_url: Optional[str] = None


def poster_url(images: Tuple[MediaImage, ...]) -> Optional[str]:
    for image in images:
        if image.cover_type == "poster":
            return image.remote_url
    return None


# ---------------------------------------------------------------------------
# Plex
# ---------------------------------------------------------------------------

class PlexMetadata(_MediaModel):
    """One entry of /library/recentlyAdded MediaContainer.Metadata."""

    rating_key: str
    title: str
    type: str
    added_at: datetime
    parent_title: Optional[str] = None
    grandparent_title: Optional[str] = None
    thumb: Optional[str] = None
    parent_thumb: Optional[str] = None
    year: Optional[int] = None
    summary: Optional[str] = None

    @property
    def display_title(self) -> str:
        """Seasons and episodes show the series name."""
        if self.type in ("season", "episode"):
            return self.parent_title or self.grandparent_title or self.title
        return self.title

    @property
    def thumb_path(self) -> Optional[str]:
        return self.thumb or self.parent_thumb


@dataclass(frozen=True)
class PlexItem:
    id: str
    title: str
    kind: str            # "movie" or "show"
    added_at: datetime
    year: Optional[int] = None
    thumb_url: Optional[str] = None
    summary: Optional[str] = None


# ---------------------------------------------------------------------------
# Sonarr / Radarr
# ---------------------------------------------------------------------------

class SonarrSeries(_MediaModel):
    title: Optional[str] = None
    images: Tuple[MediaImage, ...] = ()


class SonarrEpisode(_MediaModel):
    """Calendar entry from /api/v3/calendar?includeSeries=true."""

    id: int
    title: str
    season_number: int
    episode_number: int
    air_date_utc: Timestamp = None
    overview: Optional[str] = None
    has_file: bool = False
    series: Optional[SonarrSeries] = None

    @property
    def series_title(self) -> str:
        return (self.series.title if self.series else None) or "Unknown"

    @property
    def episode_title(self) -> str:
        return self.title

    @property
    def air_date(self) -> Optional[datetime]:
        return self.air_date_utc

    @property
    def poster_url(self) -> Optional[str]:
        return poster_url(self.series.images) if self.series else None


class RadarrMovie(_MediaModel):
    """Entry of /api/v3/movie."""

    id: int
    title: str
    year: int
    status: str = ""
    has_file: bool = False
    added: Timestamp = None
    images: Tuple[MediaImage, ...] = ()

    @property
    def added_date(self) -> Optional[datetime]:
        return self.added

    @property
    def poster_url(self) -> Optional[str]:
        return poster_url(self.images)


# ---------------------------------------------------------------------------
# SABnzbd (snake_case keys, no aliases)
# ---------------------------------------------------------------------------

class _SABModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class SABDownload(_SABModel):
    """One slot of the queue."""

    nzo_id: str
    filename: str
    status: NumberText = ""
    percentage: float = 0.0
    sizeleft: NumberText = ""
    timeleft: NumberText = ""

    @property
    def id(self) -> str:
        return self.nzo_id

    @property
    def name(self) -> str:
        return self.filename

    @property
    def progress(self) -> float:
        """0..1"""
        return self.percentage / 100.0

    @property
    def size_left(self) -> str:
        return self.sizeleft

    @property
    def eta(self) -> str:
        return self.timeleft


class SABStatus(_SABModel):
    """The `queue` object of api?mode=queue."""

    speed: NumberText = "0"
    sizeleft: NumberText = "0 B"
    eta: NumberText = ""
    paused: bool = False
    noofslots_total: int = 0
    slots: Tuple[SABDownload, ...] = ()

    @property
    def size_left(self) -> str:
        return self.sizeleft

    @property
    def queue_count(self) -> int:
        return self.noofslots_total

    @property
    def queue(self) -> Tuple[SABDownload, ...]:
        return self.slots


@dataclass(frozen=True)
class MediaSnapshot:
    recent_tv: Tuple[PlexItem, ...] = ()
    recent_movies: Tuple[PlexItem, ...] = ()
    upcoming_episodes: Tuple[SonarrEpisode, ...] = ()
    movies: Tuple[RadarrMovie, ...] = ()
    downloads: Optional[SABStatus] = None
    stale: FrozenSet[str] = frozenset()
