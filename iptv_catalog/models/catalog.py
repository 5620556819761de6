"""Pydantic models for catalog items, episodes, EPG rows and cached snapshots."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

CONTENT_TV = "tv"
CONTENT_MOVIE = "movie"
CONTENT_SERIES = "series"

ID_PREFIX = "iptv_"
SERIES_ID_PREFIX = "iptv_series_"
EPISODE_ID_PREFIX = "iptv_series_ep_"


class CatalogItem(BaseModel):
    """Fields shared by every catalog entry.

    Well-known M3U attributes are lifted into typed fields; anything else the
    source sends stays available in ``attributes``.
    """
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    type: str = CONTENT_TV
    logo: Optional[str] = None
    category: Optional[str] = None
    plot: Optional[str] = None
    attributes: dict[str, str] = Field(default_factory=dict)


class PlaylistItem(CatalogItem):
    """One playable playlist entry (``#EXTINF`` line + URL)."""

    url: str
    duration: int = -1
    epg_channel_id: Optional[str] = None


class Channel(PlaylistItem):
    type: str = CONTENT_TV


class Movie(PlaylistItem):
    type: str = CONTENT_MOVIE
    year: Optional[int] = None
    poster: Optional[str] = None


class Series(CatalogItem):
    """A synthetic (M3U) or upstream (Xtream) series record."""

    type: str = CONTENT_SERIES
    series_id: str = ""
    poster: Optional[str] = None


class Episode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    season: int = 1
    episode: int = 0
    released: Optional[str] = None
    thumbnail: Optional[str] = None
    url: str
    stream_id: str = ""


class ProgrammeEntry(BaseModel):
    """One XMLTV ``<programme>`` row; timestamps are kept raw until resolved."""
    model_config = ConfigDict(extra="ignore")

    channel_id: str
    start: str = ""
    stop: str = ""
    title: str = "Unknown"
    description: str = ""


class ScheduledProgramme(BaseModel):
    """A programme with its timestamps resolved to aware datetimes."""

    title: str
    description: str = ""
    start: datetime
    stop: datetime


class CatalogSnapshot(BaseModel):
    """Everything ingested for one configuration; replaced wholesale on refresh."""
    model_config = ConfigDict(extra="ignore")

    channels: list[Channel] = Field(default_factory=list)
    movies: list[Movie] = Field(default_factory=list)
    series: list[Series] = Field(default_factory=list)
    series_episodes: dict[str, list[Episode]] = Field(default_factory=dict)
    epg_data: dict[str, list[ProgrammeEntry]] = Field(default_factory=dict)
    last_update: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not (self.channels or self.movies or self.series)

    def to_cache(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_cache(cls, data: dict) -> "CatalogSnapshot":
        return cls.model_validate(data)
