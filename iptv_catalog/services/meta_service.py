"""Meta service — preview, detail and manifest records built from catalog items."""
from __future__ import annotations

import re
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from iptv_catalog.models.catalog import (
    CONTENT_MOVIE,
    CONTENT_SERIES,
    CONTENT_TV,
    ID_PREFIX,
    CatalogItem,
    Channel,
    Episode,
    Movie,
    ScheduledProgramme,
    Series,
)
from iptv_catalog.models.config import AddonConfig
from iptv_catalog.services.epg_service import EpgData, current_programme, upcoming_programmes

ADDON_ID = "org.stremio.m3u-epg-addon"
ADDON_NAME = "M3U/EPG TV Addon"
ADDON_VERSION = "1.2.0"

ALL_CHANNELS = "All Channels"
CATALOG_CHANNELS = "iptv_channels"
CATALOG_MOVIES = "iptv_movies"
CATALOG_SERIES = "iptv_series"

YEAR_IN_NAME_RE = re.compile(r"\((\d{4})\)")

CHANNEL_PLACEHOLDER = "https://via.placeholder.com/300x400/333333/FFFFFF?text={name}"
MOVIE_PLACEHOLDER = "https://via.placeholder.com/300x450/CC6600/FFFFFF?text={name}"
SERIES_PLACEHOLDER = "https://via.placeholder.com/300x450/336699/FFFFFF?text={name}"

DEFAULT_LOGO_SOURCES = (
    "https://raw.githubusercontent.com/iptv-org/epg/master/logos/{id}.png",
    "https://raw.githubusercontent.com/iptv-org/iptv/master/logos/{id}.png",
)
COUNTRY_SUFFIX_RE = re.compile(r"\.[a-z]{2,3}$")
NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]+")


def _clock(value: datetime) -> str:
    return value.astimezone().strftime("%H:%M")


def channel_logo(item: CatalogItem) -> str:
    """tvg-logo, else the local logo proxy path for the tvg id, else a placeholder."""
    logo = (item.attributes.get("tvg-logo") or item.logo or "").strip()
    if logo:
        return logo
    tvg_id = item.attributes.get("tvg-id") or item.attributes.get("tvg-name")
    if not tvg_id:
        return CHANNEL_PLACEHOLDER.format(name=quote(item.name, safe=""))
    return f"logo/{quote(tvg_id, safe='')}.png"


def logo_candidates(tvg_id: str) -> list[str]:
    """Id spellings to try against logo sources: raw, without country suffix, hyphenated, underscored."""
    no_country = COUNTRY_SUFFIX_RE.sub("", tvg_id)
    candidates = [
        tvg_id,
        no_country,
        NON_ALNUM_RE.sub("-", no_country),
        NON_ALNUM_RE.sub("_", no_country),
    ]
    return list(dict.fromkeys(candidates))


def logo_placeholder(tvg_id: str) -> str:
    label = COUNTRY_SUFFIX_RE.sub("", tvg_id).upper()[:12]
    return CHANNEL_PLACEHOLDER.format(name=quote(label, safe=""))


def movie_poster(item: CatalogItem) -> str:
    poster = getattr(item, "poster", None) or item.attributes.get("tvg-logo") or item.logo
    return poster or MOVIE_PLACEHOLDER.format(name=quote(item.name, safe=""))


def series_poster(series: Series) -> str:
    poster = series.poster or series.attributes.get("tvg-logo") or series.logo
    return poster or SERIES_PLACEHOLDER.format(name=quote(series.name, safe=""))


def movie_year(movie: Movie) -> Optional[int]:
    if movie.year:
        return movie.year
    match = YEAR_IN_NAME_RE.search(movie.name)
    return int(match.group(1)) if match else None


def movie_description(movie: Movie) -> str:
    return movie.plot or movie.attributes.get("plot") or f"Movie: {movie.name}"


def item_genres(item: CatalogItem, fallback: str) -> list[str]:
    genre = item.category or item.attributes.get("group-title")
    return [genre] if genre else [fallback]


def channel_epg_id(channel: Channel) -> Optional[str]:
    return channel.epg_channel_id or channel.attributes.get("tvg-id") or channel.attributes.get("tvg-name")


# ----------------------------------------------------------------------
# Previews
# ----------------------------------------------------------------------

def channel_preview(channel: Channel, epg: EpgData, offset_hours: float = 0.0, now: Optional[datetime] = None) -> dict:
    current = current_programme(epg, channel_epg_id(channel), now, offset_hours)
    if current:
        description = f"📡 Now: {current.title}"
        if current.description:
            description += f"\n{current.description}"
    else:
        description = "📡 Live Channel"
    return {
        "id": channel.id,
        "type": CONTENT_TV,
        "name": channel.name,
        "poster": channel_logo(channel),
        "description": description,
        "genres": item_genres(channel, "Live TV"),
        "runtime": "Live",
    }


def movie_preview(movie: Movie) -> dict:
    meta = {
        "id": movie.id,
        "type": CONTENT_MOVIE,
        "name": movie.name,
        "poster": movie_poster(movie),
        "description": movie_description(movie),
        "genres": item_genres(movie, "Movie"),
    }
    year = movie_year(movie)
    if year:
        meta["year"] = year
    return meta


def series_preview(series: Series) -> dict:
    return {
        "id": series.id,
        "type": CONTENT_SERIES,
        "name": series.name,
        "poster": series_poster(series),
        "description": series.plot or series.attributes.get("plot") or f"Series: {series.name}",
        "genres": item_genres(series, "Series"),
    }


# ----------------------------------------------------------------------
# Detail records
# ----------------------------------------------------------------------

def channel_description(
    channel: Channel,
    current: Optional[ScheduledProgramme],
    upcoming: list[ScheduledProgramme],
) -> str:
    description = f"📺 CHANNEL: {channel.name}"
    if current:
        description += f"\n\n📡 NOW: {current.title} ({_clock(current.start)}-{_clock(current.stop)})"
        if current.description:
            description += f"\n\n{current.description}"
    if upcoming:
        description += "\n\n📅 UPCOMING:\n"
        for programme in upcoming:
            description += f"{_clock(programme.start)} - {programme.title}\n"
    return description


def channel_meta(channel: Channel, epg: EpgData, offset_hours: float = 0.0, now: Optional[datetime] = None) -> dict:
    epg_id = channel_epg_id(channel)
    current = current_programme(epg, epg_id, now, offset_hours)
    upcoming = upcoming_programmes(epg, epg_id, now, limit=3, offset_hours=offset_hours)
    return {
        "id": channel.id,
        "type": CONTENT_TV,
        "name": channel.name,
        "poster": channel_logo(channel),
        "description": channel_description(channel, current, upcoming),
        "genres": item_genres(channel, "Live TV"),
        "runtime": "Live",
    }


def movie_meta(movie: Movie) -> dict:
    return {
        "id": movie.id,
        "type": CONTENT_MOVIE,
        "name": movie.name,
        "poster": movie_poster(movie),
        "description": movie_description(movie),
        "genres": item_genres(movie, "Movie"),
        "year": movie_year(movie),
    }


def episode_video(episode: Episode) -> dict:
    return {
        "id": episode.id,
        "title": episode.title,
        "season": episode.season,
        "episode": episode.episode,
        "released": episode.released,
        "thumbnail": episode.thumbnail,
    }


def series_meta(series: Series, episodes: list[Episode]) -> dict:
    meta = series_preview(series)
    meta["videos"] = [episode_video(e) for e in episodes]
    return meta


def stream_record(url: str, title: str) -> dict:
    return {"url": url, "title": title, "behaviorHints": {"notWebReady": True}}


# ----------------------------------------------------------------------
# Manifest
# ----------------------------------------------------------------------

def build_manifest(config: AddonConfig, genres: list[str]) -> dict:
    catalogs = [
        {
            "type": CONTENT_TV,
            "id": CATALOG_CHANNELS,
            "name": "IPTV Channels",
            "extra": [{"name": "genre"}, {"name": "search"}, {"name": "skip"}],
            "genres": list(genres),
        },
        {
            "type": CONTENT_MOVIE,
            "id": CATALOG_MOVIES,
            "name": "IPTV Movies",
            "extra": [{"name": "search"}, {"name": "skip"}],
        },
    ]
    types = [CONTENT_TV, CONTENT_MOVIE]
    if config.include_series:
        catalogs.append(
            {
                "type": CONTENT_SERIES,
                "id": CATALOG_SERIES,
                "name": "IPTV Series",
                "extra": [{"name": "search"}, {"name": "skip"}],
            }
        )
        types.append(CONTENT_SERIES)
    return {
        "id": ADDON_ID,
        "version": ADDON_VERSION,
        "name": ADDON_NAME,
        "description": "IPTV addon with M3U, EPG & Xtream (JSON/M3U) sources, LRU/Redis cache and EPG offset",
        "resources": ["catalog", "stream", "meta"],
        "types": types,
        "catalogs": catalogs,
        "idPrefixes": [ID_PREFIX],
        "behaviorHints": {"configurable": True, "configurationRequired": False},
    }
