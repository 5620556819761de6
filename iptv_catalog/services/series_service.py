"""Series grouping — clusters series-type playlist entries into shows and episodes."""
from __future__ import annotations

import logging
import re
from typing import Iterable

from iptv_catalog.models.catalog import (
    EPISODE_ID_PREFIX,
    SERIES_ID_PREFIX,
    Episode,
    PlaylistItem,
    Series,
)
from iptv_catalog.services.m3u_service import short_hash

logger = logging.getLogger(__name__)

EPISODE_SUFFIX_RE = re.compile(r"\bS\d{1,2}E\d{1,2}\b.*$", re.IGNORECASE)
SEASON_SUFFIX_RE = re.compile(r"\bSeason\s?\d+.*$", re.IGNORECASE)
TRAILING_SEPARATORS_RE = re.compile(r"[\s\-._]+$")

SEASON_EPISODE_PATTERNS = (
    re.compile(r"\bS(\d{1,2})E(\d{1,2})\b", re.IGNORECASE),
    re.compile(r"\bSeason\s?(\d{1,2}).*?\bEpisode\s?(\d{1,3})\b", re.IGNORECASE),
    re.compile(r"\bSeason\s?(\d{1,2}).*?\bEp\s?(\d{1,3})\b", re.IGNORECASE),
)


def base_series_name(raw: str) -> str:
    """Strip the episode / season suffix and trailing separators from a title."""
    if not raw:
        return ""
    name = EPISODE_SUFFIX_RE.sub("", raw)
    name = SEASON_SUFFIX_RE.sub("", name)
    name = TRAILING_SEPARATORS_RE.sub("", name)
    return name.strip()


def extract_season_episode(title: str) -> tuple[int, int]:
    """Return (season, episode); (1, 0) when the title carries neither."""
    for pattern in SEASON_EPISODE_PATTERNS:
        match = pattern.search(title or "")
        if match:
            return int(match.group(1)), int(match.group(2))
    return 1, 0


def episode_id_for(series_id: str, url: str, season: int, episode: int) -> str:
    return f"{EPISODE_ID_PREFIX}{short_hash(f'{series_id}{url}{season}_{episode}')}"


def group_series(items: Iterable[PlaylistItem]) -> tuple[list[Series], dict[str, list[Episode]]]:
    """Group series entries by exact base name.

    Returns the series records (first-seen order) and their episodes keyed by
    series id, each list sorted by (season, episode).
    """
    series_by_name: dict[str, Series] = {}
    episodes: dict[str, list[Episode]] = {}

    for item in items:
        base_name = base_series_name(item.name)
        if not base_name:
            continue

        series = series_by_name.get(base_name)
        if series is None:
            series_hash = short_hash(base_name)
            logo = item.logo or item.attributes.get("tvg-logo")
            category = item.category or item.attributes.get("group-title")
            plot = item.attributes.get("plot") or ""
            attributes = {"plot": plot}
            if logo:
                attributes["tvg-logo"] = logo
            if category:
                attributes["group-title"] = category
            series = Series(
                id=f"{SERIES_ID_PREFIX}{series_hash}",
                series_id=series_hash,
                name=base_name,
                poster=logo,
                logo=logo,
                plot=plot,
                category=category,
                attributes=attributes,
            )
            series_by_name[base_name] = series
            episodes[series.id] = []

        season, episode = extract_season_episode(item.name)
        episode_id = episode_id_for(series.id, item.url, season, episode)
        episodes[series.id].append(
            Episode(
                id=episode_id,
                title=item.name,
                season=season,
                episode=episode,
                thumbnail=item.logo or item.attributes.get("tvg-logo"),
                url=item.url,
                stream_id=episode_id,
            )
        )

    for episode_list in episodes.values():
        episode_list.sort(key=lambda e: (e.season, e.episode))

    logger.debug(
        f"Grouped {sum(len(v) for v in episodes.values())} episodes into {len(series_by_name)} series"
    )
    return list(series_by_name.values()), episodes
