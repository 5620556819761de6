"""M3U parsing service — turns playlist text into classified catalog items."""
from __future__ import annotations

import hashlib
import logging
import re
from typing import Optional

from iptv_catalog.models.catalog import (
    CONTENT_MOVIE,
    CONTENT_SERIES,
    CONTENT_TV,
    ID_PREFIX,
    Channel,
    Movie,
    PlaylistItem,
)

logger = logging.getLogger(__name__)

EXTINF_PREFIX = "#EXTINF:"
EXTINF_RE = re.compile(r"#EXTINF:(-?\d+)(?:\s+(.*))?,(.*)")
# Embedded quotes inside a value are not supported.
ATTRIBUTE_RE = re.compile(r'([\w-]+)="([^"]*)"')

MOVIE_NAME_PATTERNS = (
    re.compile(r"\(\d{4}\)\s*$"),
    re.compile(r"\d{4}\."),
    re.compile(r"(?:HD|FHD|4K)$", re.IGNORECASE),
)
SERIES_NAME_PATTERNS = (
    re.compile(r"\bS\d{1,2}E\d{1,2}\b", re.IGNORECASE),
    re.compile(r"\bSeason\s*\d+", re.IGNORECASE),
)


def short_hash(text: str, length: int = 16) -> str:
    """Truncated md5 hex digest.

    16 hex chars (64 bits) keeps ids short; collisions are possible in theory
    and accepted.
    """
    return hashlib.md5(text.encode("utf-8")).hexdigest()[:length]


def parse_attributes(text: str) -> dict[str, str]:
    """Extract ``key="value"`` pairs; later duplicates overwrite earlier ones."""
    return {key: value for key, value in ATTRIBUTE_RE.findall(text or "")}


def is_movie_format(name: str) -> bool:
    return any(p.search(name) for p in MOVIE_NAME_PATTERNS)


def classify(name: str, group_title: str = "") -> str:
    """Classify an entry as movie, series or tv (first match wins)."""
    group = (group_title or "").lower()
    lower = name.lower()
    if "movie" in group or "movie" in lower or is_movie_format(name):
        return CONTENT_MOVIE
    if "series" in group or "show" in group or any(p.search(name) for p in SERIES_NAME_PATTERNS):
        return CONTENT_SERIES
    return CONTENT_TV


def _build_item(duration: int, attributes: dict[str, str], name: str, url: str) -> PlaylistItem:
    item_type = classify(name, attributes.get("group-title", ""))
    fields = {
        "id": f"{ID_PREFIX}{short_hash(name + url)}",
        "name": name,
        "url": url,
        "duration": duration,
        "type": item_type,
        "attributes": attributes,
        "logo": attributes.get("tvg-logo"),
        "category": attributes.get("group-title"),
        "epg_channel_id": attributes.get("tvg-id") or attributes.get("tvg-name"),
        "plot": attributes.get("plot"),
    }
    if item_type == CONTENT_MOVIE:
        return Movie(**fields)
    if item_type == CONTENT_TV:
        return Channel(**fields)
    return PlaylistItem(**fields)


def parse_m3u(content: str) -> list[PlaylistItem]:
    """Parse M3U text into ordered playlist items.

    Malformed ``#EXTINF`` lines are skipped, an ``#EXTINF`` without a URL is
    discarded when the next one starts, and other directives are ignored.
    """
    if not isinstance(content, str):
        raise TypeError(f"M3U content must be str, not {type(content).__name__}")

    items: list[PlaylistItem] = []
    pending: Optional[tuple[int, dict[str, str], str]] = None
    skipped = 0

    for raw in content.splitlines():
        line = raw.strip()
        if line.startswith(EXTINF_PREFIX):
            match = EXTINF_RE.match(line)
            if match is None:
                skipped += 1
                continue
            pending = (
                int(match.group(1)),
                parse_attributes(match.group(2) or ""),
                (match.group(3) or "").strip(),
            )
        elif line and not line.startswith("#") and pending is not None:
            duration, attributes, name = pending
            items.append(_build_item(duration, attributes, name, line))
            pending = None

    if skipped:
        logger.debug(f"Skipped {skipped} malformed #EXTINF line(s)")
    return items


def split_by_type(items: list[PlaylistItem]) -> tuple[list[Channel], list[Movie], list[PlaylistItem]]:
    """Split parsed items into (channels, movies, series candidates)."""
    channels: list[Channel] = []
    movies: list[Movie] = []
    series: list[PlaylistItem] = []
    for item in items:
        if isinstance(item, Movie):
            movies.append(item)
        elif isinstance(item, Channel):
            channels.append(item)
        else:
            series.append(item)
    return channels, movies, series

