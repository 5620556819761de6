"""Provider base — shared playlist / EPG ingestion for all upstream variants."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from iptv_catalog.errors import CatalogError
from iptv_catalog.models.catalog import SERIES_ID_PREFIX, CatalogSnapshot, Episode
from iptv_catalog.services.epg_service import EpgData, parse_epg
from iptv_catalog.services.m3u_service import parse_m3u, split_by_type
from iptv_catalog.services.series_service import group_series

if TYPE_CHECKING:
    from iptv_catalog.models.config import AddonConfig, Settings
    from iptv_catalog.services.http_client import HttpClientService

logger = logging.getLogger(__name__)


def normalize_series_id(series_id: str) -> str:
    """Strip the public ``iptv_series_`` prefix from a series id."""
    return str(series_id or "").removeprefix(SERIES_ID_PREFIX)


class BaseProvider(ABC):
    """One upstream variant. Produces complete snapshots; never mutates a store."""

    kind: str = ""
    # Episodes come from a per-series upstream call and are memoized by the store.
    lazy_series_info: bool = False

    def __init__(self, http_client: "HttpClientService", settings: "Settings"):
        self.http_client = http_client
        self.settings = settings

    @abstractmethod
    async def fetch_data(self, config: "AddonConfig") -> CatalogSnapshot:
        """Fetch and parse everything for *config* into a new snapshot."""

    @abstractmethod
    async def fetch_series_info(
        self, config: "AddonConfig", series_id: str, snapshot: CatalogSnapshot
    ) -> list[Episode]:
        """Return the sorted episode list for one series."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    async def fetch_playlist(self, url: str, params: Optional[dict] = None, label: str = "M3U") -> str:
        return await self.http_client.fetch_text(
            url,
            params=params,
            timeout=self.settings.fetch_timeout,
            max_bytes=self.settings.max_playlist_bytes,
            label=label,
        )

    def snapshot_from_playlist(self, text: str, config: "AddonConfig") -> CatalogSnapshot:
        items = parse_m3u(text)
        channels, movies, series_items = split_by_type(items)
        snapshot = CatalogSnapshot(channels=channels, movies=movies)
        if config.include_series:
            series, episodes = group_series(series_items)
            snapshot.series = series
            snapshot.series_episodes = episodes
        logger.info(
            f"[{self.kind}] Parsed playlist: {len(channels)} channels, {len(movies)} movies, "
            f"{len(snapshot.series)} series ({len(series_items)} episode entries)"
        )
        return snapshot

    async def fetch_epg(self, url: str, params: Optional[dict] = None) -> EpgData:
        """Fetch and parse an XMLTV feed. Failures are logged and yield no EPG."""
        try:
            content, _ = await self.http_client.fetch_bytes(
                url,
                params=params,
                timeout=self.settings.epg_fetch_timeout,
                max_bytes=self.settings.max_epg_bytes,
                label="EPG",
            )
        except CatalogError as e:
            logger.warning(f"[{self.kind}] EPG fetch failed, continuing without EPG: {e}")
            return {}
        return parse_epg(content)

    @staticmethod
    def precomputed_episodes(series_id: str, snapshot: CatalogSnapshot) -> list[Episode]:
        return list(snapshot.series_episodes.get(f"{SERIES_ID_PREFIX}{normalize_series_id(series_id)}", []))
