"""Catalog store — per-configuration snapshot, refresh policy and read queries."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable, NamedTuple, Optional

from iptv_catalog.models.catalog import (
    CONTENT_MOVIE,
    CONTENT_SERIES,
    CONTENT_TV,
    EPISODE_ID_PREFIX,
    SERIES_ID_PREFIX,
    CatalogItem,
    CatalogSnapshot,
    Channel,
    Episode,
    Movie,
    Series,
)
from iptv_catalog.services import meta_service
from iptv_catalog.services.meta_service import (
    ALL_CHANNELS,
    CATALOG_CHANNELS,
    CATALOG_MOVIES,
    CATALOG_SERIES,
)

if TYPE_CHECKING:
    from iptv_catalog.models.config import AddonConfig, Settings
    from iptv_catalog.services.cache_service import CacheService
    from iptv_catalog.services.providers.base import BaseProvider

logger = logging.getLogger(__name__)

# (content type, catalog id) -> snapshot collection
COLLECTIONS = {
    (CONTENT_TV, CATALOG_CHANNELS): "channels",
    (CONTENT_MOVIE, CATALOG_MOVIES): "movies",
    (CONTENT_SERIES, CATALOG_SERIES): "series",
}


class CatalogState(NamedTuple):
    """Snapshot and the genre facets derived from it, swapped as one value."""

    snapshot: CatalogSnapshot
    genres: list[str]


def compute_genres(snapshot: CatalogSnapshot) -> list[str]:
    groups = {
        (c.category or c.attributes.get("group-title") or "").strip()
        for c in snapshot.channels
    }
    genres = sorted(g for g in groups if g)
    if ALL_CHANNELS not in genres:
        genres.insert(0, ALL_CHANNELS)
    return genres


def _item_category(item: CatalogItem) -> str:
    return item.category or item.attributes.get("group-title") or ""


class CatalogStore:
    """Holds the last committed snapshot for one configuration.

    Reads never wait on upstream: they see whatever was last committed and
    at most schedule a background refresh.  A failed refresh leaves the
    previous snapshot in place.
    """

    def __init__(
        self,
        config: "AddonConfig",
        provider: "BaseProvider",
        cache_service: "CacheService",
        settings: "Settings",
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.provider = provider
        self.cache_service = cache_service
        self.settings = settings
        self.cache_key = config.cache_key()
        self._clock = clock
        self._state = CatalogState(CatalogSnapshot(), [ALL_CHANNELS])
        self._series_info: dict[str, list[Episode]] = {}
        self._refresh_tasks: set[asyncio.Task] = set()
        self._last_attempt = 0.0
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._state.snapshot

    @property
    def genres(self) -> list[str]:
        return list(self._state.genres)

    @property
    def last_update(self) -> float:
        return self._state.snapshot.last_update

    def commit(self, snapshot: CatalogSnapshot) -> None:
        self._state = CatalogState(snapshot, compute_genres(snapshot))

    async def load_from_cache(self) -> bool:
        cached = await self.cache_service.load_snapshot(self.cache_key)
        if cached is None:
            return False
        self.commit(cached)
        return True

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def needs_refresh(self) -> bool:
        now = self._clock()
        snapshot = self._state.snapshot
        if snapshot.last_update and now - snapshot.last_update < self.settings.update_interval:
            return False
        if not snapshot.is_empty and now - self._last_attempt < self.settings.retry_interval:
            return False
        return True

    async def refresh(self, force: bool = False) -> bool:
        """Fetch a new snapshot and commit it. Returns True on success.

        Every provider failure is logged and swallowed here; the previous
        snapshot stays committed.
        """
        if not force and not self.needs_refresh():
            return False
        self._last_attempt = self._clock()
        try:
            snapshot = await self.provider.fetch_data(self.config)
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"[UPDATE] Failed for {self.cache_key} ({self.provider.kind}): {e}")
            return False

        snapshot.last_update = self._clock()
        self.commit(snapshot)
        self.last_error = None
        logger.info(
            f"[UPDATE] {self.cache_key}: {len(snapshot.channels)} channels, "
            f"{len(snapshot.movies)} movies, {len(snapshot.series)} series"
        )
        await self.cache_service.save_snapshot(self.cache_key, snapshot)
        return True

    def trigger_refresh(self) -> Optional[asyncio.Task]:
        """Schedule a refresh in the background if the policy allows one."""
        if not self.needs_refresh():
            return None
        # Claim the attempt now so overlapping reads do not stack refreshes.
        self._last_attempt = self._clock()
        task = asyncio.create_task(self.refresh(force=True))
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_done)
        return task

    def _refresh_done(self, task: asyncio.Task) -> None:
        self._refresh_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[UPDATE] Background refresh crashed: {task.exception()}")

    async def wait_for_refresh(self) -> None:
        if self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel any in-flight background refresh."""
        for task in list(self._refresh_tasks):
            task.cancel()
        await self.wait_for_refresh()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def catalog(
        self,
        content_type: str,
        catalog_id: str,
        genre: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
    ) -> list[dict]:
        self.trigger_refresh()
        snapshot = self._state.snapshot

        attr = COLLECTIONS.get((content_type, catalog_id))
        if attr is None:
            return []
        items: list[CatalogItem] = list(getattr(snapshot, attr))

        if genre and genre != ALL_CHANNELS:
            if content_type == CONTENT_TV:
                wanted = genre.lower()
                items = [i for i in items if _item_category(i).lower() == wanted]
            else:
                items = [i for i in items if _item_category(i) == genre]

        if search:
            query = search.lower()
            if content_type == CONTENT_TV:
                items = [
                    i for i in items
                    if query in i.name.lower() or query in (i.category or "").lower()
                ]
            else:
                items = [i for i in items if query in i.name.lower()]

        skip = max(0, skip)
        page = items[skip:skip + self.settings.page_size]
        return [self._preview(item, snapshot) for item in page]

    def _preview(self, item: CatalogItem, snapshot: CatalogSnapshot) -> dict:
        if isinstance(item, Channel):
            return meta_service.channel_preview(item, snapshot.epg_data, self.config.epg_offset_hours)
        if isinstance(item, Movie):
            return meta_service.movie_preview(item)
        return meta_service.series_preview(item)

    def find_episode(self, episode_id: str) -> Optional[Episode]:
        snapshot = self._state.snapshot
        for episodes in (*self._series_info.values(), *snapshot.series_episodes.values()):
            for episode in episodes:
                if episode.id == episode_id:
                    return episode
        return None

    def find_item(self, item_id: str) -> Optional[CatalogItem]:
        snapshot = self._state.snapshot
        for item in (*snapshot.channels, *snapshot.movies):
            if item.id == item_id:
                return item
        return None

    def find_series(self, series_id: str) -> Optional[Series]:
        for series in self._state.snapshot.series:
            if series.id == series_id:
                return series
        return None

    def get_stream(self, item_id: str) -> Optional[dict]:
        if item_id.startswith(EPISODE_ID_PREFIX):
            episode = self.find_episode(item_id)
            if episode is None:
                return None
            return meta_service.stream_record(episode.url, episode.title)

        item = self.find_item(item_id)
        if item is None:
            return None
        title = f"{item.name} - Live" if item.type == CONTENT_TV else item.name
        return meta_service.stream_record(item.url, title)

    async def get_series_episodes(self, series_id: str) -> list[Episode]:
        snapshot = self._state.snapshot
        if not self.provider.lazy_series_info:
            return await self.provider.fetch_series_info(self.config, series_id, snapshot)

        if series_id in self._series_info:
            return list(self._series_info[series_id])
        try:
            episodes = await self.provider.fetch_series_info(self.config, series_id, snapshot)
        except Exception as e:
            logger.error(f"[SERIES] Episode fetch failed for {series_id}: {e}")
            return []
        self._series_info[series_id] = episodes
        return list(episodes)

    async def get_meta(self, item_id: str, type_hint: Optional[str] = None) -> Optional[dict]:
        if type_hint == CONTENT_SERIES or (
            item_id.startswith(SERIES_ID_PREFIX) and not item_id.startswith(EPISODE_ID_PREFIX)
        ):
            series = self.find_series(item_id)
            if series is not None:
                return meta_service.series_meta(series, await self.get_series_episodes(item_id))
            if type_hint == CONTENT_SERIES:
                return None

        item = self.find_item(item_id)
        if isinstance(item, Channel):
            return meta_service.channel_meta(item, self._state.snapshot.epg_data, self.config.epg_offset_hours)
        if isinstance(item, Movie):
            return meta_service.movie_meta(item)
        return None

    def get_status(self) -> dict:
        snapshot = self._state.snapshot
        return {
            "cache_key": self.cache_key,
            "provider": self.provider.kind,
            "last_update": snapshot.last_update or None,
            "channels": len(snapshot.channels),
            "movies": len(snapshot.movies),
            "series": len(snapshot.series),
            "epg_channels": len(snapshot.epg_data),
            "last_error": self.last_error,
        }
