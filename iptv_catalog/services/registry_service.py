"""Registry service — process-wide store cache with single-flight builds."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from iptv_catalog.services.cache_service import LruCache
from iptv_catalog.services.catalog_service import CatalogStore
from iptv_catalog.services.providers.factory import create_provider

if TYPE_CHECKING:
    from iptv_catalog.models.config import AddonConfig, Settings
    from iptv_catalog.services.cache_service import CacheService
    from iptv_catalog.services.http_client import HttpClientService

logger = logging.getLogger(__name__)


class AddonRegistry:
    """Built catalog stores keyed by configuration cache key.

    Concurrent requests for a configuration that is still being built share
    the first caller's build instead of starting their own.
    """

    def __init__(
        self,
        settings: "Settings",
        http_client: "HttpClientService",
        cache_service: "CacheService",
    ):
        self.settings = settings
        self.http_client = http_client
        self.cache_service = cache_service
        self._stores = LruCache(max_entries=settings.max_cache_entries, ttl=settings.cache_ttl_seconds)
        self._building: dict[str, asyncio.Task] = {}

    async def get_store(self, config: "AddonConfig") -> CatalogStore:
        key = config.cache_key()
        if not self.settings.cache_enabled:
            return await self._build(config)

        store = self._stores.get(key)
        if store is not None:
            return store

        task = self._building.get(key)
        if task is None:
            logger.info(f"[ADDON] Building store for config {key}")
            task = asyncio.create_task(self._build_and_register(key, config))
            self._building[key] = task
            task.add_done_callback(lambda _t, k=key: self._building.pop(k, None))
        return await asyncio.shield(task)

    async def _build_and_register(self, key: str, config: "AddonConfig") -> CatalogStore:
        store = await self._build(config)
        self._stores.set(key, store)
        return store

    async def _build(self, config: "AddonConfig") -> CatalogStore:
        provider = create_provider(config, self.http_client, self.settings)
        store = CatalogStore(config, provider, self.cache_service, self.settings)
        await store.load_from_cache()
        await store.refresh(force=True)
        return store

    def stores(self) -> list[CatalogStore]:
        return [store for store in (self._stores.get(k) for k in self._stores.keys()) if store is not None]

    async def close(self) -> None:
        builds = list(self._building.values())
        for task in builds:
            task.cancel()
        if builds:
            await asyncio.gather(*builds, return_exceptions=True)
        for store in self.stores():
            await store.close()
        self._stores.clear()

    def get_status(self) -> dict:
        return {
            "stores": len(self._stores),
            "building": len(self._building),
        }
