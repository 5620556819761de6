"""Cache service — in-process LRU with optional Redis write-through replica."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import OrderedDict
from typing import TYPE_CHECKING, Any, Callable, Optional

from pydantic import ValidationError
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from iptv_catalog.errors import CacheBackendError
from iptv_catalog.models.catalog import CatalogSnapshot

if TYPE_CHECKING:
    from iptv_catalog.models.config import Settings

logger = logging.getLogger(__name__)

DATA_KEY_PREFIX = "addon:data:"
SHARED_TIMEOUT = 5.0


class LruCache:
    """Bounded least-recently-used mapping with per-entry expiry."""

    def __init__(
        self,
        max_entries: int = 100,
        ttl: Optional[float] = 6 * 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max(1, max_entries)
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Any, Optional[float]]] = OrderedDict()

    def _prune_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (_, expires) in self._entries.items() if expires is not None and expires < now]
        for key in expired:
            del self._entries[key]

    def get(self, key: str, default: Any = None) -> Any:
        self._prune_expired()
        entry = self._entries.get(key)
        if entry is None:
            return default
        self._entries.move_to_end(key)
        return entry[0]

    def set(self, key: str, value: Any) -> None:
        self._prune_expired()
        expires = self._clock() + self.ttl if self.ttl else None
        self._entries[key] = (value, expires)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        self._prune_expired()
        return list(self._entries.keys())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._prune_expired()
        return len(self._entries)


class SharedStore:
    """Thin Redis wrapper; every failure surfaces as :class:`CacheBackendError`."""

    def __init__(self, client: Any):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "SharedStore":
        client = aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=SHARED_TIMEOUT,
            socket_connect_timeout=SHARED_TIMEOUT,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await asyncio.wait_for(self.client.get(key), timeout=SHARED_TIMEOUT)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise CacheBackendError(f"Shared cache get failed: {e}") from e

    async def set(self, key: str, value: str, ttl_ms: Optional[int] = None) -> None:
        try:
            await asyncio.wait_for(self.client.set(key, value, px=ttl_ms or None), timeout=SHARED_TIMEOUT)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise CacheBackendError(f"Shared cache set failed: {e}") from e

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"Error closing shared cache: {e}")


class CacheService:
    """Caches catalog snapshots per configuration key.

    Reads prefer the local LRU and fall back to the shared store on a local
    miss.  Writes go to the LRU immediately and to the shared store in the
    background.  Callers always get their own copy of a snapshot.
    """

    def __init__(self, settings: "Settings", shared_store: Optional[SharedStore] = None):
        self.settings = settings
        self.enabled = settings.cache_enabled
        self.shared_store = shared_store
        self._local = LruCache(max_entries=settings.max_cache_entries, ttl=settings.cache_ttl_seconds)
        self._pending_writes: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def load_snapshot(self, key: str) -> Optional[CatalogSnapshot]:
        if not self.enabled:
            return None
        cache_key = DATA_KEY_PREFIX + key

        cached = self._local.get(cache_key)
        if cached is None and self.shared_store is not None:
            try:
                raw = await self.shared_store.get(cache_key)
            except CacheBackendError as e:
                logger.warning(f"{e}, continuing with local cache only")
                raw = None
            if raw:
                try:
                    cached = json.loads(raw)
                except ValueError as e:
                    logger.warning(f"Discarding unreadable shared cache entry {cache_key}: {e}")
                    cached = None
                if cached is not None:
                    self._local.set(cache_key, cached)

        if cached is None:
            logger.debug(f"[CACHE] Miss for {key}")
            return None
        try:
            snapshot = CatalogSnapshot.from_cache(cached)
        except ValidationError as e:
            logger.warning(f"Discarding invalid cache entry {cache_key}: {e}")
            self._local.delete(cache_key)
            return None
        if not snapshot.is_empty:
            logger.info(
                f"[CACHE] Hit for {key} (channels={len(snapshot.channels)}, "
                f"movies={len(snapshot.movies)}, series={len(snapshot.series)})"
            )
        return snapshot

    async def save_snapshot(self, key: str, snapshot: CatalogSnapshot) -> None:
        if not self.enabled:
            return
        cache_key = DATA_KEY_PREFIX + key
        data = snapshot.to_cache()
        self._local.set(cache_key, data)
        if self.shared_store is not None:
            task = asyncio.create_task(self._write_shared(cache_key, json.dumps(data)))
            self._pending_writes.add(task)
            task.add_done_callback(self._pending_writes.discard)

    async def _write_shared(self, cache_key: str, payload: str) -> None:
        try:
            await self.shared_store.set(cache_key, payload, ttl_ms=self.settings.cache_ttl_ms)
        except CacheBackendError as e:
            logger.warning(f"[REDIS] {e}")

    async def drain(self) -> None:
        """Wait for in-flight shared-store writes."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    def clear(self) -> None:
        self._local.clear()

    async def close(self) -> None:
        await self.drain()
        if self.shared_store is not None:
            await self.shared_store.close()

    def get_status(self) -> dict:
        return {
            "enabled": self.enabled,
            "local_entries": len(self._local),
            "max_entries": self._local.max_entries,
            "ttl_seconds": self.settings.cache_ttl_seconds,
            "shared_store": self.shared_store is not None,
            "pending_shared_writes": len(self._pending_writes),
        }
