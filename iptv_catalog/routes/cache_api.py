"""Cache status API route."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from iptv_catalog.dependencies import get_cache_service, get_registry
from iptv_catalog.services.cache_service import CacheService
from iptv_catalog.services.registry_service import AddonRegistry

router = APIRouter(tags=["cache"])


@router.get("/api/cache/status")
async def cache_status(
    cache: CacheService = Depends(get_cache_service),
    registry: AddonRegistry = Depends(get_registry),
):
    return {
        "cache": cache.get_status(),
        "registry": registry.get_status(),
        "stores": [store.get_status() for store in registry.stores()],
    }
