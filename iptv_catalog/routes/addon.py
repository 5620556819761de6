"""Addon protocol routes — manifest, catalog, stream and meta under a config token."""
from __future__ import annotations

import logging
from typing import Optional, Union
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from iptv_catalog.dependencies import get_config_service, get_registry
from iptv_catalog.errors import ConfigurationError
from iptv_catalog.services.catalog_service import CatalogStore
from iptv_catalog.services.config_service import ConfigService
from iptv_catalog.services.meta_service import build_manifest
from iptv_catalog.services.registry_service import AddonRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["addon"])


async def _load_store(
    token: str, config_service: ConfigService, registry: AddonRegistry
) -> Union[CatalogStore, JSONResponse]:
    try:
        config = config_service.decode_token(token)
    except ConfigurationError as e:
        logger.warning(f"[SERVER] Rejected token: {e}")
        return JSONResponse({"error": "Invalid configuration token"}, status_code=400)
    try:
        return await registry.get_store(config)
    except ConfigurationError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except Exception as e:
        logger.error(f"[SERVER] Addon build failed: {e}")
        return JSONResponse({"error": "Addon build error"}, status_code=500)


def parse_extra(extra: Optional[str]) -> dict[str, str]:
    """Parse the ``genre=News&skip=100`` path segment into a flat dict."""
    if not extra:
        return {}
    return {key: values[0] for key, values in parse_qs(extra, keep_blank_values=False).items()}


def _as_skip(value: Optional[str]) -> int:
    try:
        return max(0, int(value or 0))
    except ValueError:
        return 0


@router.get("/{token}/manifest.json")
async def manifest(
    token: str,
    config_service: ConfigService = Depends(get_config_service),
    registry: AddonRegistry = Depends(get_registry),
):
    store = await _load_store(token, config_service, registry)
    if isinstance(store, JSONResponse):
        return store
    return build_manifest(store.config, store.genres)


@router.get("/{token}/catalog/{content_type}/{catalog_id}.json")
@router.get("/{token}/catalog/{content_type}/{catalog_id}/{extra}.json")
async def catalog(
    token: str,
    content_type: str,
    catalog_id: str,
    extra: Optional[str] = None,
    genre: Optional[str] = None,
    search: Optional[str] = None,
    skip: Optional[str] = None,
    config_service: ConfigService = Depends(get_config_service),
    registry: AddonRegistry = Depends(get_registry),
):
    store = await _load_store(token, config_service, registry)
    if isinstance(store, JSONResponse):
        return store
    params = parse_extra(extra)
    try:
        metas = store.catalog(
            content_type,
            catalog_id,
            genre=params.get("genre", genre),
            search=params.get("search", search),
            skip=_as_skip(params.get("skip", skip)),
        )
    except Exception as e:
        logger.error(f"[CATALOG] {content_type}/{catalog_id} failed: {e}")
        metas = []
    return {"metas": metas}


@router.get("/{token}/stream/{content_type}/{item_id}.json")
async def stream(
    token: str,
    content_type: str,
    item_id: str,
    config_service: ConfigService = Depends(get_config_service),
    registry: AddonRegistry = Depends(get_registry),
):
    store = await _load_store(token, config_service, registry)
    if isinstance(store, JSONResponse):
        return store
    try:
        found = store.get_stream(item_id)
    except Exception as e:
        logger.error(f"[STREAM] {item_id} failed: {e}")
        found = None
    return {"streams": [found] if found else []}


@router.get("/{token}/meta/{content_type}/{item_id}.json")
async def meta(
    token: str,
    content_type: str,
    item_id: str,
    config_service: ConfigService = Depends(get_config_service),
    registry: AddonRegistry = Depends(get_registry),
):
    store = await _load_store(token, config_service, registry)
    if isinstance(store, JSONResponse):
        return store
    try:
        found = await store.get_meta(item_id, content_type)
    except Exception as e:
        logger.error(f"[META] {item_id} failed: {e}")
        found = None
    return {"meta": found}
