"""Channel logo lookup route — resolves ``logo/<tvg-id>.png`` against logo sources."""
from __future__ import annotations

import logging
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse, Response

from iptv_catalog.dependencies import get_config_service, get_http_client
from iptv_catalog.errors import ConfigurationError
from iptv_catalog.services.config_service import ConfigService
from iptv_catalog.services.http_client import HttpClientService
from iptv_catalog.services.meta_service import DEFAULT_LOGO_SOURCES, logo_candidates, logo_placeholder

logger = logging.getLogger(__name__)

router = APIRouter(tags=["logo"])

LOGO_TIMEOUT = 10.0
MIN_LOGO_BYTES = 50


@router.get("/{token}/logo/{tvg_id}.png")
async def channel_logo(
    token: str,
    tvg_id: str,
    config_service: ConfigService = Depends(get_config_service),
    http_client: HttpClientService = Depends(get_http_client),
):
    try:
        config = config_service.decode_token(token)
    except ConfigurationError:
        return RedirectResponse(url=logo_placeholder(tvg_id), status_code=302)

    sources = config.logo_sources or list(DEFAULT_LOGO_SOURCES)
    client = await http_client.get_client()
    for candidate in logo_candidates(tvg_id):
        for template in sources:
            url = template.replace("{id}", quote(candidate, safe=""))
            try:
                resp = await client.get(url, timeout=LOGO_TIMEOUT)
            except httpx.HTTPError as e:
                logger.debug(f"[LOGO] {url} failed: {e}")
                continue
            if resp.is_success and len(resp.content) > MIN_LOGO_BYTES:
                return Response(
                    content=resp.content,
                    media_type=resp.headers.get("content-type", "image/png"),
                    headers={"Cache-Control": "public, max-age=21600"},
                )
    return RedirectResponse(url=logo_placeholder(tvg_id), status_code=302)
