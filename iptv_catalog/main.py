"""IPTV Catalog — FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from iptv_catalog.models.config import Settings
from iptv_catalog.routes import addon, cache_api, health, logo
from iptv_catalog.services.cache_service import CacheService, SharedStore
from iptv_catalog.services.config_service import ConfigService
from iptv_catalog.services.http_client import HttpClientService
from iptv_catalog.services.registry_service import AddonRegistry

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    shared_store: Optional[SharedStore] = None,
) -> FastAPI:
    """Build the application with its service graph attached to ``app.state``."""
    settings = settings or Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)

    if shared_store is None and settings.redis_url and settings.cache_enabled:
        shared_store = SharedStore.from_url(settings.redis_url)

    http_client = HttpClientService(transport=transport)
    cache_service = CacheService(settings, shared_store=shared_store)
    registry = AddonRegistry(settings, http_client, cache_service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager - handles startup and shutdown"""
        logger.info(
            f"Caching {'ENABLED' if settings.cache_enabled else 'DISABLED'}, "
            f"shared store {'ENABLED' if cache_service.shared_store else 'DISABLED'}"
        )
        yield
        await registry.close()
        await cache_service.close()
        await http_client.close()
        logger.info("Application shutdown complete")

    app = FastAPI(title="IPTV Catalog", lifespan=lifespan)
    app.state.settings = settings
    app.state.config_service = ConfigService(settings)
    app.state.http_client = http_client
    app.state.cache_service = cache_service
    app.state.registry = registry

    # Middleware to ensure UTF-8 charset in JSON responses
    @app.middleware("http")
    async def add_utf8_charset(request: Request, call_next):
        response = await call_next(request)
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and "charset" not in content_type:
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"], allow_headers=["*"])

    app.include_router(health.router)
    app.include_router(cache_api.router)
    app.include_router(logo.router)
    app.include_router(addon.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
