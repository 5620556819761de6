"""FastAPI dependency injection — provides services via Depends()."""
from __future__ import annotations

from fastapi import Request

from iptv_catalog.models.config import Settings
from iptv_catalog.services.cache_service import CacheService
from iptv_catalog.services.config_service import ConfigService
from iptv_catalog.services.http_client import HttpClientService
from iptv_catalog.services.registry_service import AddonRegistry


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_config_service(request: Request) -> ConfigService:
    return request.app.state.config_service


def get_http_client(request: Request) -> HttpClientService:
    return request.app.state.http_client


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache_service


def get_registry(request: Request) -> AddonRegistry:
    return request.app.state.registry
