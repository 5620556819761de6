"""Error taxonomy shared by providers, the catalog store and the cache layer."""
from __future__ import annotations

from typing import Optional


class CatalogError(Exception):
    """Base class for all catalog ingestion errors."""


class ConfigurationError(CatalogError):
    """Missing or invalid credentials / URLs. Fatal to the refresh that hit it."""


class UpstreamFetchError(CatalogError):
    """Non-2xx response, timeout or network failure talking to an upstream."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(CatalogError):
    """Malformed upstream payload (XMLTV document, Xtream JSON)."""


class CacheBackendError(CatalogError):
    """Shared cache store unreachable or returned garbage."""
