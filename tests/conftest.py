"""Shared pytest fixtures."""
from __future__ import annotations

import pytest

from iptv_catalog.models.config import Settings


@pytest.fixture()
def settings() -> Settings:
    return Settings(cache_enabled=True, redis_url=None, fetch_timeout=5, epg_fetch_timeout=5)
