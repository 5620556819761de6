"""Direct provider — a static M3U playlist plus an optional XMLTV URL."""
from __future__ import annotations

from typing import TYPE_CHECKING

from iptv_catalog.errors import ConfigurationError
from iptv_catalog.models.catalog import CatalogSnapshot, Episode
from iptv_catalog.models.config import PROVIDER_DIRECT
from iptv_catalog.services.providers.base import BaseProvider

if TYPE_CHECKING:
    from iptv_catalog.models.config import AddonConfig


class DirectProvider(BaseProvider):
    kind = PROVIDER_DIRECT

    async def fetch_data(self, config: "AddonConfig") -> CatalogSnapshot:
        if not config.m3u_url:
            raise ConfigurationError("Direct provider requires m3uUrl")

        text = await self.fetch_playlist(config.m3u_url)
        snapshot = self.snapshot_from_playlist(text, config)

        if config.enable_epg and config.epg_url:
            snapshot.epg_data = await self.fetch_epg(config.epg_url)

        return snapshot

    async def fetch_series_info(
        self, config: "AddonConfig", series_id: str, snapshot: CatalogSnapshot
    ) -> list[Episode]:
        # Every episode is already known from the playlist.
        return self.precomputed_episodes(series_id, snapshot)
