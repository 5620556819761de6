"""Provider selection — maps a configuration onto exactly one provider variant."""
from __future__ import annotations

from typing import TYPE_CHECKING

from iptv_catalog.errors import ConfigurationError
from iptv_catalog.models.config import PROVIDER_DIRECT, PROVIDER_XTREAM_JSON, PROVIDER_XTREAM_M3U
from iptv_catalog.services.providers.base import BaseProvider
from iptv_catalog.services.providers.direct import DirectProvider
from iptv_catalog.services.providers.xtream import XtreamJsonProvider, XtreamM3uProvider

if TYPE_CHECKING:
    from iptv_catalog.models.config import AddonConfig, Settings
    from iptv_catalog.services.http_client import HttpClientService

PROVIDERS: dict[str, type[BaseProvider]] = {
    PROVIDER_DIRECT: DirectProvider,
    PROVIDER_XTREAM_JSON: XtreamJsonProvider,
    PROVIDER_XTREAM_M3U: XtreamM3uProvider,
}


def create_provider(
    config: "AddonConfig", http_client: "HttpClientService", settings: "Settings"
) -> BaseProvider:
    provider_cls = PROVIDERS.get(config.provider_kind)
    if provider_cls is None:
        raise ConfigurationError(f"Unknown provider kind: {config.provider_kind}")
    return provider_cls(http_client, settings)
