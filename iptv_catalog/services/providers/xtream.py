"""Xtream Codes providers — JSON player API and the get.php M3U variant."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote

from dateutil import parser as date_parser

from iptv_catalog.errors import CatalogError, ConfigurationError, ParseError
from iptv_catalog.models.catalog import (
    EPISODE_ID_PREFIX,
    SERIES_ID_PREFIX,
    CatalogSnapshot,
    Channel,
    Episode,
    Movie,
    Series,
)
from iptv_catalog.models.config import PROVIDER_XTREAM_JSON, PROVIDER_XTREAM_M3U
from iptv_catalog.services.providers.base import BaseProvider, normalize_series_id

if TYPE_CHECKING:
    from iptv_catalog.models.config import AddonConfig

logger = logging.getLogger(__name__)


def build_category_map(categories: Any) -> dict[str, str]:
    """Build a category_id -> category_name map."""
    cat_map: dict[str, str] = {}
    if not isinstance(categories, list):
        return cat_map
    for cat in categories:
        if isinstance(cat, dict):
            cat_map[str(cat.get("category_id", ""))] = cat.get("category_name", "")
    return cat_map


def release_year(value: Any) -> Optional[int]:
    if not value:
        return None
    try:
        return date_parser.parse(str(value)).year
    except (ValueError, OverflowError):
        return None


def _clean_attributes(**values: Any) -> dict[str, str]:
    return {key.replace("_", "-"): str(value) for key, value in values.items() if value not in (None, "")}


def _dict_items(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class XtreamBase(BaseProvider):
    """Credential handling and EPG source selection shared by both variants."""

    @staticmethod
    def credentials(config: "AddonConfig") -> tuple[str, str, str]:
        if not config.xtream_url or not config.xtream_username or not config.xtream_password:
            raise ConfigurationError("Xtream credentials incomplete")
        return config.xtream_url, config.xtream_username, config.xtream_password

    async def fetch_xtream_epg(self, config: "AddonConfig") -> dict:
        if config.epg_url:
            return await self.fetch_epg(config.epg_url)
        host, username, password = self.credentials(config)
        return await self.fetch_epg(
            f"{host}/xmltv.php", params={"username": username, "password": password}
        )


class XtreamJsonProvider(XtreamBase):
    kind = PROVIDER_XTREAM_JSON
    lazy_series_info = True

    async def _player_api(self, config: "AddonConfig", action: str, **extra: Any) -> Any:
        host, username, password = self.credentials(config)
        params = {"username": username, "password": password, "action": action, **extra}
        return await self.http_client.fetch_json(
            f"{host}/player_api.php",
            params=params,
            timeout=self.settings.fetch_timeout,
            max_bytes=self.settings.max_playlist_bytes,
            label=action,
        )

    async def _categories(self, config: "AddonConfig", action: str) -> dict[str, str]:
        try:
            return build_category_map(await self._player_api(config, action))
        except CatalogError as e:
            logger.warning(f"[{self.kind}] {action} unavailable: {e}")
            return {}

    async def fetch_data(self, config: "AddonConfig") -> CatalogSnapshot:
        host, username, password = self.credentials(config)
        user, pwd = quote(username, safe=""), quote(password, safe="")

        live = await self._player_api(config, "get_live_streams")
        vod = await self._player_api(config, "get_vod_streams")
        live_cats = await self._categories(config, "get_live_categories")
        vod_cats = await self._categories(config, "get_vod_categories")

        snapshot = CatalogSnapshot()
        for stream in _dict_items(live):
            stream_id = stream.get("stream_id")
            if stream_id in (None, ""):
                continue
            category = stream.get("category_name") or live_cats.get(str(stream.get("category_id", "")))
            snapshot.channels.append(
                Channel(
                    id=f"iptv_live_{stream_id}",
                    name=stream.get("name") or f"Channel {stream_id}",
                    url=f"{host}/live/{user}/{pwd}/{stream_id}.m3u8",
                    logo=stream.get("stream_icon") or None,
                    category=category or None,
                    epg_channel_id=stream.get("epg_channel_id") or None,
                    attributes=_clean_attributes(
                        tvg_logo=stream.get("stream_icon"),
                        tvg_id=stream.get("epg_channel_id"),
                        group_title=category,
                    ),
                )
            )

        for stream in _dict_items(vod):
            stream_id = stream.get("stream_id")
            if stream_id in (None, ""):
                continue
            extension = stream.get("container_extension") or "mp4"
            category = stream.get("category_name") or vod_cats.get(str(stream.get("category_id", ""))) or "Movies"
            snapshot.movies.append(
                Movie(
                    id=f"iptv_vod_{stream_id}",
                    name=stream.get("name") or f"Movie {stream_id}",
                    url=f"{host}/movie/{user}/{pwd}/{stream_id}.{extension}",
                    poster=stream.get("stream_icon") or None,
                    logo=stream.get("stream_icon") or None,
                    plot=stream.get("plot") or None,
                    year=release_year(stream.get("releasedate") or stream.get("release_date")),
                    category=category,
                    attributes=_clean_attributes(
                        tvg_logo=stream.get("stream_icon"),
                        group_title=category,
                        plot=stream.get("plot"),
                    ),
                )
            )

        if config.include_series:
            snapshot.series = await self._fetch_series_list(config)

        if config.enable_epg:
            snapshot.epg_data = await self.fetch_xtream_epg(config)

        logger.info(
            f"[{self.kind}] Fetched {len(snapshot.channels)} channels, "
            f"{len(snapshot.movies)} movies, {len(snapshot.series)} series"
        )
        return snapshot

    async def _fetch_series_list(self, config: "AddonConfig") -> list[Series]:
        try:
            series_list = await self._player_api(config, "get_series")
        except CatalogError as e:
            logger.warning(f"[{self.kind}] Series list unavailable: {e}")
            return []
        series_cats = await self._categories(config, "get_series_categories")
        result: list[Series] = []
        for item in _dict_items(series_list):
            series_id = item.get("series_id")
            if series_id in (None, ""):
                continue
            category = item.get("category_name") or series_cats.get(str(item.get("category_id", "")))
            result.append(
                Series(
                    id=f"{SERIES_ID_PREFIX}{series_id}",
                    series_id=str(series_id),
                    name=item.get("name") or f"Series {series_id}",
                    poster=item.get("cover") or None,
                    logo=item.get("cover") or None,
                    plot=item.get("plot") or None,
                    category=category or None,
                    attributes=_clean_attributes(
                        tvg_logo=item.get("cover"),
                        group_title=category,
                        plot=item.get("plot"),
                    ),
                )
            )
        return result

    async def fetch_series_info(
        self, config: "AddonConfig", series_id: str, snapshot: CatalogSnapshot
    ) -> list[Episode]:
        host, username, password = self.credentials(config)
        upstream_id = normalize_series_id(series_id)
        data = await self._player_api(config, "get_series_info", series_id=upstream_id)
        if not isinstance(data, dict):
            raise ParseError(f"Unexpected get_series_info payload for series {upstream_id}")

        seasons = data.get("episodes") or {}
        if isinstance(seasons, list):
            # Some panels send a list of season lists instead of a season-keyed object.
            seasons = {str(i + 1): eps for i, eps in enumerate(seasons)}

        user, pwd = quote(username, safe=""), quote(password, safe="")
        episodes: list[Episode] = []
        for season_key, season_episodes in seasons.items():
            for ep in _dict_items(season_episodes):
                ep_id = ep.get("id")
                if ep_id in (None, ""):
                    continue
                info = ep.get("info") if isinstance(ep.get("info"), dict) else {}
                extension = ep.get("container_extension") or "mp4"
                episode_num = _as_int(ep.get("episode_num") or ep.get("episode"), 0)
                episodes.append(
                    Episode(
                        id=f"{EPISODE_ID_PREFIX}{ep_id}",
                        title=ep.get("title") or f"Episode {episode_num}",
                        season=_as_int(ep.get("season") or season_key, 1),
                        episode=episode_num,
                        released=str(ep.get("releasedate") or ep.get("added") or "") or None,
                        thumbnail=info.get("movie_image") or info.get("episode_image") or info.get("cover_big"),
                        url=f"{host}/series/{user}/{pwd}/{ep_id}.{extension}",
                        stream_id=str(ep_id),
                    )
                )

        episodes.sort(key=lambda e: (e.season, e.episode))
        logger.info(f"[{self.kind}] Series {upstream_id}: {len(episodes)} episodes")
        return episodes


class XtreamM3uProvider(XtreamBase):
    kind = PROVIDER_XTREAM_M3U

    async def fetch_data(self, config: "AddonConfig") -> CatalogSnapshot:
        host, username, password = self.credentials(config)
        params = {"username": username, "password": password, "type": "m3u_plus"}
        if config.xtream_output:
            params["output"] = config.xtream_output

        text = await self.fetch_playlist(f"{host}/get.php", params=params, label="Xtream M3U")
        snapshot = self.snapshot_from_playlist(text, config)

        if config.enable_epg:
            snapshot.epg_data = await self.fetch_xtream_epg(config)

        return snapshot

    async def fetch_series_info(
        self, config: "AddonConfig", series_id: str, snapshot: CatalogSnapshot
    ) -> list[Episode]:
        # The M3U endpoint cannot enumerate episodes beyond what the playlist lists.
        return self.precomputed_episodes(series_id, snapshot)
