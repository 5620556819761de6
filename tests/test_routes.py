"""Integration tests — hit actual FastAPI routes via Starlette TestClient."""

import httpx
import pytest
from starlette.testclient import TestClient

from iptv_catalog.main import create_app
from iptv_catalog.models.config import Settings
from iptv_catalog.services.cache_service import SharedStore
from iptv_catalog.services.config_service import ConfigService
from iptv_catalog.services.meta_service import logo_candidates
from helpers import PLAYLIST, XMLTV, FakeRedis, make_transport

DIRECT = {"m3uUrl": "http://host/list.m3u", "epgUrl": "http://host/epg.xml", "instanceId": "abc"}


@pytest.fixture()
def upstream_calls():
    return []


@pytest.fixture()
def client(upstream_calls):
    transport = make_transport({"/list.m3u": PLAYLIST, "/epg.xml": XMLTV}, upstream_calls)
    app = create_app(Settings(cache_enabled=True), transport=transport)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def token():
    return ConfigService.encode_token(DIRECT)


class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert "timestamp" in data

    def test_json_charset(self, client):
        resp = client.get("/health")
        assert resp.headers["content-type"] == "application/json; charset=utf-8"


class TestManifest:

    def test_manifest(self, client, token):
        resp = client.get(f"/{token}/manifest.json")
        assert resp.status_code == 200
        manifest = resp.json()
        assert manifest["idPrefixes"] == ["iptv_"]
        assert [c["id"] for c in manifest["catalogs"]] == ["iptv_channels", "iptv_movies", "iptv_series"]
        assert manifest["catalogs"][0]["genres"] == ["All Channels", "News", "UK", "news"]
        assert manifest["types"] == ["tv", "movie", "series"]

    def test_manifest_without_series(self, client):
        token = ConfigService.encode_token({**DIRECT, "includeSeries": False})
        manifest = client.get(f"/{token}/manifest.json").json()
        assert "series" not in manifest["types"]

    def test_invalid_token(self, client):
        resp = client.get("/not-a-valid-token!!/manifest.json")
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid configuration token"}


class TestCatalogRoutes:

    def test_channels(self, client, token):
        resp = client.get(f"/{token}/catalog/tv/iptv_channels.json")
        assert resp.status_code == 200
        names = [m["name"] for m in resp.json()["metas"]]
        assert names == ["BBC One", "News 24", "Local News"]

    def test_genre_in_extra_segment(self, client, token):
        resp = client.get(f"/{token}/catalog/tv/iptv_channels/genre=News.json")
        assert [m["name"] for m in resp.json()["metas"]] == ["News 24", "Local News"]

    def test_search_and_skip(self, client, token):
        resp = client.get(f"/{token}/catalog/tv/iptv_channels/search=news&skip=1.json")
        assert [m["name"] for m in resp.json()["metas"]] == ["Local News"]

    def test_movies(self, client, token):
        metas = client.get(f"/{token}/catalog/movie/iptv_movies.json").json()["metas"]
        assert metas[0]["name"] == "Inception (2010)"
        assert metas[0]["year"] == 2010
        assert metas[0]["poster"] == "http://logos/inception.jpg"

    def test_series(self, client, token):
        metas = client.get(f"/{token}/catalog/series/iptv_series.json").json()["metas"]
        assert [m["name"] for m in metas] == ["Breaking Bad"]

    def test_store_is_built_once(self, client, token, upstream_calls):
        client.get(f"/{token}/catalog/tv/iptv_channels.json")
        other = ConfigService.encode_token({**DIRECT, "instanceId": "different"})
        client.get(f"/{other}/catalog/movie/iptv_movies.json")
        assert [c.url.path for c in upstream_calls] == ["/list.m3u", "/epg.xml"]

    def test_upstream_down_returns_empty_list(self, upstream_calls):
        transport = make_transport({"/list.m3u": 500}, upstream_calls)
        with TestClient(create_app(Settings(), transport=transport)) as c:
            token = ConfigService.encode_token({"m3uUrl": "http://host/list.m3u"})
            resp = c.get(f"/{token}/catalog/tv/iptv_channels.json")
        assert resp.status_code == 200
        assert resp.json() == {"metas": []}


class TestStreamAndMetaRoutes:

    def _first(self, client, token, content_type, catalog_id):
        return client.get(f"/{token}/catalog/{content_type}/{catalog_id}.json").json()["metas"][0]

    def test_stream(self, client, token):
        channel = self._first(client, token, "tv", "iptv_channels")
        streams = client.get(f"/{token}/stream/tv/{channel['id']}.json").json()["streams"]
        assert streams == [
            {"url": "http://streams/bbc1", "title": "BBC One - Live", "behaviorHints": {"notWebReady": True}}
        ]

    def test_unknown_stream(self, client, token):
        assert client.get(f"/{token}/stream/tv/iptv_missing.json").json() == {"streams": []}

    def test_channel_meta(self, client, token):
        channel = self._first(client, token, "tv", "iptv_channels")
        meta = client.get(f"/{token}/meta/tv/{channel['id']}.json").json()["meta"]
        assert meta["description"].startswith("📺 CHANNEL: BBC One")
        assert meta["poster"] == "http://logos/bbc1.png"

    def test_series_meta_and_episode_stream(self, client, token):
        series = self._first(client, token, "series", "iptv_series")
        meta = client.get(f"/{token}/meta/series/{series['id']}.json").json()["meta"]
        assert [(v["season"], v["episode"]) for v in meta["videos"]] == [(1, 1), (1, 2), (2, 1)]

        episode_id = meta["videos"][0]["id"]
        streams = client.get(f"/{token}/stream/series/{episode_id}.json").json()["streams"]
        assert streams[0]["url"] == "http://streams/bb-s01e01.mp4"

    def test_unknown_meta(self, client, token):
        assert client.get(f"/{token}/meta/movie/iptv_missing.json").json() == {"meta": None}


class TestCacheStatus:

    def test_status_lists_built_stores(self, client, token):
        client.get(f"/{token}/manifest.json")
        data = client.get("/api/cache/status").json()
        assert data["cache"]["enabled"] is True
        assert data["registry"]["stores"] == 1
        assert data["stores"][0]["channels"] == 3
        assert data["stores"][0]["provider"] == "direct"

    def test_shared_store_is_closed_on_shutdown(self):
        redis = FakeRedis()
        app = create_app(Settings(), transport=make_transport({}), shared_store=SharedStore(redis))
        with TestClient(app) as c:
            assert c.get("/api/cache/status").json()["cache"]["shared_store"] is True
        assert redis.closed is True


class TestLogoRoute:

    def _app(self, calls):
        image = httpx.Response(200, content=b"\x89PNG" + b"0" * 100, headers={"content-type": "image/png"})
        transport = make_transport({"/logos/bbc1.png": image}, calls)
        return create_app(Settings(), transport=transport)

    def test_tries_id_spellings_against_sources(self, upstream_calls):
        token = ConfigService.encode_token({**DIRECT, "logoSources": ["http://logos.test/logos/{id}.png"]})
        with TestClient(self._app(upstream_calls)) as c:
            resp = c.get(f"/{token}/logo/bbc1.uk.png")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.headers["cache-control"] == "public, max-age=21600"
        assert [r.url.path for r in upstream_calls] == ["/logos/bbc1.uk.png", "/logos/bbc1.png"]

    def test_placeholder_when_nothing_found(self, upstream_calls):
        token = ConfigService.encode_token({**DIRECT, "logoSources": ["http://logos.test/missing/{id}.png"]})
        with TestClient(self._app(upstream_calls)) as c:
            resp = c.get(f"/{token}/logo/itv1.uk.png", follow_redirects=False)
        assert resp.status_code == 302
        assert resp.headers["location"].endswith("text=ITV1")


def test_logo_candidates():
    assert logo_candidates("bbc.one.uk") == ["bbc.one.uk", "bbc.one", "bbc-one", "bbc_one"]
    assert logo_candidates("cnn") == ["cnn"]
