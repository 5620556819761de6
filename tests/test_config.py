"""Tests for configuration models, cache keys and token decoding."""

import base64
import json

import pytest

from iptv_catalog.errors import ConfigurationError
from iptv_catalog.models.config import AddonConfig, Settings
from iptv_catalog.services.config_service import ConfigService


class TestCacheKey:

    def test_instance_id_is_ignored(self):
        a = AddonConfig.model_validate({"m3uUrl": "http://x/list.m3u", "instanceId": "one"})
        b = AddonConfig.model_validate({"m3uUrl": "http://x/list.m3u", "instanceId": "two"})
        assert a.cache_key() == b.cache_key()

    def test_logo_sources_are_ignored(self):
        a = AddonConfig.model_validate({"m3uUrl": "http://x/list.m3u"})
        b = AddonConfig.model_validate({"m3uUrl": "http://x/list.m3u", "logoSources": ["http://l/{id}.png"]})
        assert a.cache_key() == b.cache_key()

    def test_different_m3u_url(self):
        a = AddonConfig.model_validate({"m3uUrl": "http://x/a.m3u"})
        b = AddonConfig.model_validate({"m3uUrl": "http://x/b.m3u"})
        assert a.cache_key() != b.cache_key()

    def test_field_order_and_naming_do_not_matter(self):
        a = AddonConfig.model_validate({"m3uUrl": "http://x/a.m3u", "epgUrl": "http://x/e.xml"})
        b = AddonConfig.model_validate({"epg_url": "http://x/e.xml", "m3u_url": "http://x/a.m3u"})
        assert a.cache_key() == b.cache_key()

    def test_whitespace_is_normalized(self):
        a = AddonConfig.model_validate({"m3uUrl": " http://x/a.m3u "})
        b = AddonConfig.model_validate({"m3uUrl": "http://x/a.m3u"})
        assert a.cache_key() == b.cache_key()

    def test_equivalent_offsets_share_a_key(self):
        a = AddonConfig.model_validate({"m3uUrl": "http://x/a.m3u", "epgOffsetHours": "2"})
        b = AddonConfig.model_validate({"m3uUrl": "http://x/a.m3u", "epgOffsetHours": 2})
        assert a.cache_key() == b.cache_key()


class TestEpgOffset:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (1.5, 1.5),
            ("2.5", 2.5),
            (-48, -48.0),
            (48.5, 0.0),
            ("abc", 0.0),
            (float("inf"), 0.0),
            (float("nan"), 0.0),
            (None, 0.0),
            (True, 0.0),
        ],
    )
    def test_normalization(self, raw, expected):
        config = AddonConfig.model_validate({"epgOffsetHours": raw})
        assert config.epg_offset_hours == expected


class TestProviderKind:

    def test_default_is_direct(self):
        assert AddonConfig().provider_kind == "direct"

    def test_use_xtream_flag(self):
        assert AddonConfig.model_validate({"useXtream": True}).provider_kind == "xtream-json"

    def test_xtream_m3u_variant(self):
        config = AddonConfig.model_validate({"provider": "xtream", "xtreamUseM3U": True})
        assert config.provider_kind == "xtream-m3u"

    def test_explicit_kind(self):
        assert AddonConfig.model_validate({"provider": "xtream-m3u"}).provider_kind == "xtream-m3u"

    def test_trailing_slash_stripped(self):
        config = AddonConfig.model_validate({"xtreamUrl": "http://panel:8080/"})
        assert config.xtream_url == "http://panel:8080"

    def test_config_is_frozen(self):
        config = AddonConfig()
        with pytest.raises(Exception):
            config.m3u_url = "http://other"


class TestDecodeToken:

    def setup_method(self):
        self.service = ConfigService(Settings())

    def test_base64url_round_trip(self):
        token = ConfigService.encode_token({"m3uUrl": "http://x/list.m3u", "enableEpg": False})
        config = self.service.decode_token(token)
        assert config.m3u_url == "http://x/list.m3u"
        assert config.enable_epg is False

    def test_standard_base64_with_padding(self):
        raw = json.dumps({"m3uUrl": "http://x/list.m3u?a=1&b=2"}).encode()
        token = base64.b64encode(raw).decode()
        assert self.service.decode_token(token).m3u_url == "http://x/list.m3u?a=1&b=2"

    def test_short_token_rejected(self):
        with pytest.raises(ConfigurationError):
            self.service.decode_token("abc")

    def test_garbage_rejected(self):
        with pytest.raises(ConfigurationError):
            self.service.decode_token("!!!!not-base64!!!!")

    def test_non_object_rejected(self):
        token = base64.urlsafe_b64encode(b"[1, 2, 3]").decode()
        with pytest.raises(ConfigurationError):
            self.service.decode_token(token)

    def test_encrypted_token_rejected(self):
        with pytest.raises(ConfigurationError):
            self.service.decode_token("enc:abcdefghijkl")


class TestSettings:

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.cache_enabled is True
        assert settings.max_cache_entries == 100
        assert settings.cache_ttl_seconds == 6 * 3600
        assert settings.redis_url is None

    def test_from_env(self):
        settings = Settings.from_env(
            {
                "CACHE_ENABLED": "false",
                "MAX_CACHE_ENTRIES": "5",
                "CACHE_TTL_MS": "60000",
                "REDIS_URL": "redis://cache:6379/0",
                "LOG_LEVEL": "debug",
                "PORT": "8080",
            }
        )
        assert settings.cache_enabled is False
        assert settings.max_cache_entries == 5
        assert settings.cache_ttl_seconds == 60
        assert settings.redis_url == "redis://cache:6379/0"
        assert settings.log_level == "DEBUG"
        assert settings.port == 8080
