"""Pydantic models for addon configuration and process settings."""
from __future__ import annotations

import hashlib
import json
import math
import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROVIDER_DIRECT = "direct"
PROVIDER_XTREAM_JSON = "xtream-json"
PROVIDER_XTREAM_M3U = "xtream-m3u"
PROVIDER_KINDS = (PROVIDER_DIRECT, PROVIDER_XTREAM_JSON, PROVIDER_XTREAM_M3U)

MAX_EPG_OFFSET_HOURS = 48


class AddonConfig(BaseModel):
    """One addon configuration, as decoded from the install token.

    Accepts the camelCase names used by the configuration page as well as
    snake_case field names.  Instances are frozen once validated.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    provider: str = PROVIDER_DIRECT  # "direct", "xtream", "xtream-json" or "xtream-m3u"
    use_xtream: bool = Field(False, alias="useXtream")
    m3u_url: str = Field("", alias="m3uUrl")
    epg_url: str = Field("", alias="epgUrl")
    enable_epg: bool = Field(True, alias="enableEpg")
    epg_offset_hours: float = Field(0.0, alias="epgOffsetHours")
    include_series: bool = Field(True, alias="includeSeries")
    xtream_url: str = Field("", alias="xtreamUrl")
    xtream_username: str = Field("", alias="xtreamUsername")
    xtream_password: str = Field("", alias="xtreamPassword")
    xtream_use_m3u: bool = Field(False, alias="xtreamUseM3U")
    xtream_output: str = Field("", alias="xtreamOutput")
    instance_id: Optional[str] = Field(None, alias="instanceId")
    logo_sources: list[str] = Field(default_factory=list, alias="logoSources")

    @field_validator("epg_offset_hours", mode="before")
    @classmethod
    def normalize_epg_offset(cls, value: Any) -> float:
        """Coerce to a finite number in [-48, 48]; anything else becomes 0."""
        if isinstance(value, bool) or value is None:
            return 0.0
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return 0.0
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            return 0.0
        if abs(value) > MAX_EPG_OFFSET_HOURS:
            return 0.0
        return float(value)

    @field_validator("m3u_url", "epg_url", "xtream_url", "xtream_username", "xtream_password", "xtream_output", mode="before")
    @classmethod
    def strip_strings(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("xtream_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def provider_kind(self) -> str:
        """Resolve the provider variant: direct, xtream-json or xtream-m3u."""
        provider = (self.provider or "").lower()
        if provider == PROVIDER_XTREAM_M3U:
            return PROVIDER_XTREAM_M3U
        if provider in ("xtream", PROVIDER_XTREAM_JSON) or self.use_xtream:
            return PROVIDER_XTREAM_M3U if self.xtream_use_m3u else PROVIDER_XTREAM_JSON
        return PROVIDER_DIRECT

    def cache_fields(self) -> dict:
        """The semantic subset of the configuration that identifies a catalog."""
        return {
            "provider": self.provider_kind,
            "m3u_url": self.m3u_url,
            "epg_url": self.epg_url,
            "enable_epg": self.enable_epg,
            "epg_offset_hours": self.epg_offset_hours,
            "include_series": self.include_series,
            "xtream_url": self.xtream_url,
            "xtream_username": self.xtream_username,
            "xtream_password": self.xtream_password,
            "xtream_output": self.xtream_output,
        }

    def cache_key(self) -> str:
        canonical = json.dumps(self.cache_fields(), sort_keys=True, separators=(",", ":"))
        return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() != "false"


class Settings(BaseModel):
    """Process-wide settings, read once from the environment at startup."""
    model_config = ConfigDict(extra="ignore")

    cache_enabled: bool = True
    max_cache_entries: int = 100
    cache_ttl_ms: int = 6 * 3600 * 1000
    redis_url: Optional[str] = None
    fetch_timeout: float = 45.0
    epg_fetch_timeout: float = 45.0
    max_playlist_bytes: int = 100 * 1024 * 1024
    max_epg_bytes: int = 200 * 1024 * 1024
    update_interval: int = 3600  # seconds between successful refreshes
    retry_interval: int = 900  # seconds before retrying a populated store
    page_size: int = 100
    log_level: str = "INFO"
    port: int = 7000

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_ms / 1000.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            "cache_enabled": _env_bool(env.get("CACHE_ENABLED"), True),
            "redis_url": env.get("REDIS_URL") or None,
            "log_level": env.get("LOG_LEVEL", "INFO").upper(),
        }
        for name, key in (
            ("max_cache_entries", "MAX_CACHE_ENTRIES"),
            ("cache_ttl_ms", "CACHE_TTL_MS"),
            ("fetch_timeout", "FETCH_TIMEOUT"),
            ("epg_fetch_timeout", "EPG_FETCH_TIMEOUT"),
            ("max_playlist_bytes", "MAX_PLAYLIST_BYTES"),
            ("max_epg_bytes", "MAX_EPG_BYTES"),
            ("update_interval", "UPDATE_INTERVAL"),
            ("retry_interval", "RETRY_INTERVAL"),
            ("page_size", "PAGE_SIZE"),
            ("port", "PORT"),
        ):
            raw = env.get(key)
            if raw not in (None, ""):
                values[name] = raw
        return cls(**values)
