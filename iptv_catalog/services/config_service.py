"""Configuration service — decodes install tokens into validated AddonConfig objects."""
from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from iptv_catalog.errors import ConfigurationError
from iptv_catalog.models.config import AddonConfig

if TYPE_CHECKING:
    from iptv_catalog.models.config import Settings

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 8


class ConfigService:
    """Turns the path token of an addon URL into an :class:`AddonConfig`.

    Tokens are base64 or base64url (unpadded) encoded JSON objects.
    """

    def __init__(self, settings: "Settings"):
        self.settings = settings

    @staticmethod
    def is_config_token(token: str) -> bool:
        return bool(token) and len(token) >= MIN_TOKEN_LENGTH

    @staticmethod
    def encode_token(data: dict) -> str:
        raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    def decode_token(self, token: str) -> AddonConfig:
        if not self.is_config_token(token):
            raise ConfigurationError("Invalid configuration token")
        if token.startswith("enc:"):
            raise ConfigurationError("Encrypted configuration tokens are not supported")

        normalized = token.replace("-", "+").replace("_", "/")
        normalized += "=" * (-len(normalized) % 4)
        try:
            decoded = base64.b64decode(normalized, validate=True)
            data = json.loads(decoded.decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration token: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration token must encode a JSON object")

        try:
            config = AddonConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e.error_count()} error(s)") from e
        logger.debug(f"Decoded configuration {config.cache_key()} ({config.provider_kind})")
        return config
