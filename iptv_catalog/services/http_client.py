"""HTTP client service — managed httpx.AsyncClient with bounded upstream fetches."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Optional

import httpx

from iptv_catalog.errors import ParseError, UpstreamFetchError

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 IPTV-Catalog/1.2",
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
}

DEFAULT_TIMEOUT = 45.0


class HttpClientService:
    """Manages a shared httpx.AsyncClient with connection pooling.

    *transport* lets callers (tests, mostly) swap the network layer out.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client: Optional[httpx.AsyncClient] = None
        self._transport = transport

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=HEADERS,
                timeout=httpx.Timeout(connect=30.0, read=60.0, write=30.0, pool=30.0),
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.info("Global HTTP client closed")

    # ------------------------------------------------------------------
    # Fetch helpers
    # ------------------------------------------------------------------

    async def fetch_bytes(
        self,
        url: str,
        params: Optional[dict] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: Optional[int] = None,
        label: str = "resource",
    ) -> tuple[bytes, Optional[str]]:
        """GET *url* as raw bytes plus the declared charset, if any.

        The body is truncated at *max_bytes*; whatever arrived before the cap is
        returned.  Raises :class:`UpstreamFetchError` on non-2xx, timeout or
        network failure.
        """
        start_time = time.time()
        try:
            body, charset = await asyncio.wait_for(
                self._read_body(url, params, max_bytes, label), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise UpstreamFetchError(f"Timeout fetching {label} after {timeout:.0f}s", url=url) from e
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"Error fetching {label}: {e}", url=url) from e
        logger.debug(f"Fetched {label}: {len(body)} bytes in {time.time() - start_time:.1f}s")
        return body, charset

    async def fetch_text(
        self,
        url: str,
        params: Optional[dict] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: Optional[int] = None,
        label: str = "resource",
    ) -> str:
        """Like :meth:`fetch_bytes`, decoded with the response charset (UTF-8 by default)."""
        body, charset = await self.fetch_bytes(url, params, timeout, max_bytes, label)
        try:
            return body.decode(charset or "utf-8", errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")

    async def _read_body(
        self, url: str, params: Optional[dict], max_bytes: Optional[int], label: str
    ) -> tuple[bytes, Optional[str]]:
        client = await self.get_client()
        async with client.stream("GET", url, params=params) as response:
            if not response.is_success:
                raise UpstreamFetchError(
                    f"{label} fetch failed ({response.status_code})",
                    url=url,
                    status_code=response.status_code,
                )
            chunks: list[bytes] = []
            received = 0
            async for chunk in response.aiter_bytes():
                if max_bytes is not None and received + len(chunk) > max_bytes:
                    chunks.append(chunk[: max_bytes - received])
                    logger.warning(f"{label} exceeded {max_bytes} bytes, truncating")
                    break
                chunks.append(chunk)
                received += len(chunk)
            return b"".join(chunks), response.charset_encoding

    async def fetch_json(
        self,
        url: str,
        params: Optional[dict] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: Optional[int] = None,
        label: str = "resource",
    ) -> Any:
        """GET *url* and decode JSON. Raises UpstreamFetchError / ParseError.

        A body cut off at *max_bytes* is no longer valid JSON and raises ParseError.
        """
        body, _ = await self.fetch_bytes(url, params, timeout, max_bytes, label)
        try:
            return json.loads(body)
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {label}: {e}") from e
