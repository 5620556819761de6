"""Sample playlists, XMLTV documents and fake upstreams shared by the tests."""
from __future__ import annotations

from typing import Optional

import httpx

PLAYLIST = """#EXTM3U
#EXTINF:-1 tvg-id="bbc1.uk" tvg-logo="http://logos/bbc1.png" group-title="UK",BBC One
http://streams/bbc1
#EXTINF:-1 tvg-id="news24" group-title="News",News 24
http://streams/news24
#EXTINF:-1 group-title="news",Local News
http://streams/localnews
#EXTINF:7200 tvg-logo="http://logos/inception.jpg" group-title="Films",Inception (2010)
http://streams/inception.mp4
#EXTINF:-1 group-title="Shows",Breaking Bad S01E02
http://streams/bb-s01e02.mp4
#EXTINF:-1 group-title="Shows",Breaking Bad S01E01
http://streams/bb-s01e01.mp4
#EXTINF:-1 group-title="Shows",Breaking Bad S02E01
http://streams/bb-s02e01.mp4
"""

XMLTV = """<?xml version="1.0" encoding="UTF-8"?>
<tv>
  <programme channel="bbc1.uk" start="20240115180000 +0000" stop="20240115190000 +0000">
    <title>Six O'Clock News</title>
    <desc>Headlines.</desc>
  </programme>
  <programme channel="bbc1.uk" start="20240115190000 +0000" stop="20240115200000 +0000">
    <title>The One Show</title>
  </programme>
  <programme channel="news24" start="20240115190000 +0000" stop="20240115193000 +0000">
    <desc>No title here.</desc>
  </programme>
</tv>
"""


LATIN1_XMLTV = """<?xml version="1.0" encoding="ISO-8859-1"?>
<tv>
  <programme channel="a" start="20240115180000 +0000" stop="20240115190000 +0000">
    <title>Café Olé</title>
    <desc>Crème brûlée</desc>
  </programme>
</tv>
"""

def make_transport(routes: dict, calls: Optional[list] = None) -> httpx.MockTransport:
    """MockTransport serving ``routes[path]``: text, dict/list (JSON), int status, a Response or a callable."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        body = routes.get(request.url.path)
        if callable(body):
            body = body(request)
        if isinstance(body, httpx.Response):
            return body
        if body is None:
            return httpx.Response(404, text="not found")
        if isinstance(body, int):
            return httpx.Response(body, text="upstream error")
        if isinstance(body, (dict, list)):
            return httpx.Response(200, json=body)
        return httpx.Response(200, text=body)

    return httpx.MockTransport(handler)


class FakeRedis:
    """Minimal async stand-in for a redis.asyncio client."""

    def __init__(self, fail: bool = False):
        self.data: dict[str, str] = {}
        self.fail = fail
        self.closed = False

    async def get(self, key):
        if self.fail:
            from redis.exceptions import ConnectionError
            raise ConnectionError("connection refused")
        return self.data.get(key)

    async def set(self, key, value, px=None):
        if self.fail:
            from redis.exceptions import ConnectionError
            raise ConnectionError("connection refused")
        self.data[key] = value
        return True

    async def aclose(self):
        self.closed = True
