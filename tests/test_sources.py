"""Tests for feed sources (no network: the aiohttp session is replaced by a fake)."""

import asyncio
from datetime import datetime, timezone

import aiohttp
import pytest

from reader.errors import FetchError
from sources.direct_source import DirectSource, entry_to_item, parse_document
from sources.service_source import ServiceSource

SERVICE = "https://worker.example.com/"
FEED_URL = "https://www.example.com/rss.xml"

RSS_DOC = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example News</title>
    <link>https://www.example.com/</link>
    <item>
      <title>First story</title>
      <link>https://www.example.com/first</link>
      <description>&lt;p&gt;Short &lt;b&gt;summary&lt;/b&gt;&lt;/p&gt;</description>
      <pubDate>Sat, 15 Jun 2024 12:00:00 GMT</pubDate>
      <author>alice@example.com (Alice)</author>
    </item>
    <item>
      <title>Second story</title>
      <link>https://www.example.com/second</link>
    </item>
  </channel>
</rss>
"""


class FakeResponse:
    def __init__(self, status=200, json_data=None, body=b"", exc=None):
        self.status = status
        self._json = json_data
        self._body = body
        self._exc = exc

    async def json(self, content_type="application/json"):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json

    async def read(self):
        return self._body

    async def __aenter__(self):
        if self._exc is not None:
            raise self._exc
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    closed = False

    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, params=None):
        self.calls.append((url, params))
        return self.response

    async def close(self):
        self.closed = True


def _service(response, **kwargs):
    src = ServiceSource(SERVICE, **kwargs)
    src._session = FakeSession(response)
    return src


def _run(coro):
    return asyncio.run(coro)


# ── ServiceSource ─────────────────────────────────────────────

class TestServiceSource:
    def test_ok_payload(self):
        src = _service(FakeResponse(json_data={"status": "ok", "title": "Example", "items": [{"title": "x"}]}))
        payload = _run(src.fetch(FEED_URL))
        assert payload.status == "ok"
        assert payload.title == "Example"
        assert payload.items == [{"title": "x"}]
        assert src._session.calls == [(SERVICE, {"url": FEED_URL})]

    def test_since_adds_date_param(self):
        src = _service(FakeResponse(json_data={"status": "ok", "title": "T", "items": []}))
        _run(src.fetch(FEED_URL, since=datetime(2025, 3, 9, 22, 0, tzinfo=timezone.utc)))
        assert src._session.calls[0][1] == {"url": FEED_URL, "date": "2025-03-09"}

    def test_title_fallback_to_hostname(self):
        src = _service(FakeResponse(json_data={"status": "ok", "items": []}))
        assert _run(src.fetch(FEED_URL)).title == "Example"

    def test_title_from_nested_feed(self):
        src = _service(FakeResponse(json_data={"status": "ok", "feed": {"title": "Nested"}, "items": []}))
        assert _run(src.fetch(FEED_URL)).title == "Nested"

    def test_http_error(self):
        src = _service(FakeResponse(status=404))
        with pytest.raises(FetchError, match="HTTP error! status: 404"):
            _run(src.fetch(FEED_URL))

    def test_service_error_message(self):
        src = _service(FakeResponse(json_data={"status": "error", "message": "Feed not found"}))
        with pytest.raises(FetchError, match="Feed not found"):
            _run(src.fetch(FEED_URL))

    def test_service_error_default_message(self):
        src = _service(FakeResponse(json_data={"status": "error"}))
        with pytest.raises(FetchError, match="Failed to parse RSS feed"):
            _run(src.fetch(FEED_URL))

    def test_invalid_json(self):
        src = _service(FakeResponse(json_data=ValueError("bad json")))
        with pytest.raises(FetchError):
            _run(src.fetch(FEED_URL))

    def test_items_not_a_list(self):
        src = _service(FakeResponse(json_data={"status": "ok", "items": "nope"}))
        with pytest.raises(FetchError):
            _run(src.fetch(FEED_URL))

    def test_network_error(self):
        src = _service(FakeResponse(exc=aiohttp.ClientConnectionError("refused")))
        with pytest.raises(FetchError, match="refused"):
            _run(src.fetch(FEED_URL))

    def test_timeout(self):
        src = _service(FakeResponse(exc=asyncio.TimeoutError()))
        with pytest.raises(FetchError, match="Timeout"):
            _run(src.fetch(FEED_URL))

    def test_dev_rate_limit_skips(self):
        src = _service(FakeResponse(json_data={"status": "ok", "items": []}), min_interval_seconds=180)

        async def twice():
            return await src.fetch(FEED_URL), await src.fetch(FEED_URL)

        first, second = _run(twice())
        assert first.status == "ok"
        assert second.skipped
        assert len(src._session.calls) == 1

    def test_failed_fetch_does_not_arm_rate_limit(self):
        src = _service(FakeResponse(status=502), min_interval_seconds=180)
        with pytest.raises(FetchError):
            _run(src.fetch(FEED_URL))
        src._session.response = FakeResponse(json_data={"status": "ok", "title": "T", "items": []})
        payload = _run(src.fetch(FEED_URL))
        assert payload.status == "ok"
        assert len(src._session.calls) == 2

    def test_close(self):
        src = _service(FakeResponse())
        session = src._session
        _run(src.close())
        assert session.closed


# ── DirectSource ──────────────────────────────────────────────

class TestParseDocument:
    def test_title_and_items(self):
        payload = parse_document(FEED_URL, RSS_DOC)
        assert payload.title == "Example News"
        assert [i["link"] for i in payload.items] == [
            "https://www.example.com/first",
            "https://www.example.com/second",
        ]

    def test_item_fields(self):
        first = parse_document(FEED_URL, RSS_DOC).items[0]
        assert first["title"] == "First story"
        assert "summary" in first["description"]
        assert first["pubDate"] == "2024-06-15T12:00:00Z"

    def test_missing_date_is_none(self):
        second = parse_document(FEED_URL, RSS_DOC).items[1]
        assert second["pubDate"] is None

    def test_garbage_raises(self):
        with pytest.raises(FetchError, match="Invalid RSS/Atom feed"):
            parse_document(FEED_URL, b"<html><body>not a feed")


class TestEntryToItem:
    def test_content_block_preferred(self):
        entry = {"title": "t", "link": "l", "content": [{"value": "<p>full</p>"}], "summary": "short"}
        item = entry_to_item(entry)
        assert item["content"] == "<p>full</p>"
        assert item["description"] == "short"

    def test_dc_creator_author(self):
        assert entry_to_item({"dc_creator": " Bob "})["author"] == "Bob"

    def test_empty_entry(self):
        item = entry_to_item({})
        assert item["title"] is None
        assert item["content"] == ""
        assert item["author"] == ""


class TestDirectSource:
    def test_fetch(self):
        src = DirectSource()
        src._session = FakeSession(FakeResponse(body=RSS_DOC))
        payload = _run(src.fetch(FEED_URL))
        assert payload.title == "Example News"
        assert len(payload.items) == 2

    def test_http_error(self):
        src = DirectSource()
        src._session = FakeSession(FakeResponse(status=503))
        with pytest.raises(FetchError, match="503"):
            _run(src.fetch(FEED_URL))
