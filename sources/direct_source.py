import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp
import feedparser

from reader.errors import FetchError
from reader.models import FeedPayload
from reader.utils import format_timestamp, title_from_url
from sources.base import FeedSource

log = logging.getLogger("darkfeed.sources.direct")


def _entry_content(entry: Any) -> str:
    content = entry.get("content")
    if content and isinstance(content, list):
        v = content[0].get("value")
        if v:
            return str(v)
    return ""


def _entry_author(entry: Any) -> str:
    for key in ("author", "dc_creator"):
        v = entry.get(key)
        if v:
            return str(v).strip()
    return ""


def _entry_pub_date(entry: Any) -> Optional[str]:
    st = entry.get("published_parsed") or entry.get("updated_parsed")
    if st:
        try:
            return format_timestamp(datetime(*st[:6], tzinfo=timezone.utc))
        except (TypeError, ValueError):
            pass
    # let the normalizer try the raw string
    return entry.get("published") or entry.get("updated") or None


def entry_to_item(entry: Any) -> Dict[str, Any]:
    """Map a feedparser entry to the raw item shape the normalizer reads."""
    return {
        "title": entry.get("title"),
        "description": entry.get("summary") or entry.get("description"),
        "content": _entry_content(entry),
        "link": entry.get("link"),
        "pubDate": _entry_pub_date(entry),
        "author": _entry_author(entry),
    }


def parse_document(url: str, body: bytes) -> FeedPayload:
    feed = feedparser.parse(body)
    entries = feed.get("entries") or []
    if not entries and (feed.get("bozo") or not feed.get("version")):
        exc = feed.get("bozo_exception")
        msg = f"Invalid RSS/Atom feed: {url}"
        if exc:
            msg += f" ({exc})"
        raise FetchError(msg)
    title = (feed.get("feed") or {}).get("title") or title_from_url(url) or "Unknown Feed"
    return FeedPayload(status="ok", title=str(title), items=[entry_to_item(e) for e in entries])


class DirectSource(FeedSource):
    """Downloads the feed document itself and parses it with feedparser."""
    name = "direct"

    async def fetch(self, url: str, since: Optional[datetime] = None) -> FeedPayload:
        sess = await self._ensure_session()
        try:
            async with sess.get(url) as resp:
                if resp.status < 200 or resp.status >= 300:
                    raise FetchError(f"HTTP error! status: {resp.status}")
                body = await resp.read()
        except FetchError:
            raise
        except asyncio.TimeoutError as e:
            raise FetchError(f"Timeout fetching {url}") from e
        except aiohttp.ClientError as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e

        payload = parse_document(url, body)
        log.debug("%s: %d entries.", url, len(payload.items))
        return payload
