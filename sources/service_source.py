import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional

import aiohttp

from reader.errors import FetchError
from reader.models import FeedPayload
from reader.utils import title_from_url
from sources.base import FeedSource

log = logging.getLogger("darkfeed.sources.service")


class ServiceSource(FeedSource):
    """
    Feed-to-JSON worker client.

    GET {service_url}?url=<feed>[&date=YYYY-MM-DD] answers
    {"status": "ok", "title": ..., "items": [...]} or
    {"status": "error", "message": ...}.
    """
    name = "service"

    def __init__(
        self,
        service_url: str,
        timeout: float = 20,
        user_agent: str = "darkfeed/1.0",
        min_interval_seconds: float = 0,
    ):
        super().__init__(timeout=timeout, user_agent=user_agent)
        self.service_url = service_url
        self.min_interval_seconds = min_interval_seconds
        self._last_call: Dict[str, float] = {}

    def _rate_limited(self, url: str) -> bool:
        if self.min_interval_seconds <= 0:
            return False
        last = self._last_call.get(url)
        return last is not None and time.monotonic() - last < self.min_interval_seconds

    def _params(self, url: str, since: Optional[datetime]) -> Dict[str, str]:
        params = {"url": url}
        if since is not None:
            params["date"] = since.date().isoformat()
        return params

    async def fetch(self, url: str, since: Optional[datetime] = None) -> FeedPayload:
        if self._rate_limited(url):
            log.info("%s fetched less than %.0fs ago, skipped.", url, self.min_interval_seconds)
            return FeedPayload(status="skipped", title="Feed (skipped)", items=[])

        sess = await self._ensure_session()
        try:
            async with sess.get(self.service_url, params=self._params(url, since)) as resp:
                if resp.status < 200 or resp.status >= 300:
                    raise FetchError(f"HTTP error! status: {resp.status}")
                data = await resp.json(content_type=None)
        except FetchError:
            raise
        except asyncio.TimeoutError as e:
            raise FetchError(f"Timeout fetching {url}") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e

        payload = self._to_payload(url, data)
        self._last_call[url] = time.monotonic()
        return payload

    @staticmethod
    def _to_payload(url: str, data: Any) -> FeedPayload:
        if not isinstance(data, dict):
            raise FetchError("Malformed response from feed service")
        if data.get("status") != "ok":
            raise FetchError(data.get("message") or "Failed to parse RSS feed")
        items = data.get("items") or []
        if not isinstance(items, list):
            raise FetchError("Malformed response from feed service: items is not a list")
        feed_meta = data.get("feed") if isinstance(data.get("feed"), dict) else {}
        title = data.get("title") or feed_meta.get("title") or title_from_url(url) or "Unknown Feed"
        return FeedPayload(status="ok", title=str(title), items=items)
