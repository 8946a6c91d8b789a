from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import aiohttp

from reader.models import FeedPayload


class FeedSource(ABC):
    name: str

    def __init__(self, timeout: float = 20, user_agent: str = "darkfeed/1.0"):
        self.timeout = timeout
        self.user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    @abstractmethod
    async def fetch(self, url: str, since: Optional[datetime] = None) -> FeedPayload:
        """
        Fetch one feed. Raises FetchError on transport failure, non-2xx
        status or a malformed payload.
        """
