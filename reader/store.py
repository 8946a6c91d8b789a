import os
import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set

from reader.models import Article, Feed
from reader.utils import atomic_write_json

log = logging.getLogger("darkfeed.store")


class Store(ABC):
    """Persistence boundary. The refresh engine only relies on these methods."""

    @abstractmethod
    def load_feeds(self) -> List[Feed]:
        ...

    @abstractmethod
    def save_feed(self, feed: Feed) -> None:
        ...

    @abstractmethod
    def delete_feed(self, feed_id: str) -> None:
        """Delete a feed and all of its articles."""

    @abstractmethod
    def load_articles(self, feed_id: Optional[str] = None) -> List[Article]:
        ...

    @abstractmethod
    def save_articles(self, articles: Iterable[Article]) -> None:
        ...

    @abstractmethod
    def update_article(self, article: Article) -> None:
        ...

    @abstractmethod
    def delete_articles(self, article_ids: Iterable[str]) -> None:
        ...

    def get_feed(self, feed_id: str) -> Optional[Feed]:
        for f in self.load_feeds():
            if f.id == feed_id:
                return f
        return None

    def get_feed_by_url(self, url: str) -> Optional[Feed]:
        for f in self.load_feeds():
            if f.url == url:
                return f
        return None

    def load_article_urls(self, feed_id: str) -> Set[str]:
        return {a.url for a in self.load_articles(feed_id) if a.url}


class MemoryStore(Store):
    """Dict-backed store; keeps feed and article insertion order."""

    def __init__(self) -> None:
        self._feeds: Dict[str, Feed] = {}
        self._articles: Dict[str, Article] = {}

    def load_feeds(self) -> List[Feed]:
        return list(self._feeds.values())

    def save_feed(self, feed: Feed) -> None:
        self._feeds[feed.id] = feed
        self._changed()

    def delete_feed(self, feed_id: str) -> None:
        self._feeds.pop(feed_id, None)
        self._articles = {k: a for k, a in self._articles.items() if a.feed_id != feed_id}
        self._changed()

    def load_articles(self, feed_id: Optional[str] = None) -> List[Article]:
        if feed_id is None:
            return list(self._articles.values())
        return [a for a in self._articles.values() if a.feed_id == feed_id]

    def save_articles(self, articles: Iterable[Article]) -> None:
        """Insert or update by id. An id already stored under another url is refused."""
        n = 0
        for a in articles:
            current = self._articles.get(a.id)
            if current is not None and current.url != a.url:
                log.error("Article id %s already used by %s, %s not saved.", a.id, current.url, a.url)
                continue
            self._articles[a.id] = a
            n += 1
        if n:
            self._changed()

    def update_article(self, article: Article) -> None:
        if article.id not in self._articles:
            raise KeyError(f"unknown article {article.id}")
        self._articles[article.id] = article
        self._changed()

    def delete_articles(self, article_ids: Iterable[str]) -> None:
        removed = 0
        for aid in article_ids:
            if self._articles.pop(aid, None) is not None:
                removed += 1
        if removed:
            self._changed()

    def _changed(self) -> None:
        pass


class JsonFileStore(MemoryStore):
    """
    MemoryStore persisted to one JSON file, rewritten atomically on every change.

    Schema:
    {
      "feeds": [Feed.to_dict(), ...],
      "articles": [Article.to_dict(), ...]
    }
    """
    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("store not dict")
            feeds = [Feed.from_dict(d) for d in data.get("feeds", [])]
            articles = [Article.from_dict(d) for d in data.get("articles", [])]
        except (OSError, ValueError, KeyError, TypeError) as e:
            # Keep the unreadable file aside instead of overwriting it on next save.
            backup = f"{self.path}.corrupt"
            log.error("Unreadable store %s (%s). Moved to %s, starting empty.", self.path, e, backup)
            os.replace(self.path, backup)
            return
        self._feeds = {f.id: f for f in feeds}
        self._articles = {a.id: a for a in articles}
        log.info("Store %s: %d feed(s), %d article(s).", self.path, len(feeds), len(articles))

    def _changed(self) -> None:
        atomic_write_json(self.path, {
            "feeds": [f.to_dict() for f in self._feeds.values()],
            "articles": [a.to_dict() for a in self._articles.values()],
        })
