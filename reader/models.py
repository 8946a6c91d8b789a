from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from reader.utils import format_timestamp, parse_timestamp, utc_now


@dataclass(frozen=True)
class Feed:
    id: str
    title: str
    url: str
    unread_count: int = 0
    category: Optional[str] = None
    last_fetch_time: Optional[datetime] = None  # UTC

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "unreadCount": self.unread_count,
            "category": self.category,
            "fetchTime": format_timestamp(self.last_fetch_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Feed":
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            unread_count=max(0, int(data.get("unreadCount") or 0)),
            category=data.get("category") or None,
            last_fetch_time=parse_timestamp(data.get("fetchTime") or data.get("lastFetchTime")),
        )


@dataclass(frozen=True)
class Article:
    id: str
    feed_id: str
    feed_title: str
    title: str
    description: str  # plain text
    content: str  # HTML as received, sanitized at render time
    url: str
    published_at: datetime  # UTC
    is_read: bool = False
    is_starred: bool = False
    is_bookmarked: bool = False
    author: str = ""
    sort_order: int = 0  # display only, never persisted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "feedId": self.feed_id,
            "feedTitle": self.feed_title,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "url": self.url,
            "publishedAt": format_timestamp(self.published_at),
            "isRead": self.is_read,
            "isStarred": self.is_starred,
            "isBookmarked": self.is_bookmarked,
            "author": self.author,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Article":
        return cls(
            id=str(data["id"]),
            feed_id=str(data["feedId"]),
            feed_title=str(data.get("feedTitle") or ""),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            content=str(data.get("content") or ""),
            url=str(data.get("url") or ""),
            published_at=parse_timestamp(data.get("publishedAt")) or utc_now(),
            is_read=bool(data.get("isRead", False)),
            is_starred=bool(data.get("isStarred", False)),
            is_bookmarked=bool(data.get("isBookmarked", False)),
            author=str(data.get("author") or ""),
        )


@dataclass(frozen=True)
class FeedPayload:
    """Normalized output of a feed source."""
    status: str  # "ok" | "skipped"
    title: str
    items: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"


@dataclass(frozen=True)
class RefreshResult:
    feed: Feed
    new_articles: List[Article] = field(default_factory=list)
    error: Optional[str] = None
    skipped: bool = False
    evicted: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None
