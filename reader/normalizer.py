from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from reader.models import Article, FeedPayload
from reader.utils import epoch_millis, parse_timestamp, strip_tags, utc_now

DEFAULT_TITLE = "Untitled"


def _text(item: Dict[str, Any], key: str) -> str:
    v = item.get(key)
    if v is None:
        return ""
    return str(v)


def _published_at(item: Dict[str, Any], ingested_at: datetime) -> datetime:
    return parse_timestamp(item.get("pubDate")) or ingested_at


def _article_id(feed_id: str, ingested_at: datetime, index: int) -> str:
    return f"{feed_id}-{epoch_millis(ingested_at)}-{index}"


def item_to_article(
    item: Dict[str, Any],
    feed_id: str,
    feed_title: str,
    index: int,
    ingested_at: datetime,
) -> Article:
    if not isinstance(item, dict):
        item = {}
    description = _text(item, "description")
    return Article(
        id=_article_id(feed_id, ingested_at, index),
        feed_id=feed_id,
        feed_title=feed_title,
        title=_text(item, "title") or DEFAULT_TITLE,
        description=strip_tags(description),
        content=_text(item, "content") or description,
        url=_text(item, "link").strip(),
        published_at=_published_at(item, ingested_at),
        is_read=False,
        is_starred=False,
        is_bookmarked=False,
        author=_text(item, "author").strip(),
    )


def normalize_items(
    items: Iterable[Dict[str, Any]],
    feed_id: str,
    feed_title: str,
    now: Optional[datetime] = None,
) -> List[Article]:
    """
    Convert raw feed items into Articles, preserving upstream order.

    All items of one batch share the same ingestion timestamp; the index keeps
    their ids distinct. Missing fields get defaults, nothing here raises.
    """
    ingested_at = now or utc_now()
    return [
        item_to_article(item, feed_id, feed_title, i, ingested_at)
        for i, item in enumerate(items or [])
    ]


def normalize_payload(
    payload: FeedPayload,
    feed_id: str,
    feed_title: str,
    now: Optional[datetime] = None,
) -> List[Article]:
    return normalize_items(payload.items, feed_id, feed_title, now=now)
