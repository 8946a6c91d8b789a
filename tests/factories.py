from datetime import datetime, timedelta, timezone

from reader.models import Article, Feed

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_article(**overrides) -> Article:
    defaults = dict(
        id="feed-1-1718452800000-0",
        feed_id="feed-1",
        feed_title="Test Feed",
        title="Test Article",
        description="Plain description.",
        content="<p>Plain description.</p>",
        url="https://example.com/a",
        published_at=NOW - timedelta(hours=1),
        is_read=False,
        is_starred=False,
        is_bookmarked=False,
        author="Alice",
    )
    defaults.update(overrides)
    return Article(**defaults)


def make_feed(**overrides) -> Feed:
    defaults = dict(
        id="feed-1",
        title="Test Feed",
        url="https://example.com/feed.xml",
        unread_count=0,
        category=None,
        last_fetch_time=None,
    )
    defaults.update(overrides)
    return Feed(**defaults)
