from datetime import datetime, timedelta
from typing import AbstractSet, Iterable, List, Optional, Tuple

from reader.models import Article
from reader.utils import utc_now

# Not configurable. Compared against the clock at the time retention runs.
RETENTION_WINDOW = timedelta(hours=48)


def is_retained(article: Article, upstream_urls: AbstractSet[str], cutoff: datetime) -> bool:
    return (
        not article.is_read
        or article.is_starred
        or article.is_bookmarked
        or article.published_at > cutoff
        or article.url in upstream_urls
    )


def partition(
    all_articles: Iterable[Article],
    current_upstream_urls: AbstractSet[str],
    now: Optional[datetime] = None,
) -> Tuple[List[Article], List[Article]]:
    """Split articles into (kept, evicted), both in input order."""
    cutoff = (now or utc_now()) - RETENTION_WINDOW
    kept: List[Article] = []
    evicted: List[Article] = []
    for a in all_articles:
        if is_retained(a, current_upstream_urls, cutoff):
            kept.append(a)
        else:
            evicted.append(a)
    return kept, evicted


def retain(
    all_articles: Iterable[Article],
    current_upstream_urls: AbstractSet[str],
    now: Optional[datetime] = None,
) -> List[Article]:
    """
    Keep an article iff it is unread, starred, bookmarked, younger than
    RETENTION_WINDOW, or still present upstream.
    """
    kept, _ = partition(all_articles, current_upstream_urls, now=now)
    return kept
