"""
Unread counter reconciliation.

`reconcile` is the source of truth for a feed's unread count. The +1/-1
updates done on toggles (`apply_delta`) are only a shortcut and are reset to
the reconciled value after every refresh and on the periodic sweep.
"""

import dataclasses
import logging
from collections import Counter
from typing import Iterable, List

from reader.models import Article, Feed

log = logging.getLogger("darkfeed.unread")


def reconcile(feed: Feed, articles: Iterable[Article]) -> int:
    return sum(1 for a in articles if a.feed_id == feed.id and not a.is_read)


def reconcile_feed(feed: Feed, articles: Iterable[Article]) -> Feed:
    """Return feed with unread_count recomputed from its articles."""
    count = reconcile(feed, articles)
    if count == feed.unread_count:
        return feed
    log.warning(
        "Unread drift on feed %s (%s): stored=%d actual=%d. Corrected.",
        feed.id, feed.title, feed.unread_count, count,
    )
    return dataclasses.replace(feed, unread_count=count)


def reconcile_all(feeds: Iterable[Feed], articles: Iterable[Article]) -> List[Feed]:
    """Full sweep: one pass over the articles, one corrected copy per feed."""
    unread = Counter(a.feed_id for a in articles if not a.is_read)
    out: List[Feed] = []
    for feed in feeds:
        count = unread.get(feed.id, 0)
        if count != feed.unread_count:
            log.warning(
                "Unread drift on feed %s (%s): stored=%d actual=%d. Corrected.",
                feed.id, feed.title, feed.unread_count, count,
            )
            feed = dataclasses.replace(feed, unread_count=count)
        out.append(feed)
    return out


def apply_delta(feed: Feed, delta: int) -> Feed:
    return dataclasses.replace(feed, unread_count=max(0, feed.unread_count + delta))
