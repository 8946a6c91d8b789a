import dataclasses
from typing import Iterable, List, Optional

from reader.models import Article

CHRONOLOGICAL = "chronological"
UNREAD_ON_TOP = "unreadOnTop"
SORT_MODES = (CHRONOLOGICAL, UNREAD_ON_TOP)

ALL = "all"
STARRED = "starred"
BOOKMARKS = "bookmarks"


def filter_articles(articles: Iterable[Article], selection: Optional[str]) -> List[Article]:
    """selection is "all", "starred", "bookmarks" or a feed id."""
    if selection == ALL:
        return list(articles)
    if selection == STARRED:
        return [a for a in articles if a.is_starred]
    if selection == BOOKMARKS:
        return [a for a in articles if a.is_bookmarked]
    return [a for a in articles if a.feed_id == selection]


def sort_articles(articles: Iterable[Article], mode: str = CHRONOLOGICAL) -> List[Article]:
    """Newest first; with unreadOnTop unread articles come before read ones.
    sort_order is reassigned 0..n-1 on the returned copies."""
    if mode not in SORT_MODES:
        raise ValueError(f"unknown sort mode {mode!r}")
    # stable sorts: newest first, then unread on top if asked
    ordered = sorted(articles, key=lambda a: a.published_at, reverse=True)
    if mode == UNREAD_ON_TOP:
        ordered.sort(key=lambda a: a.is_read)
    return [dataclasses.replace(a, sort_order=i) for i, a in enumerate(ordered)]


def article_view(articles: Iterable[Article], selection: Optional[str], mode: str = CHRONOLOGICAL) -> List[Article]:
    return sort_articles(filter_articles(articles, selection), mode)
