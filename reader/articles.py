"""Read / star / bookmark state changes and feed renames."""

import dataclasses
import logging
from typing import Iterable, List, Optional, Tuple

from reader.models import Article, Feed
from reader.store import Store
from reader.unread import apply_delta

log = logging.getLogger("darkfeed.articles")


def toggle_read(article: Article) -> Article:
    return dataclasses.replace(article, is_read=not article.is_read)


def toggle_star(article: Article) -> Article:
    return dataclasses.replace(article, is_starred=not article.is_starred)


def toggle_bookmark(article: Article) -> Article:
    return dataclasses.replace(article, is_bookmarked=not article.is_bookmarked)


def unread_delta(before: Article, after: Article) -> int:
    """Change to the feed's unread counter caused by before -> after."""
    return int(not after.is_read) - int(not before.is_read)


def mark_all_read(articles: Iterable[Article], feed_id: str) -> List[Article]:
    """Copies of the feed's articles that were unread, now marked read."""
    return [
        dataclasses.replace(a, is_read=True)
        for a in articles
        if a.feed_id == feed_id and not a.is_read
    ]


def rename_feed(feed: Feed, articles: Iterable[Article], new_title: str) -> Tuple[Feed, List[Article]]:
    """Renamed feed plus the copies of its articles whose feed_title changed."""
    renamed = dataclasses.replace(feed, title=new_title)
    touched = [
        dataclasses.replace(a, feed_title=new_title)
        for a in articles
        if a.feed_id == feed.id and a.feed_title != new_title
    ]
    return renamed, touched


class ArticleService:
    """Applies user actions to a store, keeping feed counters in step."""

    def __init__(self, store: Store):
        self.store = store

    def _find(self, article_id: str) -> Article:
        for a in self.store.load_articles():
            if a.id == article_id:
                return a
        raise KeyError(f"unknown article {article_id}")

    def _adjust_counter(self, feed_id: str, delta: int) -> Optional[Feed]:
        if not delta:
            return None
        feed = self.store.get_feed(feed_id)
        if feed is None:
            log.warning("Article references missing feed %s.", feed_id)
            return None
        feed = apply_delta(feed, delta)
        self.store.save_feed(feed)
        return feed

    def toggle_read(self, article_id: str) -> Article:
        before = self._find(article_id)
        after = toggle_read(before)
        self.store.update_article(after)
        self._adjust_counter(after.feed_id, unread_delta(before, after))
        return after

    def toggle_star(self, article_id: str) -> Article:
        after = toggle_star(self._find(article_id))
        self.store.update_article(after)
        return after

    def toggle_bookmark(self, article_id: str) -> Article:
        after = toggle_bookmark(self._find(article_id))
        self.store.update_article(after)
        return after

    def mark_all_read(self, feed_id: str) -> int:
        changed = mark_all_read(self.store.load_articles(feed_id), feed_id)
        self.store.save_articles(changed)
        feed = self.store.get_feed(feed_id)
        if feed is not None and feed.unread_count != 0:
            self.store.save_feed(dataclasses.replace(feed, unread_count=0))
        return len(changed)

    def rename_feed(self, feed_id: str, new_title: str) -> Feed:
        feed = self.store.get_feed(feed_id)
        if feed is None:
            raise KeyError(f"unknown feed {feed_id}")
        renamed, touched = rename_feed(feed, self.store.load_articles(feed_id), new_title)
        self.store.save_feed(renamed)
        self.store.save_articles(touched)
        log.info("Feed %s renamed to %r (%d article(s) updated).", feed_id, new_title, len(touched))
        return renamed
