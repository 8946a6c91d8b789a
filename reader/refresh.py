"""
Feed refresh orchestration.

Per feed: fetch -> normalize -> merge against stored urls -> save new
articles -> retention over the whole feed -> reconcile unread count ->
save feed with its fetch time.

Feeds are processed one at a time in input order. A feed's failure is
recorded in its own RefreshResult and never stops the batch. Completed
feeds stay committed if a batch is interrupted; re-running is a no-op for
them apart from re-checking state.

Only one refresh may write a given feed's articles at a time. FeedRefresher
refuses a second concurrent refresh of the same feed; the host must not run
two FeedRefresher instances over the same store.
"""

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from reader import merge as merging
from reader import retention, unread
from reader.errors import DuplicateFeedError, FetchError
from reader.models import Feed, FeedPayload, RefreshResult
from reader.monitoring import HealthMonitor
from reader.normalizer import normalize_payload
from reader.porting import dedupe_against_existing
from reader.state import SettingsStore
from reader.store import Store
from reader.throttle import ThrottleDecision, force_refresh, should_fetch
from reader.utils import epoch_millis, from_epoch_millis, utc_now
from sources.base import FeedSource

log = logging.getLogger("darkfeed.refresh")

ALREADY_RUNNING = "refresh already in progress"
ALREADY_EXISTS = "Feed already exists"
SKIPPED_MESSAGE = "Feed fetching skipped by the feed source"


class FeedRefresher:
    def __init__(
        self,
        source: FeedSource,
        store: Store,
        settings: Optional[SettingsStore] = None,
        monitor: Optional[HealthMonitor] = None,
    ):
        self.source = source
        self.store = store
        self.settings = settings
        self.monitor = monitor or HealthMonitor()
        self._in_flight: Set[str] = set()
        self._last_ingest_ms: Dict[str, int] = {}

    # ── throttle ──────────────────────────────────────────────

    def check_throttle(self, force: bool = False, now: Optional[datetime] = None) -> ThrottleDecision:
        if force:
            return force_refresh()
        if self.settings is None:
            return should_fetch(0, None, now=now)
        return should_fetch(
            self.settings.refresh_limit_interval(),
            self.settings.last_fetch_time(),
            now=now,
        )

    # ── single feed ───────────────────────────────────────────

    async def _fetch(self, feed: Feed) -> FeedPayload:
        try:
            payload = await self.source.fetch(feed.url, since=feed.last_fetch_time)
        except FetchError as e:
            self.monitor.record_failure(feed.url, str(e))
            raise
        self.monitor.record_success(feed.url)
        return payload

    def _ingest_time(self, feed: Feed, now: datetime) -> datetime:
        """
        Batch timestamp, strictly increasing per feed at millisecond resolution.
        Article ids embed it, so two batches of one feed never share ids.
        """
        ms = epoch_millis(now)
        last = self._last_ingest_ms.get(feed.id)
        if feed.last_fetch_time is not None:
            stored = epoch_millis(feed.last_fetch_time)
            last = stored if last is None else max(last, stored)
        if last is not None and ms <= last:
            ms = last + 1
        self._last_ingest_ms[feed.id] = ms
        return from_epoch_millis(ms)

    def _apply(self, feed: Feed, payload: FeedPayload, now: datetime) -> RefreshResult:
        now = self._ingest_time(feed, now)
        candidates = normalize_payload(payload, feed.id, feed.title, now=now)
        existing_urls = self.store.load_article_urls(feed.id)
        new_articles = merging.merge(existing_urls, candidates)
        self.store.save_articles(new_articles)

        upstream_urls = merging.article_urls(candidates)
        kept, evicted = retention.partition(self.store.load_articles(feed.id), upstream_urls)
        if evicted:
            self.store.delete_articles(a.id for a in evicted)

        updated = dataclasses.replace(
            feed,
            unread_count=unread.reconcile(feed, kept),
            last_fetch_time=now,
        )
        self.store.save_feed(updated)
        log.info(
            "%s: %d item(s), %d new, %d evicted, %d unread.",
            feed.title or feed.url, len(candidates), len(new_articles), len(evicted), updated.unread_count,
        )
        return RefreshResult(feed=updated, new_articles=new_articles, evicted=len(evicted))

    async def refresh_feed(self, feed: Feed) -> RefreshResult:
        """Refresh one feed. Never raises: failures land in result.error."""
        if feed.id in self._in_flight:
            log.warning("%s: %s.", feed.url, ALREADY_RUNNING)
            return RefreshResult(feed=feed, error=ALREADY_RUNNING)
        self._in_flight.add(feed.id)
        try:
            payload = await self._fetch(feed)
            if payload.skipped:
                log.info("%s: skipped by source.", feed.url)
                return RefreshResult(feed=feed, skipped=True)
            return self._apply(feed, payload, utc_now())
        except FetchError as e:
            log.warning("Failed to refresh feed %s: %s", feed.title or feed.url, e)
            return RefreshResult(feed=feed, error=str(e) or "Unknown error")
        except Exception as e:
            log.exception("Unexpected error refreshing feed %s", feed.url)
            return RefreshResult(feed=feed, error=str(e) or type(e).__name__)
        finally:
            self._in_flight.discard(feed.id)

    # ── batch ─────────────────────────────────────────────────

    async def refresh_all(self, feeds: Optional[Iterable[Feed]] = None, force: bool = False) -> List[RefreshResult]:
        """
        One result per input feed, in input order. When the refresh limit is
        not reached yet (and force is False) every feed is reported skipped.
        """
        feeds = list(self.store.load_feeds() if feeds is None else feeds)
        decision = self.check_throttle(force=force)
        if not decision:
            log.info("Within refresh limit, %d feed(s) not fetched.", len(feeds))
            return [RefreshResult(feed=f, skipped=True) for f in feeds]

        log.info("Refreshing %d feed(s) (%s).", len(feeds), decision.reason)
        results = []
        for feed in feeds:
            results.append(await self.refresh_feed(feed))

        if self.settings is not None:
            self.settings.set_last_fetch_time(utc_now())
        failed = sum(1 for r in results if r.error)
        if failed:
            log.warning("Refresh done: %d/%d feed(s) failed.", failed, len(results))
        return results

    # ── subscriptions ─────────────────────────────────────────

    async def _ingest_new_feed(self, feed: Feed) -> RefreshResult:
        """Fetch a feed that is not stored yet and store it with its articles."""
        payload = await self._fetch(feed)
        if payload.skipped:
            raise FetchError(SKIPPED_MESSAGE)
        stored = dataclasses.replace(
            feed,
            title=payload.title or feed.title or "Unknown Feed",
            unread_count=0,
            last_fetch_time=None,
        )
        # _apply saves the feed last; undo partial writes if it fails
        try:
            return self._apply(stored, payload, utc_now())
        except Exception:
            self.store.delete_feed(stored.id)
            raise

    async def subscribe(self, url: str, category: Optional[str] = None) -> RefreshResult:
        """
        Add a feed and fetch it at once, ignoring the refresh limit.
        Raises DuplicateFeedError, FetchError or the store's own error.
        Nothing is stored on failure.
        """
        url = url.strip()
        if self.store.get_feed_by_url(url) is not None:
            raise DuplicateFeedError(f"Already subscribed to {url}")
        feed = Feed(id=str(uuid.uuid4()), title="", url=url, category=category)
        return await self._ingest_new_feed(feed)

    async def import_feeds(self, feeds: Iterable[Feed]) -> List[RefreshResult]:
        """
        Subscribe to imported feeds, one result per incoming feed in order.
        Urls that already exist yield an error result and are not fetched.
        """
        incoming = list(feeds)
        fresh, _ = dedupe_against_existing(incoming, self.store.load_feeds())
        fresh_by_url = {f.url: f for f in fresh}

        results: List[RefreshResult] = []
        for feed in incoming:
            target = fresh_by_url.pop(feed.url, None)
            if target is None:
                results.append(RefreshResult(feed=feed, error=ALREADY_EXISTS))
                continue
            try:
                results.append(await self._ingest_new_feed(target))
            except FetchError as e:
                log.warning("Failed to import feed %s: %s", target.url, e)
                results.append(RefreshResult(feed=target, error=str(e) or "Unknown error"))
            except Exception as e:
                log.exception("Unexpected error importing feed %s", target.url)
                results.append(RefreshResult(feed=target, error=str(e) or type(e).__name__))
        ok = sum(1 for r in results if r.ok)
        log.info("Import: %d/%d feed(s) added.", ok, len(results))
        return results

    def unsubscribe(self, feed_id: str) -> None:
        self.store.delete_feed(feed_id)
        log.info("Feed %s deleted with its articles.", feed_id)

    # ── self-healing ──────────────────────────────────────────

    def sweep_unread_counts(self) -> List[Feed]:
        """Recompute every feed's unread count; save only those that drifted."""
        feeds = self.store.load_feeds()
        corrected = unread.reconcile_all(feeds, self.store.load_articles())
        for before, after in zip(feeds, corrected):
            if after is not before:
                self.store.save_feed(after)
        return corrected
