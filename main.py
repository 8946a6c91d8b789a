import sys
import asyncio
import logging
import argparse
from typing import List

from reader import config
from reader.errors import DuplicateFeedError, FetchError, ImportFormatError
from reader.models import RefreshResult
from reader.monitoring import HealthMonitor
from reader.porting import dump_export, load_import
from reader.refresh import FeedRefresher
from reader.state import SettingsStore
from reader.store import JsonFileStore
from sources.base import FeedSource
from sources.direct_source import DirectSource
from sources.service_source import ServiceSource


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("darkfeed")


def build_source(kind: str = config.FEED_SOURCE) -> FeedSource:
    if kind == "direct":
        return DirectSource(timeout=config.FETCH_TIMEOUT, user_agent=config.USER_AGENT)
    if kind == "service":
        return ServiceSource(
            config.FEED_SERVICE_URL,
            timeout=config.FETCH_TIMEOUT,
            user_agent=config.USER_AGENT,
            min_interval_seconds=config.DEV_MIN_FETCH_INTERVAL_SECONDS,
        )
    raise ValueError(f"unknown feed source {kind!r}")


def build_refresher() -> FeedRefresher:
    return FeedRefresher(
        source=build_source(),
        store=JsonFileStore(config.STORE_FILE),
        settings=SettingsStore(config.SETTINGS_FILE, default_interval=config.DEFAULT_REFRESH_LIMIT_INTERVAL),
        monitor=HealthMonitor(alert_threshold=config.FAILURE_ALERT_THRESHOLD),
    )


def report(results: List[RefreshResult]) -> int:
    """Print one line per feed. Returns the number of failed feeds."""
    failed = 0
    for r in results:
        name = r.feed.title or r.feed.url
        if r.error:
            failed += 1
            print(f"ERROR  {name}: {r.error}")
        elif r.skipped:
            print(f"SKIP   {name}")
        else:
            print(f"OK     {name}: +{len(r.new_articles)} new, -{r.evicted} old, {r.feed.unread_count} unread")
    return failed


# =========================
# COMMANDS
# =========================

async def cmd_refresh(refresher: FeedRefresher, args) -> int:
    results = await refresher.refresh_all(force=args.force)
    refresher.sweep_unread_counts()
    return 1 if report(results) else 0


async def cmd_add(refresher: FeedRefresher, args) -> int:
    try:
        result = await refresher.subscribe(args.url, category=args.category)
    except (DuplicateFeedError, FetchError) as e:
        print(f"Failed to add feed: {e}")
        return 1
    report([result])
    return 0


async def cmd_import(refresher: FeedRefresher, args) -> int:
    try:
        feeds = load_import(args.file)
    except (OSError, ImportFormatError) as e:
        print(f"Failed to import {args.file}: {e}")
        return 1
    results = await refresher.import_feeds(feeds)
    report(results)
    return 0


async def cmd_export(refresher: FeedRefresher, args) -> int:
    n = dump_export(refresher.store.load_feeds(), args.file)
    print(f"{n} feed(s) exported to {args.file}")
    return 0


async def cmd_sweep(refresher: FeedRefresher, args) -> int:
    before = {f.id: f.unread_count for f in refresher.store.load_feeds()}
    fixed = [f for f in refresher.sweep_unread_counts() if before.get(f.id) != f.unread_count]
    print(f"{len(fixed)} feed counter(s) corrected")
    return 0


async def cmd_run(refresher: FeedRefresher, args) -> int:
    """Poll loop: runs are sequential, a tick starts only after the previous one ended."""
    log.info("Refresh loop started: every %s min", config.POLL_MINUTES)
    while True:
        results = await refresher.refresh_all()
        refresher.sweep_unread_counts()
        failed = sum(1 for r in results if r.error)
        log.info("Tick done: %d feed(s), %d failed. Status: %s", len(results), failed, refresher.monitor.get_status())
        await asyncio.sleep(config.POLL_MINUTES * 60)


COMMANDS = {
    "run": cmd_run,
    "refresh": cmd_refresh,
    "add": cmd_add,
    "import": cmd_import,
    "export": cmd_export,
    "sweep": cmd_sweep,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="darkfeed", description="Personal RSS reader back end.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="refresh all feeds periodically")

    p = sub.add_parser("refresh", help="refresh all feeds once")
    p.add_argument("--force", action="store_true", help="ignore the refresh limit")

    p = sub.add_parser("add", help="subscribe to a feed")
    p.add_argument("url")
    p.add_argument("--category", default=None)

    p = sub.add_parser("import", help="import feeds from an export file")
    p.add_argument("file")

    p = sub.add_parser("export", help="export feeds to a JSON file")
    p.add_argument("file", nargs="?", default=config.EXPORT_FILE)

    sub.add_parser("sweep", help="recompute every feed's unread count")
    return parser


async def _main(args) -> int:
    refresher = build_refresher()
    try:
        return await COMMANDS[args.command](refresher, args)
    finally:
        await refresher.source.close()


if __name__ == "__main__":
    config.validate_config()
    args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(_main(args)))
    except KeyboardInterrupt:
        log.info("Interrupted.")
