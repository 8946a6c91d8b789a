"""
JSON import/export of subscriptions.

    {
      "feeds": [Feed.to_dict(), ...],
      "exportedAt": "2025-01-01T00:00:00Z",
      "version": "1.0"
    }
"""

import json
import uuid
import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from reader.errors import ImportFormatError
from reader.models import Feed
from reader.utils import atomic_write_json, format_timestamp, utc_now

log = logging.getLogger("darkfeed.porting")

EXPORT_VERSION = "1.0"


def export_feeds(feeds: Iterable[Feed], now: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "feeds": [f.to_dict() for f in feeds],
        "exportedAt": format_timestamp(now or utc_now()),
        "version": EXPORT_VERSION,
    }


def dump_export(feeds: Iterable[Feed], path: str, now: Optional[datetime] = None) -> int:
    data = export_feeds(feeds, now=now)
    atomic_write_json(path, data)
    return len(data["feeds"])


def is_valid_uuid(value: str) -> bool:
    try:
        return uuid.UUID(str(value)).version in (1, 2, 3, 4, 5)
    except ValueError:
        return False


def parse_import(data: Any) -> List[Feed]:
    """
    Validate an export document and return its feeds.

    Entries without url are dropped. Ids that are not valid UUIDs are replaced.
    Unread counts and fetch times are reset: imported feeds are fetched anew.
    """
    if not isinstance(data, dict) or not isinstance(data.get("feeds"), list):
        raise ImportFormatError("Import file must be an object with a 'feeds' list")
    version = data.get("version")
    if version is not None and version != EXPORT_VERSION:
        log.warning("Import version %s differs from %s, trying anyway.", version, EXPORT_VERSION)

    feeds: List[Feed] = []
    for i, raw in enumerate(data["feeds"]):
        if not isinstance(raw, dict):
            log.warning("Import entry #%d is not an object, ignored.", i)
            continue
        url = str(raw.get("url") or "").strip()
        if not url:
            log.warning("Import entry #%d has no url, ignored.", i)
            continue
        feed_id = raw.get("id")
        if not feed_id or not is_valid_uuid(feed_id):
            feed_id = str(uuid.uuid4())
        feeds.append(Feed(
            id=str(feed_id),
            title=str(raw.get("title") or ""),
            url=url,
            unread_count=0,
            category=raw.get("category") or None,
            last_fetch_time=None,
        ))
    return feeds


def load_import(path: str) -> List[Feed]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"{path} is not valid JSON: {e}") from e
    return parse_import(data)


def dedupe_against_existing(incoming: Iterable[Feed], existing: Iterable[Feed]) -> Tuple[List[Feed], List[Feed]]:
    """
    Split incoming feeds into (fresh, duplicates) by url.

    A url already subscribed, or seen earlier in the same import, is a duplicate.
    Fresh feeds whose id collides with an existing feed get a new id.
    """
    known_urls = {f.url for f in existing}
    known_ids = {f.id for f in existing}
    fresh: List[Feed] = []
    duplicates: List[Feed] = []
    for feed in incoming:
        if feed.url in known_urls:
            duplicates.append(feed)
            continue
        if feed.id in known_ids:
            feed = dataclasses.replace(feed, id=str(uuid.uuid4()))
        known_urls.add(feed.url)
        known_ids.add(feed.id)
        fresh.append(feed)
    return fresh, duplicates
