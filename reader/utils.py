import os
import re
import json
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional
from urllib.parse import urlparse

_TAG_RE = re.compile(r"<[^>]*>")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)

# Labels that sit under a two-letter country code: bbc.co.uk, abc.net.au
_SECOND_LEVEL_LABELS = {"co", "com", "org", "net", "ac", "gov"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis(dt: datetime) -> int:
    """Whole milliseconds since the Unix epoch, without float rounding."""
    return (dt - _EPOCH) // _MILLISECOND


def from_epoch_millis(ms: int) -> datetime:
    return _EPOCH + ms * _MILLISECOND


def strip_tags(raw_html: str) -> str:
    """Remove every markup tag. Entities and whitespace are left untouched."""
    return _TAG_RE.sub("", raw_html or "")


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an RFC-822 or ISO-8601 date into an aware UTC datetime, or None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip()
        if not s:
            return None
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            try:
                dt = parsedate_to_datetime(s)
            except (TypeError, ValueError, IndexError, OverflowError):
                return None
            if dt is None:
                return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except OverflowError:
        # 0001-01-01T00:00:00+05:00 has no UTC equivalent
        return None


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def title_from_url(url: str) -> Optional[str]:
    """
    Guess a feed title from its hostname when the feed has none.

    techcrunch.com -> Techcrunch, rss.cnn.com -> Cnn, feeds.bbc.co.uk -> Bbc
    """
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return None
    if not host:
        return None
    parts = re.sub(r"^www\.", "", host).split(".")
    if len(parts) >= 3 and len(parts[-1]) == 2 and parts[-2] in _SECOND_LEVEL_LABELS:
        name = parts[-3]
    elif len(parts) >= 2:
        name = parts[-2]
    else:
        name = parts[0]
    return name[:1].upper() + name[1:]


def atomic_write_json(path: str, data: Any) -> None:
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)
