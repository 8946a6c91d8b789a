import logging
from typing import AbstractSet, Iterable, List, Set

from reader.models import Article

log = logging.getLogger("darkfeed.merge")


def article_urls(articles: Iterable[Article]) -> Set[str]:
    """Dedup keys of the given articles. Empty URLs are not keys."""
    return {a.url for a in articles if a.url}


def merge(existing_urls: AbstractSet[str], candidates: Iterable[Article]) -> List[Article]:
    """
    Return the candidates that are genuinely new, in their original order.

    A candidate is new when its url is non-empty and not in existing_urls.
    Articles without url are never merged. A url repeated within the batch
    is taken once (first occurrence).
    """
    seen: Set[str] = set(existing_urls)
    out: List[Article] = []
    no_url = 0
    for a in candidates:
        if not a.url:
            no_url += 1
            continue
        if a.url in seen:
            continue
        seen.add(a.url)
        out.append(a)
    if no_url:
        log.debug("merge: %d item(s) without url ignored.", no_url)
    return out
