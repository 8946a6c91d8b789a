from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from reader.utils import utc_now

NO_LIMIT = "no_limit"
NEVER_FETCHED = "never_fetched"
LIMIT_EXCEEDED = "refresh_limit_exceeded"
WITHIN_LIMIT = "within_limit"
FORCED = "forced"


@dataclass(frozen=True)
class ThrottleDecision:
    should_fetch: bool
    reason: str

    def __bool__(self) -> bool:
        return self.should_fetch


def should_fetch(
    interval_minutes: int,
    last_fetch_time: Optional[datetime],
    now: Optional[datetime] = None,
) -> ThrottleDecision:
    """
    Eligible when there is no limit, when nothing was fetched yet, or when at
    least interval_minutes elapsed since last_fetch_time. Throttled otherwise.
    """
    if interval_minutes < 0:
        raise ValueError(f"interval_minutes must be >= 0, got {interval_minutes}")
    if interval_minutes == 0:
        return ThrottleDecision(True, NO_LIMIT)
    if last_fetch_time is None:
        return ThrottleDecision(True, NEVER_FETCHED)
    elapsed = (now or utc_now()) - last_fetch_time
    if elapsed >= timedelta(minutes=interval_minutes):
        return ThrottleDecision(True, LIMIT_EXCEEDED)
    return ThrottleDecision(False, WITHIN_LIMIT)


def force_refresh() -> ThrottleDecision:
    return ThrottleDecision(True, FORCED)
