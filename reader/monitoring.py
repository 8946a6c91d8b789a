"""Health monitoring for feed fetches."""

import logging
from typing import Dict

log = logging.getLogger("darkfeed.monitoring")


class HealthMonitor:
    """Tracks consecutive fetch failures per feed URL and raises alerts in the log."""

    def __init__(self, alert_threshold: int = 5):
        self.alert_threshold = alert_threshold
        self._consecutive_failures: Dict[str, int] = {}
        self._alerted: Dict[str, bool] = {}
        self._last_error: Dict[str, str] = {}

    def record_success(self, feed_url: str) -> None:
        prev = self._consecutive_failures.get(feed_url, 0)
        if prev > 0:
            log.info("%s: recovered after %d consecutive failure(s).", feed_url, prev)
        self._consecutive_failures[feed_url] = 0
        self._alerted[feed_url] = False
        self._last_error.pop(feed_url, None)

    def record_failure(self, feed_url: str, error: str = "") -> bool:
        """Record a failure. Returns True if alert threshold was just crossed."""
        count = self._consecutive_failures.get(feed_url, 0) + 1
        self._consecutive_failures[feed_url] = count
        if error:
            self._last_error[feed_url] = error
        log.warning("%s: consecutive failure #%d (%s).", feed_url, count, error or "unknown error")

        if count >= self.alert_threshold and not self._alerted.get(feed_url, False):
            self._alerted[feed_url] = True
            log.error(
                "ALERT: %s failed %d times in a row! Last error: %s",
                feed_url, count, self._last_error.get(feed_url, "?"),
            )
            return True
        return False

    def get_failures(self, feed_url: str) -> int:
        return self._consecutive_failures.get(feed_url, 0)

    def get_last_error(self, feed_url: str) -> str:
        return self._last_error.get(feed_url, "")

    def get_status(self) -> Dict[str, int]:
        return {k: v for k, v in self._consecutive_failures.items() if v > 0}
