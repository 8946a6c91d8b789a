"""Centralized configuration for darkfeed."""

import os
import logging

log = logging.getLogger("darkfeed.config")

# =========================
# Feed source
# =========================
# "service" = feed-to-JSON worker, "direct" = download + feedparser
FEED_SOURCE: str = os.getenv("FEED_SOURCE", "service")
FEED_SERVICE_URL: str = os.getenv("FEED_SERVICE_URL", "https://dark-feed-worker.two-852.workers.dev/")
FETCH_TIMEOUT: float = float(os.getenv("FETCH_TIMEOUT", "20"))
USER_AGENT: str = os.getenv("USER_AGENT", "darkfeed/1.0")
# Local development rate limit per feed URL (0 = off)
DEV_MIN_FETCH_INTERVAL_SECONDS: float = float(os.getenv("DEV_MIN_FETCH_INTERVAL_SECONDS", "0"))

# =========================
# File paths
# =========================
STORE_FILE: str = os.getenv("STORE_FILE", "darkfeed_store.json")
SETTINGS_FILE: str = os.getenv("SETTINGS_FILE", "darkfeed_settings.json")
EXPORT_FILE: str = os.getenv("EXPORT_FILE", "darkfeed_export.json")

# =========================
# Refresh
# =========================
# Minimum minutes between two refresh runs (0 = no limit)
DEFAULT_REFRESH_LIMIT_INTERVAL: int = int(os.getenv("REFRESH_LIMIT_INTERVAL", "0"))
POLL_MINUTES: float = float(os.getenv("POLL_MINUTES", "15"))

# =========================
# Monitoring
# =========================
FAILURE_ALERT_THRESHOLD: int = int(os.getenv("FAILURE_ALERT_THRESHOLD", "5"))


def validate_config() -> None:
    """Validate configuration values. Call at startup."""
    problems = []
    if FEED_SOURCE not in ("service", "direct"):
        problems.append(f"FEED_SOURCE={FEED_SOURCE!r} (expected 'service' or 'direct')")
    if FEED_SOURCE == "service" and not FEED_SERVICE_URL:
        problems.append("FEED_SERVICE_URL is empty")
    if DEFAULT_REFRESH_LIMIT_INTERVAL < 0:
        problems.append("REFRESH_LIMIT_INTERVAL must be >= 0")
    if FETCH_TIMEOUT <= 0:
        problems.append("FETCH_TIMEOUT must be > 0")
    if problems:
        raise EnvironmentError(f"Invalid configuration: {'; '.join(problems)}")
    if POLL_MINUTES < 1:
        log.warning("POLL_MINUTES=%s is very short, upstream may rate-limit.", POLL_MINUTES)
    if DEV_MIN_FETCH_INTERVAL_SECONDS > 0:
        log.warning("Development fetch limit active: %.0fs per feed URL.", DEV_MIN_FETCH_INTERVAL_SECONDS)
