import os
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from reader.utils import atomic_write_json, format_timestamp, parse_timestamp

log = logging.getLogger("darkfeed.state")


class SettingsStore:
    """
    Schema:
    {
      "refresh_limit_interval": 0,        # minutes, 0 = no limit
      "last_fetch_time": "2025-01-01T00:00:00Z" | null
    }
    """
    def __init__(self, path: str, default_interval: int = 0):
        self.path = path
        self.default_interval = default_interval

    def _defaults(self) -> Dict[str, Any]:
        return {
            "refresh_limit_interval": self.default_interval,
            "last_fetch_time": None,
        }

    def load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return self._defaults()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("settings not dict")
        except (OSError, ValueError) as e:
            log.warning("Unreadable settings %s (%s), using defaults.", self.path, e)
            return self._defaults()
        data.setdefault("refresh_limit_interval", self.default_interval)
        data.setdefault("last_fetch_time", None)
        try:
            data["refresh_limit_interval"] = max(0, int(data["refresh_limit_interval"]))
        except (TypeError, ValueError):
            data["refresh_limit_interval"] = self.default_interval
        return data

    def save(self, settings: Dict[str, Any]) -> None:
        atomic_write_json(self.path, settings)

    def refresh_limit_interval(self) -> int:
        return self.load()["refresh_limit_interval"]

    def set_refresh_limit_interval(self, minutes: int) -> None:
        if minutes < 0:
            raise ValueError("refresh limit interval must be >= 0")
        data = self.load()
        data["refresh_limit_interval"] = int(minutes)
        self.save(data)

    def last_fetch_time(self) -> Optional[datetime]:
        return parse_timestamp(self.load().get("last_fetch_time"))

    def set_last_fetch_time(self, when: datetime) -> None:
        data = self.load()
        data["last_fetch_time"] = format_timestamp(when)
        self.save(data)
