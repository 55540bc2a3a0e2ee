from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Callable

logger = logging.getLogger("stickers.usage")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class DailyUsageStore:
    """Per-user daily counters in a JSON file. Counts reset when the UTC day changes."""

    def __init__(self, path: str | Path, today: Callable[[], date] = utc_today) -> None:
        self._path = Path(path)
        self._today = today
        self._lock = Lock()
        self._day, self._counts = self._load()

    def _load(self) -> tuple[str, dict[str, int]]:
        if not self._path.exists():
            return self._today().isoformat(), {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to load usage store %s: %s", self._path, exc)
            return self._today().isoformat(), {}
        counts = {str(user): int(count) for user, count in raw.get("counts", {}).items()}
        return str(raw.get("day", self._today().isoformat())), counts

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"day": self._day, "counts": self._counts}
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def _roll_over(self) -> None:
        today = self._today().isoformat()
        if today != self._day:
            self._day = today
            self._counts = {}

    def used(self, user_id: int | str) -> int:
        with self._lock:
            self._roll_over()
            return self._counts.get(str(user_id), 0)

    def try_consume(self, user_id: int | str, limit: int) -> bool:
        """Count one use for ``user_id`` unless that would exceed ``limit``. A limit of 0 disables the cap."""
        with self._lock:
            self._roll_over()
            key = str(user_id)
            current = self._counts.get(key, 0)
            if limit > 0 and current >= limit:
                return False
            self._counts[key] = current + 1
            self._save()
            return True

    def refund(self, user_id: int | str) -> None:
        """Give back one use, e.g. when a counted request never ran."""
        with self._lock:
            self._roll_over()
            key = str(user_id)
            current = self._counts.get(key, 0)
            if current <= 0:
                return
            if current == 1:
                del self._counts[key]
            else:
                self._counts[key] = current - 1
            self._save()
