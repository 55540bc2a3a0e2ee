from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from threading import Lock
from time import perf_counter, time
from typing import Iterator


class MetricsStore:
    def __init__(self, prefix: str = "sticker") -> None:
        self._prefix = prefix
        self._lock = Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = defaultdict(float)
        self._last_update_ts: int = int(time())

    def incr(self, key: str, value: int = 1) -> None:
        with self._lock:
            self._counters[key] += value
            self._last_update_ts = int(time())

    def set_gauge(self, key: str, value: float) -> None:
        with self._lock:
            self._gauges[key] = value
            self._last_update_ts = int(time())

    @contextmanager
    def timed(self, key: str) -> Iterator[None]:
        """Record the block's wall time as ``<key>_last_ms`` and add it to ``<key>_ms_total``."""
        started = perf_counter()
        try:
            yield
        finally:
            elapsed_ms = int((perf_counter() - started) * 1000)
            self.set_gauge(f"{key}_last_ms", elapsed_ms)
            self.incr(f"{key}_ms_total", elapsed_ms)

    def snapshot(self) -> dict[str, int | float]:
        with self._lock:
            merged: dict[str, int | float] = dict(self._counters)
            merged.update(self._gauges)
            merged["metrics_last_update_ts"] = self._last_update_ts
            return merged

    def to_prometheus_text(self) -> str:
        lines = []
        for key, value in sorted(self.snapshot().items()):
            metric = key.lower().replace("-", "_").replace(".", "_")
            lines.append(f"{self._prefix}_{metric} {value}")
        return "\n".join(lines) + "\n"


metrics = MetricsStore()
