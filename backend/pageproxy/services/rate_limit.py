"""In-memory sliding-window rate limiter keyed by client and target URL."""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass


@dataclass
class RateConfig:
    window_ms: int = 10_000
    max_requests: int = 2
    # Upper bound on tracked keys; least recently used keys go first.
    max_keys: int = 10_000
    sweep_interval_ms: int = 60_000


@dataclass(frozen=True, slots=True)
class RateKey:
    """One throttling bucket: a client address paired with a normalized URL."""

    client: str
    target: str


def now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """Admit at most ``max_requests`` per key within a sliding window.

    Rejected attempts are not recorded, so only admitted requests count
    toward the window. Stale keys are dropped by a sweep triggered from
    ``admit`` at most once per ``sweep_interval_ms``.
    """

    def __init__(self, config: RateConfig | None = None) -> None:
        self._config = config or RateConfig()
        # key -> admitted timestamps (ms), oldest first
        self._windows: OrderedDict[RateKey, list[int]] = OrderedDict()
        self._lock = threading.Lock()
        self._last_sweep: int | None = None

    def admit(self, key: RateKey, now: int | None = None) -> bool:
        if now is None:
            now = now_ms()
        win = max(1, self._config.window_ms)
        max_req = max(1, self._config.max_requests)
        with self._lock:
            self._maybe_sweep(now, win)
            timestamps = [ts for ts in self._windows.get(key, ()) if now - ts < win]
            if len(timestamps) >= max_req:
                # deny; the attempt itself is not counted
                self._windows[key] = timestamps
                self._windows.move_to_end(key)
                return False
            timestamps.append(now)
            self._windows[key] = timestamps
            self._windows.move_to_end(key)
            while len(self._windows) > max(1, self._config.max_keys):
                self._windows.popitem(last=False)
            return True

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()
            self._last_sweep = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _maybe_sweep(self, now: int, win: int) -> None:
        if self._last_sweep is not None and now - self._last_sweep < self._config.sweep_interval_ms:
            return
        self._last_sweep = now
        stale = [
            key
            for key, timestamps in self._windows.items()
            if not timestamps or now - timestamps[-1] >= win
        ]
        for key in stale:
            del self._windows[key]


__all__ = ["RateConfig", "RateKey", "RateLimiter", "now_ms"]
