"""Fixed-window, in-process request limiter."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class RateWindow:
    count: int
    reset_at: float


class RateLimiter:
    """Counts hits per key inside a window that starts at the first hit.

    State lives only in this process; every worker enforces its own windows.
    """

    def __init__(
        self,
        *,
        clock: Optional[Callable[[], float]] = None,
        prune_every: int = 1024,
    ) -> None:
        self._clock = clock or _monotonic_ms
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()
        self._prune_every = max(1, prune_every)
        self._hits = 0

    def allow(self, key: str, max_requests: int, window_ms: int) -> bool:
        now = self._clock()
        with self._lock:
            self._hits += 1
            if self._hits % self._prune_every == 0:
                self._prune(now)

            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = RateWindow(count=1, reset_at=now + window_ms)
                return True
            if window.count >= max_requests:
                return False
            window.count += 1
            return True

    def window(self, key: str) -> Optional[RateWindow]:
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return None
            return RateWindow(count=window.count, reset_at=window.reset_at)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._hits = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _prune(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
