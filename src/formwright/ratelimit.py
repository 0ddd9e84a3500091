"""Fixed-window rate limiting for public submissions."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from .consts import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Window:
    started_at: float
    count: int


class RateLimiter:
    """Allow at most ``max_requests`` per ``window_seconds`` for each key.

    Windows are fixed: the first request for a key opens a window and the
    count resets once it has elapsed. Counts live in process memory and
    are shared by every request thread.
    """

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = RATE_LIMIT_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> "RateLimiter":
        return cls(max_requests=config.max_requests, window_seconds=config.window_seconds)

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            self._evict(now)
            window = self._windows.get(key)
            if window is None:
                self._windows[key] = _Window(started_at=now, count=1)
                return True
            if window.count >= self.max_requests:
                logger.info(f"Rate limit reached for {key}")
                return False
            window.count += 1
            return True

    def remaining(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self.window_seconds:
                return self.max_requests
            return max(self.max_requests - window.count, 0)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _evict(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now - w.started_at >= self.window_seconds]
        for key in expired:
            del self._windows[key]
