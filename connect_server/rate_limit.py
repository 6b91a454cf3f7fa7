"""
Per-IP throttling for code confirmation and the token endpoint.
User codes carry about 20 bits of entropy, so guessing them has to be slowed down.
"""
import math
import threading
import time
from collections import deque
from typing import Callable


class SlidingWindowLimiter:
    """At most `limit` hits per key within any `window` seconds."""

    def __init__(self, window: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.window = window
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int) -> tuple[bool, int | None]:
        """Record a hit if allowed. Returns (allowed, retry_after_seconds)."""
        if limit <= 0:
            return True, None
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= now - self.window:
                hits.popleft()
            if len(hits) >= limit:
                return False, max(1, math.ceil(self.window - (now - hits[0])))
            hits.append(now)
            return True, None

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()


_limiter = SlidingWindowLimiter()


def check_and_consume(key: str, limit: int) -> tuple[bool, int | None]:
    return _limiter.hit(key, limit)


def reset() -> None:
    _limiter.clear()
