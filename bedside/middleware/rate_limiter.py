import threading
import time
from typing import Dict, NamedTuple

from bedside.config import config

WINDOW_SECONDS = 60.0
# Expired windows are swept once every this many checks
SWEEP_EVERY = 100


class Window(NamedTuple):
    count: int
    resets_at: float


class RateLimiter:
    """
    Fixed one-minute request window per key.

    Sync routes run on FastAPI's thread pool, so every read or write of the
    window table happens under one lock.
    """

    def __init__(self, requests_per_minute: int = 20):
        self.requests_per_minute = requests_per_minute
        self.history: Dict[str, Window] = {}
        self._checks = 0
        self._lock = threading.Lock()

    def is_allowed(self, key: str) -> bool:
        now = time.time()
        with self._lock:
            self._checks += 1
            if self._checks % SWEEP_EVERY == 0:
                self._sweep(now)

            window = self.history.get(key)
            if window is None or now > window.resets_at:
                self.history[key] = Window(1, now + WINDOW_SECONDS)
                return True
            if window.count >= self.requests_per_minute:
                return False
            self.history[key] = window._replace(count=window.count + 1)
            return True

    def reset(self):
        with self._lock:
            self.history.clear()
            self._checks = 0

    def _sweep(self, now: float):
        # Caller holds the lock
        expired = [key for key, window in self.history.items() if now > window.resets_at]
        for key in expired:
            del self.history[key]


# Per-user budget for write requests
write_limiter = RateLimiter(requests_per_minute=config.write_requests_per_minute)
