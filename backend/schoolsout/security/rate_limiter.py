"""
Per-client request admission for the search endpoint.

Each client key (the caller's IP) gets a fixed window: the first request
opens it, up to ``max_requests`` requests are admitted inside it, and it
resets atomically once ``window_seconds`` have passed. Rejected requests do
not consume a slot. A background sweeper drops expired windows so the table
only holds keys seen within roughly one window.
"""

import time
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from schoolsout.config import (
    DEFAULT_RATE_LIMIT_MAX_REQUESTS,
    DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
    DEFAULT_RATE_LIMIT_SWEEP_SECONDS,
)

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    window_reset_at: float


class RateLimiter:
    def __init__(
        self,
        max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
        sweep_interval: float = DEFAULT_RATE_LIMIT_SWEEP_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0 or sweep_interval <= 0:
            raise ValueError("window_seconds and sweep_interval must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def allow(self, key: str) -> bool:
        """Admit or reject one request from ``key``."""
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or now >= entry.window_reset_at:
                self._entries[key] = RateLimitEntry(count=1, window_reset_at=now + self.window_seconds)
                return True

            if entry.count >= self.max_requests:
                logger.warning("Rate limit exceeded for IP: %s (%d requests)", key, entry.count)
                return False

            entry.count += 1
            return True

    def retry_after(self, key: str) -> Optional[float]:
        """Seconds until ``key``'s current window resets, or None if it has none."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return max(0.0, entry.window_reset_at - self._clock())

    def sweep(self) -> int:
        """Remove expired entries. Returns how many were dropped."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now >= entry.window_reset_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Rate limit sweep removed %d expired entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -- sweeper lifecycle -------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="rate-limit-sweeper", daemon=True)
        self._sweeper.start()
        logger.info(
            "Rate limiter started: %d requests per %.0fs, sweeping every %.0fs",
            self.max_requests, self.window_seconds, self.sweep_interval,
        )

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stopped.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stopped.wait(self.sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Rate limit sweep failed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
