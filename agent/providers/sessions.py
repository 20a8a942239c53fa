"""
Statsd Agent - Session Tracker

In-process session accounting fed by the host application. The host calls
session_created() and session_destroyed(); the poller samples the derived
counters once per cycle.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Tuple

import structlog

from .base import MetricsSource

logger = structlog.get_logger(__name__)

RATE_WINDOW_SECONDS = 300


class SessionTracker(MetricsSource):
    """Tracks live sessions and session creation rates."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        # Host threads and the poller both touch the counters
        self._lock = threading.Lock()

        self._created = 0
        self._active = 0
        self._active_peak = 0

        self._bucket_second = int(clock())
        self._bucket_count = 0
        self._last_rate = 0
        self._rate_peak = 0
        self._rate_history: Deque[Tuple[int, int]] = deque()

    @property
    def name(self) -> str:
        return "sessions"

    @property
    def active(self) -> int:
        return self._active

    def session_created(self) -> None:
        """Record a new session."""
        with self._lock:
            self._roll(int(self._clock()))
            self._created += 1
            self._active += 1
            self._bucket_count += 1
            if self._active > self._active_peak:
                self._active_peak = self._active

    def session_destroyed(self) -> None:
        """Record the end of a session."""
        with self._lock:
            if self._active == 0:
                logger.warning("Session destroyed with no active sessions")
                return
            self._active -= 1

    def reset_peaks(self) -> None:
        """Reset peak values to the current levels."""
        with self._lock:
            self._active_peak = self._active
            self._rate_peak = self._last_rate
            self._rate_history.clear()

    async def sample(self) -> Dict[str, int]:
        with self._lock:
            now = int(self._clock())
            self._roll(now)
            while self._rate_history and self._rate_history[0][0] <= now - RATE_WINDOW_SECONDS:
                self._rate_history.popleft()

            return {
                "sessions_since_startup": self._created,
                "sessions_count": self._active,
                "sessions_count_peak": self._active_peak,
                "sessions_per_second": self._last_rate,
                "sessions_per_second_peak": self._rate_peak,
                "sessions_per_second_5min": max((c for _, c in self._rate_history), default=0),
            }

    def _roll(self, second: int) -> None:
        """Close the per-second bucket once the clock has moved past it."""
        if second <= self._bucket_second:
            return

        completed = self._bucket_count
        self._last_rate = completed if second == self._bucket_second + 1 else 0
        if completed:
            self._rate_history.append((self._bucket_second, completed))
            self._rate_peak = max(self._rate_peak, completed)

        self._bucket_second = second
        self._bucket_count = 0
