"""Permit-based rate limiting over fixed time windows."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


def _steady_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class RateLimiter(ABC):
    """Interface of a limiter that hands out permits."""

    @abstractmethod
    def acquire(self, required_permits: int) -> bool:
        """Block until the permits are granted; return False if they never can be."""

    @abstractmethod
    def try_acquire(self, required_permits: int) -> bool:
        """Grant the permits if available right now, without blocking."""

    @abstractmethod
    def rollback(self, required_permits: int) -> None:
        """Return permits previously taken."""


class TimeWindowRateLimiter(RateLimiter):
    """Allows up to ``max_permits_size`` permits in each time window."""

    def __init__(
        self,
        max_permits_size: int,
        time_window_ms: int = 1000,
        allow_exceed_max_permit_size: bool = False,
    ) -> None:
        self._lock = threading.Lock()
        self._max_permits_size = max_permits_size
        self._allow_exceed_max_permit_size = allow_exceed_max_permit_size
        self._current_permits_size = max_permits_size
        self._time_window_ms = time_window_ms
        self._last_permits_update_time = _steady_ms()
        logger.info(
            "new TimeWindowRateLimiter maxPermitsSize=%s allowExceedMaxPermitSize=%s "
            "timeWindowMS=%s",
            max_permits_size,
            allow_exceed_max_permit_size,
            time_window_ms,
        )

    @property
    def max_permits_size(self) -> int:
        return self._max_permits_size

    @property
    def current_permits_size(self) -> int:
        return self._current_permits_size

    @property
    def time_window_ms(self) -> int:
        return self._time_window_ms

    @property
    def allow_exceed_max_permit_size(self) -> bool:
        return self._allow_exceed_max_permit_size

    def _exceeds_maximum(self, required_permits: int, action: str) -> bool | None:
        """Decide a request larger than the maximum; None when it is not larger."""
        if required_permits <= self._max_permits_size:
            return None
        if self._allow_exceed_max_permit_size:
            return True
        logger.warning(
            "%s exceeded the maximum requiredPermits=%s maxPermitsSize=%s",
            action,
            required_permits,
            self._max_permits_size,
        )
        return False

    def try_acquire(self, required_permits: int) -> bool:
        decided = self._exceeds_maximum(required_permits, "try acquire")
        if decided is not None:
            return decided

        with self._lock:
            now_ms = _steady_ms()
            if now_ms - self._last_permits_update_time >= self._time_window_ms:
                self._last_permits_update_time = now_ms
                self._current_permits_size = self._max_permits_size

            if self._current_permits_size >= required_permits:
                self._current_permits_size -= required_permits
                return True
            return False

    def acquire(self, required_permits: int) -> bool:
        decided = self._exceeds_maximum(required_permits, "acquire")
        if decided is not None:
            return decided

        while not self.try_acquire(required_permits):
            elapsed_ms = _steady_ms() - self._last_permits_update_time
            if 0 < elapsed_ms < self._time_window_ms:
                time.sleep((self._time_window_ms - elapsed_ms) / 1000)
                continue
            time.sleep(0.001)
        return True

    def rollback(self, required_permits: int) -> None:
        with self._lock:
            self._current_permits_size = min(
                self._current_permits_size + required_permits, self._max_permits_size
            )