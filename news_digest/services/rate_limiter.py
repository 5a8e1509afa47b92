"""
Fixed-window rate limiting for outbound calls
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

HTTP = "http"
AI = "ai"
EMAIL = "email"


@dataclass(frozen=True)
class RateLimit:
    limit: int
    window: timedelta


@dataclass
class _Counter:
    count: int = 0
    window_reset_at: Optional[datetime] = None


class RateLimiter:
    """In-memory fixed-window counters, one per category"""

    def __init__(self, limits: Dict[str, RateLimit], clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            limits: Limit and window length per category
            clock: Returns the current aware datetime (overridable in tests)
        """
        self.limits = dict(limits)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._counters: Dict[str, _Counter] = {name: _Counter() for name in self.limits}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, clock: Optional[Callable[[], datetime]] = None) -> "RateLimiter":
        return cls(
            {
                HTTP: RateLimit(settings.HTTP_RATE_LIMIT, timedelta(hours=1)),
                AI: RateLimit(settings.AI_RATE_LIMIT, timedelta(hours=1)),
                EMAIL: RateLimit(settings.EMAIL_RATE_LIMIT, timedelta(hours=24)),
            },
            clock=clock,
        )

    def try_consume(self, category: str) -> bool:
        """
        Take one slot from the category's current window

        Returns:
            False when the window is exhausted; callers treat this as a hard stop
        """
        rate_limit = self.limits[category]
        now = self._clock()

        with self._lock:
            counter = self._counters[category]
            if counter.window_reset_at is None or now > counter.window_reset_at:
                counter.count = 0
                counter.window_reset_at = now + rate_limit.window

            if counter.count >= rate_limit.limit:
                logger.warning(f"Rate limit reached for '{category}' ({rate_limit.limit} per {rate_limit.window})")
                return False

            counter.count += 1
            return True

    def remaining(self, category: str) -> int:
        rate_limit = self.limits[category]
        counter = self._counters[category]
        if counter.window_reset_at is None or self._clock() > counter.window_reset_at:
            return rate_limit.limit
        return max(rate_limit.limit - counter.count, 0)

    def reset_at(self, category: str) -> Optional[datetime]:
        return self._counters[category].window_reset_at
