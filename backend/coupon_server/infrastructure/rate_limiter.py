"""Request Rate Limiter — per-client fixed-window request budget.

Invariants:
    - Each (scope, identifier) pair gets at most max_requests hits per window
    - Counters are process-local and owned by one ServiceContainer
    - Windows shorter than one second round up to one second

Design Decisions:
    - `limits` (the engine behind slowapi) with in-memory storage: the limiter
      lives on the container instead of a module-level decorator
"""

import math
import time
from dataclasses import dataclass

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # seconds until the current window ends


class RequestRateLimiter:
    def __init__(self, scope: str, max_requests: int, window_ms: int):
        self.scope = scope
        self._item = RateLimitItemPerSecond(
            max_requests, max(1, math.ceil(window_ms / 1000)),
        )
        self._limiter = FixedWindowRateLimiter(MemoryStorage())

    @property
    def limit(self) -> int:
        return self._item.amount

    def hit(self, identifier: str) -> RateLimitDecision:
        """Count one request for identifier and report whether it is allowed."""
        allowed = self._limiter.hit(self._item, self.scope, identifier)
        reset_time, remaining = self._limiter.get_window_stats(
            self._item, self.scope, identifier,
        )
        return RateLimitDecision(
            allowed=allowed,
            limit=self.limit,
            remaining=max(0, remaining),
            reset_after=max(1, math.ceil(reset_time - time.time())),
        )
