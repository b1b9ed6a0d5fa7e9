"""
Rate Limiter

Minimum-interval gate for work that is requested every frame but should
run at a bounded rate (the probe vehicle samples at 10 Hz).
"""

import time
from typing import Callable, Optional


class RateLimiter:
    """
    Allows at most one acquisition per min_interval_s.

    Example:
        limiter = RateLimiter(0.1)
        if limiter.try_acquire():
            run_probe()
    """

    def __init__(self, min_interval_s: float, clock: Callable[[], float] = time.monotonic):
        self.min_interval_s = max(float(min_interval_s), 0.0)
        self.clock = clock
        self.last_acquired: Optional[float] = None

    def ready(self) -> bool:
        """True if an acquisition would succeed now."""
        if self.last_acquired is None:
            return True
        return self.clock() - self.last_acquired >= self.min_interval_s

    def try_acquire(self) -> bool:
        """Take the slot if the interval has elapsed."""
        if not self.ready():
            return False
        self.last_acquired = self.clock()
        return True

    def reset(self) -> None:
        self.last_acquired = None
