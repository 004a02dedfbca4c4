"""Minimum interval between consecutive sends."""

import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class Cooldown:
    """Time-based send gate.

    ``last_sent_at`` only moves when a send is let through, so rapid repeated
    attempts do not extend the wait.
    """

    min_interval: float = 2.5
    last_sent_at: float | None = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def remaining(self) -> float:
        if self.last_sent_at is None:
            return 0.0
        return max(0.0, self.min_interval - (self.clock() - self.last_sent_at))

    def try_acquire(self) -> bool:
        """Record a send and return True, or return False while cooling down."""
        now = self.clock()
        if self.last_sent_at is not None and now - self.last_sent_at < self.min_interval:
            return False
        self.last_sent_at = now
        return True
