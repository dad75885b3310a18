"""Minimum-spacing limiter shared by every qualitative-provider request."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class RequestSpacingLimiter:
    """Serialize requests so consecutive calls start at least ``min_interval`` apart.

    Construct one per process and hand it to every client that talks to the
    rate-limited provider. ``clock`` and ``sleep`` are injectable for tests.
    """

    min_interval: float
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    _last_request: Optional[float] = field(default=None, init=False)
    _lock: Lock = field(default_factory=Lock, init=False)

    def acquire(self) -> float:
        """Block until the next request may start; returns the time waited."""
        with self._lock:
            now = self.clock()
            waited = 0.0
            if self._last_request is not None:
                remaining = self.min_interval - (now - self._last_request)
                if remaining > 0:
                    logger.debug("Judgment rate limit: waiting %.2fs", remaining)
                    self.sleep(remaining)
                    waited = remaining
                    now = self.clock()
            self._last_request = now
            return waited

    def reset(self) -> None:
        with self._lock:
            self._last_request = None
