"""Request rate limiting shared by all Subscan collectors."""

import time
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator
import structlog

logger = structlog.get_logger(__name__)


class RateLimiter:
    """
    Dispatch limiter combining request spacing with a concurrency cap.

    Both limits are global to the instance: every thread that shares one
    limiter competes for the same dispatch schedule and the same pool of
    in-flight slots. Result processing is not serialized, only dispatch.
    """

    def __init__(self,
                 min_interval: float = 0.2,
                 max_concurrent: int = 5,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize rate limiter.

        Args:
            min_interval: Minimum seconds between two dispatches
            max_concurrent: Maximum requests in flight at once
            clock: Monotonic clock used for spacing
            sleep: Sleep function used while waiting for a dispatch slot
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")

        self.min_interval = min_interval
        self.max_concurrent = max_concurrent
        self._clock = clock
        self._sleep = sleep

        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._lock = threading.Lock()
        self._next_dispatch = 0.0
        self._in_flight = 0
        self._peak_in_flight = 0
        self._dispatched = 0

    def _reserve_dispatch_time(self) -> float:
        """Reserve the next dispatch time and return how long to wait for it."""
        with self._lock:
            now = self._clock()
            dispatch_at = max(now, self._next_dispatch)
            self._next_dispatch = dispatch_at + self.min_interval
        return dispatch_at - now

    @contextmanager
    def slot(self) -> Iterator[None]:
        """Hold one in-flight slot for the duration of a request."""
        self._slots.acquire()
        try:
            delay = self._reserve_dispatch_time()
            if delay > 0:
                logger.debug("Waiting for dispatch slot", delay=round(delay, 3))
                self._sleep(delay)

            with self._lock:
                self._in_flight += 1
                self._dispatched += 1
                self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                yield
            finally:
                with self._lock:
                    self._in_flight -= 1
        finally:
            self._slots.release()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def get_stats(self) -> Dict[str, float]:
        """Get limiter statistics."""
        with self._lock:
            return {
                "dispatched": self._dispatched,
                "in_flight": self._in_flight,
                "peak_in_flight": self._peak_in_flight,
                "min_interval": self.min_interval,
                "max_concurrent": self.max_concurrent,
            }
