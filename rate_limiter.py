import logging
import threading
import time
from collections import deque

import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window request cap per identifier"""

    def __init__(self, max_requests=None, window=None, clock=time.monotonic):
        self.max_requests = settings.MAX_REQUESTS_PER_MINUTE if max_requests is None else max_requests
        self.window = settings.RATE_LIMIT_WINDOW if window is None else window
        self.clock = clock
        self.requests = {}
        self.lock = threading.Lock()

    def is_allowed(self, identifier):
        with self.lock:
            now = self.clock()
            window_start = now - self.window
            timestamps = self.requests.setdefault(identifier, deque())
            while timestamps and timestamps[0] <= window_start:
                timestamps.popleft()

            if len(timestamps) >= self.max_requests:
                logger.info("Rate limit hit for %s (%d in %ss)", identifier, len(timestamps), self.window)
                if not timestamps:
                    del self.requests[identifier]
                return False

            timestamps.append(now)
            self._prune(window_start)
            return True

    def _prune(self, window_start):
        # identifiers whose whole history has left the window hold no entry
        idle = [key for key, stamps in self.requests.items() if stamps[-1] <= window_start]
        for key in idle:
            del self.requests[key]

    def reset(self):
        with self.lock:
            self.requests.clear()
