import logging
import threading
import time
from collections import deque
from config import AI_RATE_LIMIT, AI_RATE_WINDOW
from .errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window request counter keyed by caller and endpoint."""

    def __init__(self, max_requests: int = AI_RATE_LIMIT, window: float = AI_RATE_WINDOW, clock=time.monotonic):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._requests = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def can_make_request(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window:
                self._sweep(now)
            hits = self._requests.setdefault(key, deque())
            while hits and now - hits[0] >= self.window:
                hits.popleft()
            if len(hits) >= self.max_requests:
                logger.warning(f"Rate limit exceeded for {key}")
                return False
            hits.append(now)
            return True

    def _sweep(self, now: float) -> None:
        """Forget keys with no requests left inside the window."""
        stale = [key for key, hits in self._requests.items() if not hits or now - hits[-1] >= self.window]
        for key in stale:
            del self._requests[key]
        self._last_sweep = now

    def check(self, key: str) -> None:
        if not self.can_make_request(key):
            raise RateLimitError()


ai_limiter = RateLimiter()
