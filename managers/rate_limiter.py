"""Fixed-window rate limiting per client"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from errors import RateLimitExceeded

logger = logging.getLogger("MCP_Server")

DEFAULT_CLIENT_KEY = "default"


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Counts calls per client key and rejects once a window's quota is spent"""

    def __init__(self, limit: int = 10, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def check(self, client_key: Optional[str] = None) -> bool:
        key = client_key or DEFAULT_CLIENT_KEY
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return True
        if window.count >= self.limit:
            return False
        window.count += 1
        return True

    def enforce(self, client_key: Optional[str] = None):
        key = client_key or DEFAULT_CLIENT_KEY
        if not self.check(key):
            retry_after = max(0.0, self._windows[key].reset_at - self._clock())
            logger.warning(f"Rate limit exceeded for client {key}")
            raise RateLimitExceeded(key, retry_after)
