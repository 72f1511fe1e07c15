"""
Rate Limiting for Mutating Tools

Trades and reward operations change shared state, so each client may only submit a
limited number of them per minute. Read-only queries are not limited.

Rate Limiting Algorithm:
- Fixed 60-second window per client, opened by the client's first request
- Request count and window start are tracked per client id
- The counter resets once the window has expired
- Entries older than the window are pruned when the cache grows large

OrderedDict keeps clients in least-recently-used order so pruning walks the oldest
entries first.
"""
import threading
import time
from collections import OrderedDict
from typing import Optional, Tuple

from mcp_solana_launchpad.config import RATE_LIMIT_PER_MINUTE
from mcp_solana_launchpad.errors import RateLimitExceededError
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60
MAX_TRACKED_CLIENTS = 1000


class RateLimiter:
    def __init__(self, limit: int = RATE_LIMIT_PER_MINUTE, window: int = WINDOW_SECONDS):
        self.limit = limit
        self.window = window
        # {client_id: (count, first_request_timestamp_in_window)}
        self._cache: "OrderedDict[str, Tuple[int, int]]" = OrderedDict()
        self._lock = threading.Lock()

    def check(self, client_id: str, now: Optional[int] = None) -> bool:
        """
        Counts a request from client_id.

        Returns:
            True if the request is allowed, False if the client exceeded the limit.
        """
        now = int(time.time()) if now is None else now

        with self._lock:
            if len(self._cache) > MAX_TRACKED_CLIENTS:
                self._cleanup(now - self.window)

            entry = self._cache.get(client_id)
            if entry is None or now - entry[1] >= self.window:
                self._cache[client_id] = (1, now)
                self._cache.move_to_end(client_id)
                logger.debug(f"Rate limit window started for client: {client_id}")
                return True

            count, started = entry
            if count >= self.limit:
                logger.warning(f"Rate limit exceeded for client: {client_id}. Count: {count}, Limit: {self.limit}")
                return False

            self._cache[client_id] = (count + 1, started)
            self._cache.move_to_end(client_id)
            logger.debug(f"Rate limit check passed for client: {client_id}. Count: {count + 1}")
            return True

    def enforce(self, client_id: str) -> None:
        """Like check, but raises RateLimitExceededError when the request is not allowed."""
        if not self.check(client_id):
            raise RateLimitExceededError(f"Rate limit exceeded for client: {client_id}")

    def reset(self) -> None:
        with self._lock:
            self._cache.clear()

    def _cleanup(self, cutoff_time: int) -> None:
        stale = [client for client, (_, started) in self._cache.items() if started < cutoff_time]
        for client in stale:
            del self._cache[client]
        if stale:
            logger.debug(f"Cleaned up {len(stale)} old rate limit entries")

    def __len__(self) -> int:
        return len(self._cache)


# Shared limiter for the tool surfaces
limiter = RateLimiter()
