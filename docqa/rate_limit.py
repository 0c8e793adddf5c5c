"""
Per-client request limits for the Streamlit app.

Built on the `limits` package: a moving-window strategy over in-memory
storage, keyed by client id. Expired entries are dropped by the storage
itself. Several processes would need a shared storage backend such as
Redis (limits.storage.RedisStorage).
"""

from typing import Optional

from limits import RateLimitItem, RateLimitItemPerMinute
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter

from docqa.errors import RateLimitError

ASK_RATE_LIMIT = RateLimitItemPerMinute(20)
UPLOAD_RATE_LIMIT = RateLimitItemPerMinute(10)


class RateLimiter:
    """Allow at most limit.amount requests per key within any window."""

    def __init__(self, limit: RateLimitItem, storage: Optional[Storage] = None):
        self.limit = limit
        self._limiter = MovingWindowRateLimiter(storage or MemoryStorage())

    def check(self, key: str) -> bool:
        """
        Record a request for key if it is within the limit.

        Returns:
            True if the request is allowed, False if it is rate-limited
        """
        return self._limiter.hit(self.limit, key)

    def hit(self, key: str) -> None:
        """Like check(), but raise RateLimitError when the limit is exceeded."""
        if not self.check(key):
            raise RateLimitError()

    def reset(self, key: str) -> None:
        self._limiter.clear(self.limit, key)
