"""
Fixed-window rate limiting stored in the key-value store
"""

import logging
import time
from typing import Callable

from fastapi import Request

from .records import RecordStore

logger = logging.getLogger("tempshare")

RATE_LIMIT_KEY_PREFIX = "ratelimit:"
UNKNOWN_CLIENT = "unknown"


def get_client_id(request: Request, header: str = "X-Forwarded-For") -> str:
    """Client identifier from the trusted proxy header, or a shared sentinel"""
    value = request.headers.get(header) if header else None
    if not value:
        return UNKNOWN_CLIENT
    # X-Forwarded-For style lists: first entry is the original client
    return value.split(",")[0].strip() or UNKNOWN_CLIENT


class FixedWindowRateLimiter:
    """
    Per-client request counter with a fixed window.

    Each client owns one record {count, windowStart} whose TTL equals the
    window. The read-then-write is not atomic, so concurrent requests can
    slip past the limit; a client can also burst up to 2x max_requests
    across a window boundary. Any store failure lets the request through.
    """

    def __init__(self, records: RecordStore, max_requests: int = 10, window_seconds: int = 60,
                 clock: Callable[[], float] = time.time):
        self.records = records
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock

    async def is_allowed(self, client_id: str) -> bool:
        """Check and count a request for this client"""
        key = RATE_LIMIT_KEY_PREFIX + client_id
        now_ms = int(self.clock() * 1000)
        window_ms = self.window_seconds * 1000

        try:
            data = await self.records.get_json(key)

            if data is None or data.get("windowStart", 0) < now_ms - window_ms:
                # First request, or the previous window has elapsed
                await self.records.put_json(key, {"count": 1, "windowStart": now_ms}, ttl=self.window_seconds)
                return True

            if data.get("count", 0) >= self.max_requests:
                return False

            data["count"] = data.get("count", 0) + 1
            await self.records.put_json(key, data, ttl=self.window_seconds)
            return True
        except Exception as e:
            logger.error(f"Rate limit check failed for {client_id}, allowing request: {e}")
            return True
