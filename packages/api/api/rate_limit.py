"""Per-API-key sliding-window rate limiter for tool invocations."""

import os
import time
from collections import defaultdict
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, Response, status

from api.auth import require_api_key

WINDOW_SECONDS = 3600  # 1 hour


def get_limit() -> int:
    return int(os.environ.get("RATE_LIMIT_PER_HOUR", "20"))


class SlidingWindowLimiter:
    """In-memory record of request timestamps per API key.

    State lives in a single process; multiple workers each keep their own.
    """

    def __init__(self, window_seconds: int = WINDOW_SECONDS) -> None:
        self._window = window_seconds
        self._log: dict[str, list[float]] = defaultdict(list)

    def _prune(self, key: str, now: float) -> list[float]:
        cutoff = now - self._window
        self._log[key] = [ts for ts in self._log[key] if ts > cutoff]
        return self._log[key]

    def try_acquire(self, key: str, limit: int) -> bool:
        """Record a request for ``key`` unless its window is already full."""
        now = time.time()
        timestamps = self._prune(key, now)
        if len(timestamps) >= limit:
            return False
        timestamps.append(now)
        return True

    def remaining(self, key: str, limit: int) -> int:
        return max(0, limit - len(self._prune(key, time.time())))

    def reset_time(self, key: str) -> str:
        """Return an ISO-8601 timestamp for when the oldest request expires."""
        timestamps = self._log.get(key)
        if not timestamps:
            return datetime.now(timezone.utc).isoformat()
        reset_at = min(timestamps) + self._window
        return datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat()

    def headers(self, key: str, limit: int) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(self.remaining(key, limit)),
            "X-RateLimit-Reset": self.reset_time(key),
        }

    def clear(self) -> None:
        self._log.clear()


limiter = SlidingWindowLimiter()


async def rate_limit(
    response: Response,
    api_key: str = Depends(require_api_key),
) -> str:
    """Enforce the per-key limit on endpoints that run queries or completions.

    Sets ``X-RateLimit-*`` headers on the response.

    Raises:
        HTTPException: 429 once the caller has exhausted the window.
    """
    limit = get_limit()
    if not limiter.try_acquire(api_key, limit):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers=limiter.headers(api_key, limit),
        )

    response.headers.update(limiter.headers(api_key, limit))
    return api_key
