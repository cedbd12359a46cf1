"""
Per-IP request rate limiting.

Fixed windows kept in process memory; each worker counts on its own.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class Window:
    started_at: float
    count: int = 0


class FixedWindowRateLimiter:
    """
    Allow ``limit`` requests per key in each ``window_seconds`` window.
    """

    def __init__(self, limit: int, window_seconds: int):
        if limit < 1 or window_seconds < 1:
            raise ValueError(f"Rate limit must be positive (limit={limit}, window={window_seconds})")
        self.limit = limit
        self.window_seconds = window_seconds
        self._windows: Dict[str, Window] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str, now: Optional[float] = None) -> Tuple[bool, int]:
        """
        Count one request for ``key``.

        Returns:
            Tuple of (allowed, seconds until the window resets)
        """
        now = time.monotonic() if now is None else now
        async with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self.window_seconds:
                window = Window(started_at=now)
                self._windows[key] = window
                self._evict(now)
            window.count += 1
            retry_after = max(int(window.started_at + self.window_seconds - now), 1)
            return window.count <= self.limit, retry_after

    def _evict(self, now: float) -> None:
        stale = [k for k, w in self._windows.items() if now - w.started_at >= self.window_seconds]
        for k in stale:
            del self._windows[k]

    def reset(self) -> None:
        self._windows.clear()


limiter = FixedWindowRateLimiter(settings.DEFAULT_RATE_LIMIT, settings.DEFAULT_RATE_WINDOW)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_middleware(request: Request, call_next):
    """Apply the limiter to ``/api`` routes and answer 429 with Retry-After when exceeded."""
    if not request.url.path.startswith("/api"):
        return await call_next(request)

    ip = client_ip(request)
    allowed, retry_after = await limiter.hit(ip)
    if not allowed:
        logger.warning(f"[RATE_LIMIT] {ip} exceeded {limiter.limit} requests per {limiter.window_seconds}s")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "success": False,
                "error": "Too many requests",
                "errorKind": "rate_limited",
                "retryAfter": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )
    return await call_next(request)
