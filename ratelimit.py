"""Fixed-window request limiting, keyed by client address."""
import time
from typing import Callable, Dict, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse

from errors import RateLimited
from logging_setup import get_logger

logger = get_logger(__name__)


class FixedWindowRateLimiter:
    """Allow at most ``max_requests`` per client in each window of
    ``window_seconds``. Windows are aligned to the first request seen from a
    client; a request over the limit is rejected, never queued."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, client_id: str) -> bool:
        now = self.clock()
        started, count = self._windows.get(client_id, (now, 0))
        if now - started >= self.window_seconds:
            started, count = now, 0
            self._prune(now)
        if count >= self.max_requests:
            self._windows[client_id] = (started, count)
            return False
        self._windows[client_id] = (started, count + 1)
        return True

    def retry_after(self, client_id: str) -> int:
        started, _ = self._windows.get(client_id, (self.clock(), 0))
        return max(0, int(self.window_seconds - (self.clock() - started)) + 1)

    def _prune(self, now: float) -> None:
        expired = [k for k, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for key in expired:
            del self._windows[key]


def rate_limit_middleware(limiter: FixedWindowRateLimiter):
    async def middleware(request: Request, call_next):
        client_id = request.client.host if request.client else "unknown"
        if not limiter.hit(client_id):
            logger.warning("rate_limited", client=client_id, path=request.url.path)
            err = RateLimited()
            return JSONResponse(
                status_code=err.status_code,
                content=err.body(),
                headers={"Retry-After": str(limiter.retry_after(client_id))},
            )
        return await call_next(request)

    return middleware
