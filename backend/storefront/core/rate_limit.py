"""
Rate limiting for Storefront API mutations
Uses in-memory storage with sliding window algorithm
"""
import time
from typing import Dict, Tuple
from collections import defaultdict
from fastapi import Request, HTTPException, status

from storefront.core.config import settings


class RateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    Per process: each worker keeps its own counters.
    """

    def __init__(self, cleanup_interval: int = 60):
        # {identifier: [timestamp, ...]}
        self._requests: Dict[str, list] = defaultdict(list)
        self._last_cleanup = time.time()
        self._cleanup_interval = cleanup_interval

    def _cleanup_old_entries(self, window_seconds: int = 60):
        """Remove entries older than twice the window"""
        now = time.time()

        # Only cleanup periodically to avoid overhead
        if now - self._last_cleanup < self._cleanup_interval:
            return

        cutoff = now - window_seconds * 2

        for identifier in list(self._requests.keys()):
            self._requests[identifier] = [ts for ts in self._requests[identifier] if ts > cutoff]
            if not self._requests[identifier]:
                del self._requests[identifier]

        self._last_cleanup = now

    def is_allowed(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: int = 60
    ) -> Tuple[bool, int, int]:
        """
        Check if a request is allowed under the rate limit.

        Returns:
            Tuple of (is_allowed, remaining_requests, retry_after_seconds)
        """
        self._cleanup_old_entries(window_seconds)

        now = time.time()
        window_start = now - window_seconds
        requests_in_window = [ts for ts in self._requests[identifier] if ts > window_start]

        if len(requests_in_window) >= max_requests:
            # When the oldest request in the window expires
            retry_after = int(min(requests_in_window) + window_seconds - now) + 1
            return False, 0, retry_after

        self._requests[identifier].append(now)
        return True, max_requests - len(requests_in_window) - 1, 0

    def reset(self):
        self._requests.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()


def _client_identifier(request: Request) -> str:
    """Bearer token, then cart session header, then client IP"""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return f"jwt:{hash(auth_header)}"

    cart_session = request.headers.get("X-Cart-Session")
    if cart_session:
        return f"session:{cart_session}"

    # Take the first IP in the chain (original client)
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip and request.client:
        client_ip = request.client.host
    return f"ip:{client_ip or 'unknown'}"


async def rate_limit_check(request: Request):
    """
    Dependency limiting mutations to settings.CHECKOUT_RATE_LIMIT per minute.

    Usage:
        @router.post("/items", dependencies=[Depends(rate_limit_check)])
        async def add_item(...):
            ...
    """
    max_requests = settings.CHECKOUT_RATE_LIMIT
    identifier = f"endpoint:{request.method}:{request.url.path}:{_client_identifier(request)}"

    is_allowed, remaining, retry_after = rate_limiter.is_allowed(
        identifier=identifier,
        max_requests=max_requests,
        window_seconds=60
    )

    if not is_allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded for this endpoint. Try again in {retry_after} seconds.",
            headers={
                "X-RateLimit-Limit": str(max_requests),
                "X-RateLimit-Remaining": "0",
                "Retry-After": str(retry_after),
            }
        )
