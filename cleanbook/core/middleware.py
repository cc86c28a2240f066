"""HTTP middleware: rate limiting, request logging and security headers."""

import logging
import time

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

import redis.asyncio as redis

from cleanbook.config import settings
from cleanbook.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

# Never throttled
EXEMPT_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})

WINDOW_SECONDS = 60


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window request limit per client, counted in a Redis sorted set.

    Clients are keyed by their bearer token when one is sent, so customers
    behind the same NAT do not share a budget, and by IP otherwise. If Redis
    is unreachable requests are let through.
    """

    def __init__(self, app, requests_per_minute: int = 100, redis_url: str | None = None):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.redis_url = redis_url or settings.redis_url
        self._redis: redis.Redis | None = None

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        return self._redis

    @staticmethod
    def client_key(request: Request) -> str:
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            # Tail of the signature is unique enough and keeps keys short
            return f"rate_limit:token:{auth[-24:]}"
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return f"rate_limit:ip:{forwarded.split(',')[0].strip()}"
        host = request.client.host if request.client else "unknown"
        return f"rate_limit:ip:{host}"

    async def _record_hit(self, key: str, now: float) -> int:
        """Record one request and return how many came before it in the window."""
        async with self._client().pipeline(transaction=True) as pipe:
            await pipe.zremrangebyscore(key, 0, now - WINDOW_SECONDS)
            await pipe.zcard(key)
            await pipe.zadd(key, {str(time.time_ns()): now})
            await pipe.expire(key, WINDOW_SECONDS)
            results = await pipe.execute()
        return results[1]

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        now = time.time()
        try:
            seen = await self._record_hit(self.client_key(request), now)
        except redis.RedisError as e:
            logger.warning("Rate limiter unavailable, allowing request: %s", e)
            return await call_next(request)

        reset_at = str(int(now) + WINDOW_SECONDS)
        if seen >= self.requests_per_minute:
            error = RateLimitExceeded()
            return JSONResponse(
                status_code=error.status_code,
                content={"detail": error.detail, "code": error.code},
                headers={
                    "Retry-After": str(WINDOW_SECONDS),
                    "X-RateLimit-Limit": str(self.requests_per_minute),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": reset_at,
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.requests_per_minute - seen - 1))
        response.headers["X-RateLimit-Reset"] = reset_at
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ``X-Request-ID`` and log its outcome."""

    slow_request_seconds = 1.0

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(time.time_ns())
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed:.3f}s"

        if elapsed > self.slow_request_seconds:
            logger.warning(
                "Slow request %s %s -> %d in %.3fs (request_id=%s)",
                request.method,
                request.url.path,
                response.status_code,
                elapsed,
                request_id,
            )
        elif response.status_code >= 500:
            logger.error("%s %s -> %d (request_id=%s)", request.method, request.url.path, response.status_code, request_id)
        else:
            logger.debug("%s %s -> %d in %.3fs", request.method, request.url.path, response.status_code, elapsed)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add baseline security headers to every HTTP response."""

    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Cache-Control": "no-store",
    }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response
