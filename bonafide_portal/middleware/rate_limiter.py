"""
Bonafide Portal — Sliding window rate limiter middleware (Redis-backed)

Limits login attempts per email and OTP sends per phone.
Uses sorted sets (ZADD/ZREMRANGEBYSCORE/ZCARD) for a true sliding window.
"""
import json
import logging
import time
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from bonafide_portal.core.config import get_settings
from bonafide_portal.core.errors import StorageError
from bonafide_portal.core.redis_client import get_redis

settings = get_settings()
logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "ratelimit:"

# path → body field the window is keyed on
LIMITED_ROUTES = {
    "/auth/login": "email",
    "/send-otp": "phone",
}


class SlidingWindowRateLimiter(BaseHTTPMiddleware):
    """
    Applies sliding-window rate limiting to POST /auth/login and POST /send-otp.
    Key is derived from the request body field for the route.
    Falls back to IP-based key if the body cannot be parsed.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path.rstrip("/") or "/"
        field = LIMITED_ROUTES.get(path)
        if not settings.RATE_LIMIT_ENABLED or request.method != "POST" or field is None:
            return await call_next(request)

        # Starlette caches the body, so the route can still read it
        body = await request.body()
        client_host = request.client.host if request.client else "unknown"
        try:
            data = json.loads(body)
            tracking_key = str(data.get(field) or client_host).lower()
        except (ValueError, AttributeError):
            tracking_key = client_host

        redis = get_redis()
        key = f"{RATE_LIMIT_PREFIX}{path}:{tracking_key}"
        now = time.time()
        window_start = now - settings.RATE_LIMIT_WINDOW_SECONDS

        pipe = redis.pipeline()
        # Remove entries outside the window
        pipe.zremrangebyscore(key, "-inf", window_start)
        # Count current attempts in window
        pipe.zcard(key)
        # Add this attempt
        pipe.zadd(key, {str(now): now})
        # Set TTL
        pipe.expire(key, settings.RATE_LIMIT_WINDOW_SECONDS + 1)
        try:
            results = await pipe.execute()
        except RedisError as exc:
            logger.error("Rate limiter could not reach Redis: %s", exc)
            error = StorageError(f"Key-value store error: {exc}")
            return JSONResponse(status_code=error.status_code, content=error.to_dict())

        attempt_count = results[1]  # count before this attempt

        if attempt_count >= settings.RATE_LIMIT_MAX_ATTEMPTS:
            logger.warning("Rate limit hit on %s for %s", path, tracking_key)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "kind": "rate_limited",
                    "detail": (
                        f"Too many attempts. Maximum {settings.RATE_LIMIT_MAX_ATTEMPTS} "
                        f"attempts per {settings.RATE_LIMIT_WINDOW_SECONDS} seconds."
                    ),
                    "retry_after_seconds": settings.RATE_LIMIT_WINDOW_SECONDS,
                },
                headers={"Retry-After": str(settings.RATE_LIMIT_WINDOW_SECONDS)},
            )

        return await call_next(request)
