"""Rate limiting configuration using Upstash Redis.

Provides distributed rate limiting for the tool and job endpoints using
Upstash's serverless Redis service. Falls back to allowing requests if
Upstash is not configured (development/test environments).
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from functools import lru_cache
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status

from core.config import Settings, get_settings


if TYPE_CHECKING:
    from upstash_ratelimit import Ratelimit

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "mcp-learning:ratelimit"

# Paths that bypass rate limiting
RATE_LIMIT_BYPASS_PATHS: set[str] = {
    "/api/v1/health",
    "/api/v1/health/",
}


@lru_cache
def get_ratelimiter() -> Ratelimit | None:
    """Create and cache the rate limiter instance.

    Returns None if Upstash is not configured.
    """
    from upstash_ratelimit import Ratelimit, SlidingWindow
    from upstash_redis import Redis

    settings = get_settings()

    if not settings.UPSTASH_REDIS_REST_URL or not settings.UPSTASH_REDIS_REST_TOKEN:
        logger.warning(
            "Upstash Redis not configured. Rate limiting is disabled. "
            "Set UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN to enable."
        )
        return None

    try:
        redis = Redis(
            url=settings.UPSTASH_REDIS_REST_URL,
            token=settings.UPSTASH_REDIS_REST_TOKEN,
        )
        ratelimit = Ratelimit(
            redis=redis,
            limiter=SlidingWindow(
                max_requests=settings.RATE_LIMIT_REQUESTS,
                window=settings.RATE_LIMIT_WINDOW_SECONDS,
            ),
            prefix=RATE_LIMIT_PREFIX,
        )
        logger.info(
            "Rate limiting enabled: %d requests per %d seconds",
            settings.RATE_LIMIT_REQUESTS,
            settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        return ratelimit
    except Exception as e:
        logger.error("Failed to initialize rate limiter: %s", e)
        return None


def _get_client_identifier(request: Request) -> str:
    """Extract a client identifier for rate limiting.

    Prefers the bearer credential so each API key or JWT gets its own
    bucket, then X-Forwarded-For, then the direct client IP.
    """
    authorization = request.headers.get("Authorization") or ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        # Only a digest of the credential is sent to Redis
        digest = hashlib.sha256(token.strip().encode("utf-8")).hexdigest()
        return f"token:{digest[:32]}"

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    # Avoid bucket collisions between unidentifiable clients
    return f"unknown:{uuid.uuid4()}"


async def check_rate_limit(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """FastAPI dependency to enforce rate limits on endpoints.

    Raises HTTPException with 429 status if the rate limit is exceeded.
    Bypasses rate limiting for the health endpoint and when Upstash is not
    configured.

    Usage:
        @router.post("/tools/call", dependencies=[Depends(check_rate_limit)])
        async def call_tool(...): ...
    """
    path = request.url.path
    if path in RATE_LIMIT_BYPASS_PATHS:
        return

    ratelimiter = get_ratelimiter()
    if ratelimiter is None:
        return

    identifier = _get_client_identifier(request)

    try:
        response = ratelimiter.limit(identifier)

        if not response.allowed:
            current_time_ms = int(time.time() * 1000)
            reset_in_seconds = max(1, (response.reset - current_time_ms) // 1000)
            logger.warning(
                "Rate limit exceeded for %s on %s. Reset in %d seconds.",
                identifier,
                path,
                reset_in_seconds,
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later.",
                headers={
                    "Retry-After": str(reset_in_seconds),
                    "X-RateLimit-Limit": str(settings.RATE_LIMIT_REQUESTS),
                    "X-RateLimit-Remaining": str(response.remaining),
                },
            )
    except HTTPException:
        raise
    except Exception as e:
        # Log but don't block requests if rate limiting fails
        logger.error("Rate limit check failed: %s", e)
