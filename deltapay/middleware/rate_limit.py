"""Rate limiting middleware for API protection."""

import asyncio
import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from deltapay.core.request_utils import get_client_ip, get_user_agent

logger = logging.getLogger(__name__)


@dataclass
class PathRateLimitConfig:
    """Configuration for rate limiting a specific path pattern."""

    requests_per_minute: int = 60
    requests_per_hour: int = 1000
    burst_size: int = 10

    @classmethod
    def from_requests_per_minute(cls, requests_per_minute: int) -> "PathRateLimitConfig":
        """Config scaled from a per-minute limit, used for unmatched paths."""
        return cls(
            requests_per_minute=requests_per_minute,
            requests_per_hour=requests_per_minute * 20,
            burst_size=max(1, requests_per_minute // 5),
        )


@dataclass
class RateLimitBucket:
    """Rate limit tracking for a single client+path combination."""

    tokens: float = 10.0
    last_update: float = field(default_factory=time.monotonic)
    minute_requests: list[float] = field(default_factory=list)
    hour_requests: list[float] = field(default_factory=list)


class RateLimiter:
    """In-memory rate limiter with per-path configuration.

    Designed for single-instance deployments.
    """

    _instance: Optional["RateLimiter"] = None
    _instance_lock: threading.Lock = threading.Lock()

    def __init__(self) -> None:
        self._buckets: dict[str, RateLimitBucket] = defaultdict(RateLimitBucket)
        self._lock = asyncio.Lock()

        # Most specific prefixes first
        self._path_configs: dict[str, PathRateLimitConfig] = {
            # Credential endpoints - tight limits against password guessing
            "/auth/login": PathRateLimitConfig(
                requests_per_minute=10,
                requests_per_hour=100,
                burst_size=5,
            ),
            "/auth/employee-login": PathRateLimitConfig(
                requests_per_minute=10,
                requests_per_hour=100,
                burst_size=5,
            ),
            "/auth/register": PathRateLimitConfig(
                requests_per_minute=5,
                requests_per_hour=50,
                burst_size=3,
            ),
            # CSRF token issuance and other auth endpoints
            "/auth/": PathRateLimitConfig(
                requests_per_minute=30,
                requests_per_hour=600,
                burst_size=10,
            ),
        }

        # Default config for unmatched paths
        self._default_config = PathRateLimitConfig.from_requests_per_minute(100)

    @classmethod
    def get_instance(cls) -> "RateLimiter":
        """Get the singleton instance (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_config_for_path(
        self, path: str, default: PathRateLimitConfig | None = None
    ) -> PathRateLimitConfig:
        """Get rate limit config for a given path.

        Unmatched paths use ``default`` when given, else the limiter's own default.
        """
        for prefix, config in self._path_configs.items():
            if path.startswith(prefix):
                return config
        return default or self._default_config

    def _get_bucket_key(self, client_ip: str, path: str) -> str:
        """Get bucket key for client and path combination."""
        # Group by path prefix
        for prefix in self._path_configs.keys():
            if path.startswith(prefix):
                return f"{client_ip}:{prefix}"
        return f"{client_ip}:default"

    def _cleanup_old_requests(self, bucket: RateLimitBucket, now: float) -> None:
        """Remove old request timestamps from bucket."""
        minute_cutoff = now - 60
        hour_cutoff = now - 3600

        bucket.minute_requests = [ts for ts in bucket.minute_requests if ts > minute_cutoff]
        bucket.hour_requests = [ts for ts in bucket.hour_requests if ts > hour_cutoff]

    async def check_rate_limit(
        self,
        client_ip: str,
        path: str,
        default_config: PathRateLimitConfig | None = None,
    ) -> tuple[bool, dict[str, str]]:
        """Check if request is allowed.

        Returns:
            Tuple of (is_allowed, headers_dict)
        """
        config = self.get_config_for_path(path, default_config)
        bucket_key = self._get_bucket_key(client_ip, path)

        async with self._lock:
            is_new = bucket_key not in self._buckets
            bucket = self._buckets[bucket_key]
            if is_new:
                bucket.tokens = float(config.burst_size)
            now = time.monotonic()

            self._cleanup_old_requests(bucket, now)

            minute_remaining = config.requests_per_minute - len(bucket.minute_requests)
            hour_remaining = config.requests_per_hour - len(bucket.hour_requests)

            headers = {
                "X-RateLimit-Limit": str(config.requests_per_minute),
                "X-RateLimit-Remaining": str(max(0, minute_remaining - 1)),
                "X-RateLimit-Limit-Hour": str(config.requests_per_hour),
                "X-RateLimit-Remaining-Hour": str(max(0, hour_remaining - 1)),
            }

            # Check minute limit
            if minute_remaining <= 0:
                oldest = min(bucket.minute_requests) if bucket.minute_requests else now
                reset_seconds = max(1, int(60 - (now - oldest)))
                headers["Retry-After"] = str(reset_seconds)
                headers["X-RateLimit-Reset"] = str(reset_seconds)
                return False, headers

            # Check hour limit
            if hour_remaining <= 0:
                oldest = min(bucket.hour_requests) if bucket.hour_requests else now
                reset_seconds = max(1, int(3600 - (now - oldest)))
                headers["Retry-After"] = str(reset_seconds)
                headers["X-RateLimit-Reset"] = str(reset_seconds)
                return False, headers

            # Token bucket for burst control
            elapsed = now - bucket.last_update
            refill_rate = config.requests_per_minute / 60.0
            bucket.tokens = min(
                config.burst_size,
                bucket.tokens + elapsed * refill_rate,
            )
            bucket.last_update = now

            if bucket.tokens < 1.0:
                headers["Retry-After"] = "1"
                return False, headers

            bucket.tokens -= 1.0
            bucket.minute_requests.append(now)
            bucket.hour_requests.append(now)

            return True, headers

    async def reset(self, client_ip: str | None = None) -> None:
        """Reset rate limit counters."""
        async with self._lock:
            if client_ip:
                keys_to_remove = [k for k in self._buckets.keys() if k.startswith(f"{client_ip}:")]
                for key in keys_to_remove:
                    del self._buckets[key]
            else:
                self._buckets.clear()

    async def cleanup_inactive_buckets(self, inactive_seconds: int = 86400) -> int:
        """Remove buckets that have been inactive for the specified duration.

        Args:
            inactive_seconds: Duration of inactivity before bucket is removed (default: 24h)

        Returns:
            Number of buckets removed
        """
        async with self._lock:
            cutoff = time.monotonic() - inactive_seconds
            keys_to_remove = [
                key
                for key, bucket in self._buckets.items()
                if bucket.last_update < cutoff
                and all(ts < cutoff for ts in bucket.hour_requests)
            ]

            for key in keys_to_remove:
                del self._buckets[key]

            if keys_to_remove:
                logger.info(f"Cleaned up {len(keys_to_remove)} inactive rate limit buckets")

            return len(keys_to_remove)

    def __len__(self) -> int:
        return len(self._buckets)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware with per-endpoint configuration.

    Features:
    - Per-IP rate limiting
    - Tighter limits for the credential endpoints under /auth
    - Token bucket algorithm for burst control
    - Sliding window for minute/hour limits
    - Rejections are written to the security log
    """

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 100,
        exclude_paths: list[str] | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self.exclude_paths = exclude_paths or [
            "/health",
            "/docs",
            "/redoc",
            "/openapi.json",
        ]
        self.enabled = enabled
        self.rate_limiter = RateLimiter.get_instance()
        # Kept per middleware; the limiter is shared by every app in the process
        self.default_config = PathRateLimitConfig.from_requests_per_minute(requests_per_minute)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request with rate limiting."""
        if not self.enabled:
            return await call_next(request)

        path = request.url.path
        if any(path.startswith(p) for p in self.exclude_paths):
            return await call_next(request)

        client_ip = get_client_ip(request)
        is_allowed, headers = await self.rate_limiter.check_rate_limit(
            client_ip, path, self.default_config
        )

        if not is_allowed:
            logger.warning(f"Rate limit exceeded for {client_ip} on {path}")
            await self._record_rejection(request, client_ip, path)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "success": False,
                    "message": "Too many requests. Please try again later.",
                    "retry_after": int(headers.get("Retry-After", 60)),
                },
                headers=headers,
            )

        response = await call_next(request)

        for key, value in headers.items():
            if not key.startswith("Retry"):
                response.headers[key] = str(value)

        return response

    async def _record_rejection(self, request: Request, client_ip: str, path: str) -> None:
        services = getattr(request.app.state, "services", None)
        if services is None:
            return

        from deltapay.services.security_log import SecurityAction, Severity

        await services.security_log.log(
            SecurityAction.RATE_LIMIT_EXCEEDED,
            client_ip,
            severity=Severity.WARNING,
            details={"path": path, "method": request.method},
            user_agent=get_user_agent(request),
        )


def get_rate_limiter() -> RateLimiter:
    """Get the rate limiter singleton for stats/management."""
    return RateLimiter.get_instance()
