"""Middleware module for Delta Pay."""

from deltapay.middleware.rate_limit import RateLimiter, RateLimitMiddleware, get_rate_limiter
from deltapay.middleware.rate_limit_cleanup import rate_limit_cleanup_loop
from deltapay.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "RateLimitMiddleware",
    "RateLimiter",
    "SecurityHeadersMiddleware",
    "get_rate_limiter",
    "rate_limit_cleanup_loop",
]
