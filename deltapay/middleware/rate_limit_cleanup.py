"""Background rate limiter cleanup task."""

import asyncio
import logging

from deltapay.middleware.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 3600
INACTIVE_BUCKET_SECONDS = 86400


async def rate_limit_cleanup_loop(interval_seconds: float = CLEANUP_INTERVAL_SECONDS) -> None:
    """Periodic cleanup of inactive rate limit buckets to prevent memory leaks."""
    rate_limiter = get_rate_limiter()
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await rate_limiter.cleanup_inactive_buckets(
                inactive_seconds=INACTIVE_BUCKET_SECONDS
            )
            if removed > 0:
                logger.debug(f"Rate limiter cleanup: removed {removed} inactive buckets")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Rate limiter cleanup error: {e}")
