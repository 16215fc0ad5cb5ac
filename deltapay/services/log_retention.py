"""Log retention service - automatically cleans up old security log entries."""

import asyncio

from deltapay.core.logging import get_logger
from deltapay.services.security_log import SecurityLogService

logger = get_logger("log_retention")

# How often to run cleanup (in seconds)
CLEANUP_INTERVAL_SECONDS = 3600  # 1 hour

DEFAULT_RETENTION_DAYS = 90


class LogRetentionService:
    """Background service to periodically delete old security log entries."""

    def __init__(
        self,
        security_log: SecurityLogService,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
        initial_delay_seconds: float = 60,
    ):
        self._security_log = security_log
        self._retention_days = max(1, retention_days)
        self._interval_seconds = interval_seconds
        self._initial_delay_seconds = initial_delay_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def retention_days(self) -> int:
        """Get current retention period in days."""
        return self._retention_days

    @retention_days.setter
    def retention_days(self, value: int) -> None:
        """Set retention period in days (minimum 1 day)."""
        self._retention_days = max(1, value)
        logger.info(f"Log retention period set to {self._retention_days} days")

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background log retention task."""
        if self._running:
            logger.warning("Log retention service is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop(), name="log-retention")
        logger.info(
            f"Log retention service started (retention: {self._retention_days} days, "
            f"interval: {self._interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the background log retention task."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Log retention service stopped")

    async def _cleanup_loop(self) -> None:
        """Main loop that periodically cleans up old logs."""
        # Wait a bit before first cleanup to let the app start up
        await asyncio.sleep(self._initial_delay_seconds)

        while self._running:
            try:
                await self.run_cleanup_now()
            except Exception as e:
                logger.error(f"Error in log retention cleanup: {e}")

            await asyncio.sleep(self._interval_seconds)

    async def run_cleanup_now(self) -> int:
        """Run a single cleanup pass.

        Returns:
            Number of entries deleted
        """
        deleted_count = await self._security_log.cleanup_old_logs(self._retention_days)
        if deleted_count > 0:
            logger.info(
                f"Log retention cleanup: deleted {deleted_count} entries "
                f"older than {self._retention_days} days"
            )
        return deleted_count
