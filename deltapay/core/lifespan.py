"""Startup and shutdown sequence for the application."""

import asyncio
import logging

from deltapay.core.logging import get_logger, setup_logging
from deltapay.middleware import rate_limit_cleanup_loop
from deltapay.services.container import ServiceContainer

_logger = get_logger("lifespan")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.error(f"Background task {task.get_name()} failed: {exc}")


async def csrf_cleanup_loop(services: ServiceContainer, interval_seconds: float) -> None:
    """Periodically remove expired and used CSRF tokens."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await services.csrf.purge_expired()
        except Exception:
            _logger.exception("Error cleaning up CSRF tokens")


async def startup(services: ServiceContainer, logger: logging.Logger) -> list[asyncio.Task]:
    """Configure logging, seed the bootstrap employee and start background tasks.

    Returns the managed background tasks that must be cancelled on shutdown
    via ``shutdown``.
    """
    settings = services.settings

    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    if settings.bootstrap_employee_username and settings.bootstrap_employee_password:
        created = await services.credentials.ensure_bootstrap_employee(
            username=settings.bootstrap_employee_username,
            password=settings.bootstrap_employee_password,
            full_name=settings.bootstrap_employee_full_name,
            employee_number=settings.bootstrap_employee_number,
        )
        if created:
            logger.info(f"Bootstrap employee {settings.bootstrap_employee_username} created")

    services.log_retention.retention_days = settings.log_retention_days
    await services.log_retention.start()

    tasks: list[asyncio.Task] = []

    csrf_task = asyncio.create_task(
        csrf_cleanup_loop(services, settings.csrf_cleanup_interval_seconds),
        name="csrf-cleanup",
    )
    csrf_task.add_done_callback(task_done_callback)
    tasks.append(csrf_task)

    rate_limit_task = asyncio.create_task(rate_limit_cleanup_loop(), name="rate-limit-cleanup")
    rate_limit_task.add_done_callback(task_done_callback)
    tasks.append(rate_limit_task)

    return tasks


async def shutdown(
    services: ServiceContainer,
    logger: logging.Logger,
    tasks: list[asyncio.Task],
) -> None:
    """Cancel background tasks and stop log retention."""
    for task in tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    await services.log_retention.stop()
    logger.info("Background tasks stopped")
