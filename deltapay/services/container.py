"""Wiring of repositories, clock and configuration into the core services."""

from dataclasses import dataclass
from datetime import timedelta

from deltapay.core.clock import Clock, system_clock
from deltapay.core.config import Settings
from deltapay.repositories import Repositories, build_repositories
from deltapay.services.credentials import CredentialService
from deltapay.services.csrf import CsrfService
from deltapay.services.log_retention import LogRetentionService
from deltapay.services.security_log import SecurityLogService
from deltapay.services.tokens import SessionTokenService
from deltapay.services.transactions import TransactionService


@dataclass
class ServiceContainer:
    """Everything a running gateway needs, built once per application."""

    settings: Settings
    clock: Clock
    repositories: Repositories
    security_log: SecurityLogService
    credentials: CredentialService
    tokens: SessionTokenService
    csrf: CsrfService
    transactions: TransactionService
    log_retention: LogRetentionService


def build_services(
    settings: Settings,
    clock: Clock = system_clock,
    repositories: Repositories | None = None,
) -> ServiceContainer:
    """Build the service graph for the given settings.

    Repositories default to the configured storage backend; tests pass their
    own together with a manual clock.
    """
    if repositories is None:
        repositories = build_repositories(settings.storage_backend)

    security_log = SecurityLogService(repositories.security_logs, clock=clock)

    return ServiceContainer(
        settings=settings,
        clock=clock,
        repositories=repositories,
        security_log=security_log,
        credentials=CredentialService(
            repositories.principals,
            security_log,
            clock=clock,
            lockout_threshold=settings.lockout_threshold,
            lockout_duration=timedelta(minutes=settings.lockout_duration_minutes),
        ),
        tokens=SessionTokenService(
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            lifetime=timedelta(hours=settings.session_token_expire_hours),
            clock=clock,
        ),
        csrf=CsrfService(
            repositories.csrf_tokens,
            security_log,
            lifetime=timedelta(hours=settings.csrf_token_expire_hours),
            clock=clock,
        ),
        transactions=TransactionService(
            repositories.transactions,
            repositories.principals,
            security_log,
            clock=clock,
        ),
        log_retention=LogRetentionService(
            security_log,
            retention_days=settings.log_retention_days,
        ),
    )
