# Delta Pay Repositories
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deltapay.repositories.base import (
    CsrfConsumeResult,
    CsrfConsumeStatus,
    CsrfTokenRepository,
    PrincipalRepository,
    Repositories,
    SecurityLogRepository,
    TransactionRepository,
)
from deltapay.repositories.memory import build_memory_repositories
from deltapay.repositories.sql import build_sql_repositories


def build_repositories(
    backend: str,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> Repositories:
    """Create the repositories for the configured storage backend."""
    if backend == "memory":
        return build_memory_repositories()
    if backend == "database":
        if session_factory is None:
            from deltapay.core.database import async_session_maker

            session_factory = async_session_maker
        return build_sql_repositories(session_factory)
    raise ValueError(f"Unknown storage backend: {backend}")


__all__ = [
    "CsrfConsumeResult",
    "CsrfConsumeStatus",
    "CsrfTokenRepository",
    "PrincipalRepository",
    "Repositories",
    "SecurityLogRepository",
    "TransactionRepository",
    "build_memory_repositories",
    "build_repositories",
    "build_sql_repositories",
]
