"""CSRF token service - short-lived single-use anti-CSRF tokens."""

import logging
import secrets
from datetime import timedelta

from deltapay.core.clock import Clock, system_clock
from deltapay.models import CsrfToken
from deltapay.repositories.base import CsrfConsumeStatus, CsrfTokenRepository
from deltapay.services.errors import CsrfError, Outcome
from deltapay.services.security_log import SecurityAction, SecurityLogService, Severity

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# 32 random bytes, URL-safe base64 encoded
TOKEN_BYTES = 32


class CsrfService:
    """Issues CSRF tokens and consumes them exactly once."""

    def __init__(
        self,
        repository: CsrfTokenRepository,
        security_log: SecurityLogService,
        lifetime: timedelta = timedelta(hours=24),
        clock: Clock = system_clock,
    ):
        self._repository = repository
        self._security_log = security_log
        self._lifetime = lifetime
        self._clock = clock

    async def generate(self, user_id: int | None = None, employee_id: int | None = None) -> str:
        """Create and store a new unused token for the requesting session."""
        now = self._clock.now()
        record = CsrfToken(
            token=secrets.token_urlsafe(TOKEN_BYTES),
            user_id=user_id,
            employee_id=employee_id,
            expires_at=now + self._lifetime,
            is_used=False,
            created_at=now,
        )
        await self._repository.add(record)
        return record.token

    async def validate_and_consume(
        self,
        token: str | None,
        method: str,
        ip_address: str,
        user_agent: str | None = None,
    ) -> Outcome[None]:
        """Validate a CSRF token for a request and mark it used.

        Safe methods pass without a token. The owning session stored with the
        token is recorded for audit only.
        """
        if method.upper() in SAFE_METHODS:
            return Outcome.ok(message="Safe method")

        if not token:
            return Outcome.fail(CsrfError("CSRF token required"))

        result = await self._repository.consume(token, self._clock.now())

        if result.status is CsrfConsumeStatus.CONSUMED:
            return Outcome.ok(message="CSRF token valid")

        if result.status is CsrfConsumeStatus.NOT_FOUND:
            await self._security_log.log(
                SecurityAction.CSRF_TOKEN_INVALID,
                ip_address,
                severity=Severity.WARNING,
                details="Invalid CSRF token provided",
                user_agent=user_agent,
            )
            return Outcome.fail(CsrfError("Invalid CSRF token"))

        await self._security_log.log(
            SecurityAction.CSRF_TOKEN_EXPIRED_OR_USED,
            ip_address,
            severity=Severity.WARNING,
            user_id=result.user_id,
            employee_id=result.employee_id,
            details=f"CSRF token rejected: {result.status.value}",
            user_agent=user_agent,
        )
        return Outcome.fail(CsrfError("CSRF token expired or already used"))

    async def purge_expired(self) -> int:
        """Delete expired and used tokens.

        Returns:
            Number of tokens deleted
        """
        deleted = await self._repository.purge(self._clock.now())
        if deleted > 0:
            logger.info(f"CSRF cleanup: deleted {deleted} expired or used tokens")
        return deleted
