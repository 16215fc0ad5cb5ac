"""Security Log Service.

Journals security-relevant events for monitoring and compliance:
- Login attempts, lockouts and registrations
- CSRF rejections
- Payment creation and transaction review
- Rate limiting and retention cleanup
"""

import json
import logging
from datetime import timedelta
from enum import Enum
from typing import Any

from deltapay.core.clock import Clock, system_clock
from deltapay.models import PrincipalKind, SecurityLog
from deltapay.repositories.base import SecurityLogRepository

logger = logging.getLogger(__name__)

MAX_ACTION_LENGTH = 64
MAX_DETAILS_LENGTH = 2000


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SecurityAction(str, Enum):
    """Security log action tags that are not tied to a principal kind."""

    # Account events
    USER_REGISTERED = "USER_REGISTERED"
    USER_REGISTRATION_FAILED = "USER_REGISTRATION_FAILED"
    EMPLOYEE_CREATED = "EMPLOYEE_CREATED"

    # CSRF events
    CSRF_TOKEN_INVALID = "CSRF_TOKEN_INVALID"
    CSRF_TOKEN_EXPIRED_OR_USED = "CSRF_TOKEN_EXPIRED_OR_USED"

    # Payment events
    PAYMENT_CREATED = "PAYMENT_CREATED"
    PAYMENT_CREATION_FAILED = "PAYMENT_CREATION_FAILED"
    TRANSACTION_APPROVED = "TRANSACTION_APPROVED"
    TRANSACTION_DENIED = "TRANSACTION_DENIED"
    TRANSACTION_APPROVAL_FAILED = "TRANSACTION_APPROVAL_FAILED"
    TRANSACTION_DENIAL_FAILED = "TRANSACTION_DENIAL_FAILED"

    # System events
    SECURITY_LOGS_CLEANED_UP = "SECURITY_LOGS_CLEANED_UP"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


class LoginEvent(str, Enum):
    """Login events, prefixed with the principal kind when logged."""

    NOT_FOUND = "LOGIN_NOT_FOUND"
    ACCOUNT_LOCKED_ATTEMPT = "LOGIN_ACCOUNT_LOCKED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    INVALID_PASSWORD = "LOGIN_INVALID_PASSWORD"
    SUCCESS = "LOGIN_SUCCESS"
    ERROR = "LOGIN_ERROR"


def login_action(kind: PrincipalKind, event: LoginEvent) -> str:
    """Action tag for a login event, e.g. ``EMPLOYEE_LOGIN_SUCCESS``.

    A user lockout is logged as the bare ``ACCOUNT_LOCKED`` tag.
    """
    if event is LoginEvent.ACCOUNT_LOCKED and kind is PrincipalKind.USER:
        return event.value
    return f"{kind.log_prefix}_{event.value}"


class AccountEvent(str, Enum):
    """Employee changes to account status, prefixed with the principal kind."""

    ACTIVATED = "ACCOUNT_ACTIVATED"
    DEACTIVATED = "ACCOUNT_DEACTIVATED"
    TOGGLE_FAILED = "ACCOUNT_TOGGLE_FAILED"


def account_action(kind: PrincipalKind, event: AccountEvent) -> str:
    return f"{kind.log_prefix}_{event.value}"


def mask_username(username: str) -> str:
    """Keep the first two characters of a username and mask the rest."""
    if len(username) <= 2:
        return "*" * len(username)
    return username[:2] + "*" * (len(username) - 2)


class SecurityLogService:
    """Writes and maintains the append-only security log.

    Writing never fails the caller: sink errors are reported through the
    application logger and swallowed.
    """

    def __init__(self, repository: SecurityLogRepository, clock: Clock = system_clock):
        self._repository = repository
        self._clock = clock

    async def log(
        self,
        action: SecurityAction | str,
        ip_address: str,
        severity: Severity | str = Severity.INFO,
        user_id: int | None = None,
        employee_id: int | None = None,
        details: dict[str, Any] | str | None = None,
        user_agent: str | None = None,
    ) -> SecurityLog | None:
        """Append a security log entry.

        Args:
            action: The action tag (truncated to 64 characters)
            ip_address: Source IP of the request
            severity: info, warning or error
            user_id: Acting or affected user, if any
            employee_id: Acting or affected employee, if any
            details: Free text or a mapping; mappings are sanitised and
                serialised as JSON (truncated to 2000 characters)
            user_agent: Client user agent, if known

        Returns:
            The stored entry, or None when the sink failed
        """
        action_value = action.value if isinstance(action, Enum) else str(action)
        severity_value = severity.value if isinstance(severity, Enum) else str(severity)

        entry = SecurityLog(
            user_id=user_id,
            employee_id=employee_id,
            action=action_value[:MAX_ACTION_LENGTH],
            ip_address=ip_address,
            user_agent=user_agent,
            details=self._format_details(details),
            severity=severity_value,
            created_at=self._clock.now(),
        )

        try:
            return await self._repository.append(entry)
        except Exception as e:
            logger.error(f"Failed to write security log entry {action_value}: {e}")
            return None

    def _format_details(self, details: dict[str, Any] | str | None) -> str | None:
        if details is None:
            return None
        if isinstance(details, dict):
            text = json.dumps(self._sanitize_details(details), default=str)
        else:
            text = str(details)
        return text[:MAX_DETAILS_LENGTH]

    def _sanitize_details(self, details: dict[str, Any]) -> dict[str, Any]:
        """Remove sensitive data from log details.

        Redacts passwords, tokens, secrets, etc.
        """
        sensitive_keys = {
            "password",
            "secret",
            "token",
            "api_key",
            "csrf",
            "hash",
        }

        sanitized = {}
        for key, value in details.items():
            key_lower = key.lower()
            if any(s in key_lower for s in sensitive_keys):
                if value is not None:
                    sanitized[key] = "[REDACTED - set]"
                else:
                    sanitized[key] = "[REDACTED - unset]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_details(value)
            else:
                sanitized[key] = value

        return sanitized

    async def list_recent(
        self,
        limit: int = 100,
        severity: Severity | str | None = None,
        action: SecurityAction | str | None = None,
    ) -> list[SecurityLog]:
        """Newest entries first."""
        if isinstance(severity, Enum):
            severity = severity.value
        if isinstance(action, Enum):
            action = action.value
        return await self._repository.list_recent(limit=limit, severity=severity, action=action)

    async def cleanup_old_logs(
        self,
        retention_days: int,
        employee_id: int | None = None,
        ip_address: str = "system",
    ) -> int:
        """Delete entries older than the retention period.

        When an employee triggers the cleanup, the cleanup itself is journaled.

        Returns:
            Number of entries deleted
        """
        retention_days = max(1, retention_days)
        cutoff = self._clock.now() - timedelta(days=retention_days)
        deleted = await self._repository.delete_older_than(cutoff)

        if employee_id is not None:
            await self.log(
                SecurityAction.SECURITY_LOGS_CLEANED_UP,
                ip_address,
                severity=Severity.INFO,
                employee_id=employee_id,
                details={"deleted": deleted, "retention_days": retention_days},
            )

        return deleted
