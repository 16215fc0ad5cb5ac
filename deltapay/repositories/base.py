"""Repository interfaces the core services depend on.

Every mutating operation is atomic per entity: implementations either guard
an in-memory map with a lock or issue a single conditional statement inside
one database transaction.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from deltapay.models import CsrfToken, PrincipalKind, SecurityLog, Transaction
from deltapay.models.principal import Principal


class PrincipalRepository(ABC):
    """Store of users and employees."""

    @abstractmethod
    async def add(self, principal: Principal) -> Principal:
        """Insert a principal. Raises ConflictError on a duplicate unique field."""

    @abstractmethod
    async def get(self, kind: PrincipalKind, principal_id: int) -> Principal | None:
        """Fetch a principal by id, active or not."""

    @abstractmethod
    async def find_by_username(self, kind: PrincipalKind, username: str) -> Principal | None:
        """Fetch a principal by username, active or not."""

    @abstractmethod
    async def find_active_by_username(
        self, kind: PrincipalKind, username: str
    ) -> Principal | None:
        """Fetch an active principal by username."""

    @abstractmethod
    async def user_identity_exists(self, id_number: str, account_number: str) -> bool:
        """Whether a user already holds the id number or the account number."""

    @abstractmethod
    async def update_failure_state(
        self,
        kind: PrincipalKind,
        principal_id: int,
        failed_attempts: int,
        last_attempt: datetime,
        locked_until: datetime | None,
    ) -> None:
        """Persist the failed-login counter, last attempt and lockout expiry."""

    @abstractmethod
    async def reset_failure_state(
        self, kind: PrincipalKind, principal_id: int, last_attempt: datetime
    ) -> None:
        """Zero the counter, clear the lockout and stamp the last attempt."""

    @abstractmethod
    async def set_active(
        self, kind: PrincipalKind, principal_id: int, active: bool
    ) -> Principal | None:
        """Activate or deactivate a principal. Returns None when it does not exist."""


class TransactionRepository(ABC):
    """Store of payment transactions."""

    @abstractmethod
    async def add(self, transaction: Transaction) -> Transaction:
        """Insert a transaction and assign its id."""

    @abstractmethod
    async def get(self, transaction_id: int) -> Transaction | None:
        """Fetch a transaction by id."""

    @abstractmethod
    async def list_transactions(
        self,
        user_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        """List transactions newest first, optionally filtered."""

    @abstractmethod
    async def complete_pending(
        self,
        transaction_id: int,
        status: str,
        employee_id: int,
        processed_at: datetime,
        note: str | None = None,
    ) -> Transaction | None:
        """Move a pending transaction to ``status`` in one atomic step.

        ``note`` is appended to the existing notes. Returns None when the
        transaction does not exist or is no longer pending.
        """


class CsrfConsumeStatus(str, Enum):
    CONSUMED = "consumed"
    NOT_FOUND = "not_found"
    USED = "used"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CsrfConsumeResult:
    """Snapshot of a consume attempt, captured before any deletion."""

    status: CsrfConsumeStatus
    user_id: int | None = None
    employee_id: int | None = None


class CsrfTokenRepository(ABC):
    """Store of single-use CSRF tokens."""

    @abstractmethod
    async def add(self, record: CsrfToken) -> CsrfToken:
        """Insert a new unused token."""

    @abstractmethod
    async def consume(self, token: str, now: datetime) -> CsrfConsumeResult:
        """Check and mark a token used in one atomic step.

        Used or expired records are deleted when detected.
        """

    @abstractmethod
    async def purge(self, now: datetime) -> int:
        """Delete used and expired tokens. Returns the number removed."""


class SecurityLogRepository(ABC):
    """Append-only store of security log entries."""

    @abstractmethod
    async def append(self, entry: SecurityLog) -> SecurityLog:
        """Append an entry and assign its id."""

    @abstractmethod
    async def list_recent(
        self,
        limit: int = 100,
        severity: str | None = None,
        action: str | None = None,
    ) -> list[SecurityLog]:
        """Newest entries first, optionally filtered."""

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Bulk retention delete. Returns the number removed."""


@dataclass
class Repositories:
    """The set of stores a running gateway works against."""

    principals: PrincipalRepository
    transactions: TransactionRepository
    csrf_tokens: CsrfTokenRepository
    security_logs: SecurityLogRepository
