"""In-memory repositories guarded by asyncio locks.

Designed for single-process deployments and tests. Model instances are stored
directly; every read-modify-write runs under the store's lock.
"""

import asyncio
import itertools
import logging
from datetime import datetime

from deltapay.models import CsrfToken, PrincipalKind, SecurityLog, Transaction, TransactionStatus
from deltapay.models.principal import Principal
from deltapay.repositories.base import (
    CsrfConsumeResult,
    CsrfConsumeStatus,
    CsrfTokenRepository,
    PrincipalRepository,
    Repositories,
    SecurityLogRepository,
    TransactionRepository,
)
from deltapay.services.errors import ConflictError

logger = logging.getLogger(__name__)


def _append_note(existing: str | None, note: str) -> str:
    if existing:
        return f"{existing} | {note}"
    return note


class InMemoryPrincipalRepository(PrincipalRepository):
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._ids = {kind: itertools.count(1) for kind in PrincipalKind}
        self._principals: dict[tuple[PrincipalKind, int], Principal] = {}
        self._usernames: dict[tuple[PrincipalKind, str], int] = {}

    async def add(self, principal: Principal) -> Principal:
        kind = principal.kind
        async with self._lock:
            if (kind, principal.username) in self._usernames:
                raise ConflictError("Username already exists")
            for existing in self._principals.values():
                if existing.kind is not kind:
                    continue
                if kind is PrincipalKind.USER and (
                    existing.id_number == principal.id_number
                    or existing.account_number == principal.account_number
                ):
                    raise ConflictError("Account already exists")
                if (
                    kind is PrincipalKind.EMPLOYEE
                    and existing.employee_number == principal.employee_number
                ):
                    raise ConflictError("Employee number already exists")

            principal.id = next(self._ids[kind])
            self._principals[(kind, principal.id)] = principal
            self._usernames[(kind, principal.username)] = principal.id
        return principal

    async def get(self, kind: PrincipalKind, principal_id: int) -> Principal | None:
        return self._principals.get((kind, principal_id))

    async def find_by_username(self, kind: PrincipalKind, username: str) -> Principal | None:
        principal_id = self._usernames.get((kind, username))
        if principal_id is None:
            return None
        return self._principals.get((kind, principal_id))

    async def find_active_by_username(
        self, kind: PrincipalKind, username: str
    ) -> Principal | None:
        principal = await self.find_by_username(kind, username)
        if principal is None or not principal.is_active:
            return None
        return principal

    async def user_identity_exists(self, id_number: str, account_number: str) -> bool:
        for (kind, _), principal in self._principals.items():
            if kind is PrincipalKind.USER and (
                principal.id_number == id_number or principal.account_number == account_number
            ):
                return True
        return False

    async def update_failure_state(
        self,
        kind: PrincipalKind,
        principal_id: int,
        failed_attempts: int,
        last_attempt: datetime,
        locked_until: datetime | None,
    ) -> None:
        async with self._lock:
            principal = self._principals.get((kind, principal_id))
            if principal is None:
                return
            principal.failed_login_attempts = failed_attempts
            principal.last_login_attempt = last_attempt
            principal.account_locked_until = locked_until

    async def reset_failure_state(
        self, kind: PrincipalKind, principal_id: int, last_attempt: datetime
    ) -> None:
        async with self._lock:
            principal = self._principals.get((kind, principal_id))
            if principal is None:
                return
            principal.failed_login_attempts = 0
            principal.last_login_attempt = last_attempt
            principal.account_locked_until = None

    async def set_active(
        self, kind: PrincipalKind, principal_id: int, active: bool
    ) -> Principal | None:
        async with self._lock:
            principal = self._principals.get((kind, principal_id))
            if principal is not None:
                principal.is_active = active
        return principal


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._transactions: dict[int, Transaction] = {}

    async def add(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            transaction.id = next(self._ids)
            self._transactions[transaction.id] = transaction
        return transaction

    async def get(self, transaction_id: int) -> Transaction | None:
        return self._transactions.get(transaction_id)

    async def list_transactions(
        self,
        user_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        matches = [
            tx
            for tx in self._transactions.values()
            if (user_id is None or tx.user_id == user_id)
            and (status is None or tx.status == status)
        ]
        matches.sort(key=lambda tx: (tx.created_at, tx.id), reverse=True)
        return matches[offset : offset + limit]

    async def complete_pending(
        self,
        transaction_id: int,
        status: str,
        employee_id: int,
        processed_at: datetime,
        note: str | None = None,
    ) -> Transaction | None:
        async with self._lock:
            transaction = self._transactions.get(transaction_id)
            if transaction is None or transaction.status != TransactionStatus.PENDING.value:
                return None
            transaction.status = status
            transaction.processed_at = processed_at
            transaction.processed_by = employee_id
            if note:
                transaction.notes = _append_note(transaction.notes, note)
            return transaction


class InMemoryCsrfTokenRepository(CsrfTokenRepository):
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._tokens: dict[str, CsrfToken] = {}

    async def add(self, record: CsrfToken) -> CsrfToken:
        async with self._lock:
            if record.token in self._tokens:
                raise ConflictError("CSRF token collision")
            record.id = next(self._ids)
            self._tokens[record.token] = record
        return record

    async def consume(self, token: str, now: datetime) -> CsrfConsumeResult:
        async with self._lock:
            record = self._tokens.get(token)
            if record is None:
                return CsrfConsumeResult(CsrfConsumeStatus.NOT_FOUND)

            if record.is_used or record.expires_at <= now:
                status = CsrfConsumeStatus.USED if record.is_used else CsrfConsumeStatus.EXPIRED
                del self._tokens[token]
                return CsrfConsumeResult(status, record.user_id, record.employee_id)

            record.is_used = True
            return CsrfConsumeResult(
                CsrfConsumeStatus.CONSUMED, record.user_id, record.employee_id
            )

    async def purge(self, now: datetime) -> int:
        async with self._lock:
            stale = [
                token
                for token, record in self._tokens.items()
                if record.is_used or record.expires_at <= now
            ]
            for token in stale:
                del self._tokens[token]
            return len(stale)

    def __len__(self) -> int:
        return len(self._tokens)


class InMemorySecurityLogRepository(SecurityLogRepository):
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._entries: list[SecurityLog] = []

    async def append(self, entry: SecurityLog) -> SecurityLog:
        async with self._lock:
            entry.id = next(self._ids)
            self._entries.append(entry)
        return entry

    async def list_recent(
        self,
        limit: int = 100,
        severity: str | None = None,
        action: str | None = None,
    ) -> list[SecurityLog]:
        matches = [
            entry
            for entry in reversed(self._entries)
            if (severity is None or entry.severity == severity)
            and (action is None or entry.action == action)
        ]
        return matches[:limit]

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._lock:
            kept = [entry for entry in self._entries if entry.created_at >= cutoff]
            removed = len(self._entries) - len(kept)
            self._entries = kept
        if removed:
            logger.debug(f"Removed {removed} security log entries older than {cutoff}")
        return removed


def build_memory_repositories() -> Repositories:
    """Create a fresh, empty set of in-memory stores."""
    return Repositories(
        principals=InMemoryPrincipalRepository(),
        transactions=InMemoryTransactionRepository(),
        csrf_tokens=InMemoryCsrfTokenRepository(),
        security_logs=InMemorySecurityLogRepository(),
    )
