"""PostgreSQL repositories through SQLAlchemy async sessions.

Each method opens its own session so every operation commits or rolls back as
one unit. State transitions are single conditional statements, so concurrent
callers cannot both win.
"""

import logging
from datetime import datetime

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deltapay.models import (
    CsrfToken,
    Employee,
    PrincipalKind,
    SecurityLog,
    Transaction,
    TransactionStatus,
    User,
)
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

_PRINCIPAL_MODELS: dict[PrincipalKind, type[User] | type[Employee]] = {
    PrincipalKind.USER: User,
    PrincipalKind.EMPLOYEE: Employee,
}


def _conflict_message(error: IntegrityError) -> str:
    detail = str(error.orig).lower()
    if "username" in detail:
        return "Username already exists"
    if "employee_number" in detail:
        return "Employee number already exists"
    return "Account already exists"


class _SqlRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory


class SqlPrincipalRepository(_SqlRepository, PrincipalRepository):
    async def add(self, principal: Principal) -> Principal:
        async with self._session_factory() as session:
            session.add(principal)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError(_conflict_message(e)) from e
            await session.refresh(principal)
        return principal

    async def get(self, kind: PrincipalKind, principal_id: int) -> Principal | None:
        model = _PRINCIPAL_MODELS[kind]
        async with self._session_factory() as session:
            return await session.get(model, principal_id)

    async def find_by_username(self, kind: PrincipalKind, username: str) -> Principal | None:
        model = _PRINCIPAL_MODELS[kind]
        async with self._session_factory() as session:
            result = await session.execute(select(model).where(model.username == username))
            return result.scalar_one_or_none()

    async def find_active_by_username(
        self, kind: PrincipalKind, username: str
    ) -> Principal | None:
        model = _PRINCIPAL_MODELS[kind]
        async with self._session_factory() as session:
            result = await session.execute(
                select(model).where(model.username == username, model.is_active.is_(True))
            )
            return result.scalar_one_or_none()

    async def user_identity_exists(self, id_number: str, account_number: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(User.id)).where(
                    or_(User.id_number == id_number, User.account_number == account_number)
                )
            )
            return (result.scalar() or 0) > 0

    async def update_failure_state(
        self,
        kind: PrincipalKind,
        principal_id: int,
        failed_attempts: int,
        last_attempt: datetime,
        locked_until: datetime | None,
    ) -> None:
        model = _PRINCIPAL_MODELS[kind]
        async with self._session_factory() as session:
            await session.execute(
                update(model)
                .where(model.id == principal_id)
                .values(
                    failed_login_attempts=failed_attempts,
                    last_login_attempt=last_attempt,
                    account_locked_until=locked_until,
                )
            )
            await session.commit()

    async def reset_failure_state(
        self, kind: PrincipalKind, principal_id: int, last_attempt: datetime
    ) -> None:
        model = _PRINCIPAL_MODELS[kind]
        async with self._session_factory() as session:
            await session.execute(
                update(model)
                .where(model.id == principal_id)
                .values(
                    failed_login_attempts=0,
                    last_login_attempt=last_attempt,
                    account_locked_until=None,
                )
            )
            await session.commit()

    async def set_active(
        self, kind: PrincipalKind, principal_id: int, active: bool
    ) -> Principal | None:
        model = _PRINCIPAL_MODELS[kind]
        async with self._session_factory() as session:
            result = await session.execute(
                update(model)
                .where(model.id == principal_id)
                .values(is_active=active)
                .returning(model)
                .execution_options(synchronize_session=False)
            )
            principal = result.scalar_one_or_none()
            await session.commit()
        return principal


class SqlTransactionRepository(_SqlRepository, TransactionRepository):
    async def add(self, transaction: Transaction) -> Transaction:
        async with self._session_factory() as session:
            session.add(transaction)
            await session.commit()
            await session.refresh(transaction)
        return transaction

    async def get(self, transaction_id: int) -> Transaction | None:
        async with self._session_factory() as session:
            return await session.get(Transaction, transaction_id)

    async def list_transactions(
        self,
        user_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        query = select(Transaction)
        if user_id is not None:
            query = query.where(Transaction.user_id == user_id)
        if status is not None:
            query = query.where(Transaction.status == status)
        query = (
            query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .offset(offset)
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def complete_pending(
        self,
        transaction_id: int,
        status: str,
        employee_id: int,
        processed_at: datetime,
        note: str | None = None,
    ) -> Transaction | None:
        values = {
            "status": status,
            "processed_at": processed_at,
            "processed_by": employee_id,
        }
        if note:
            values["notes"] = case(
                (or_(Transaction.notes.is_(None), Transaction.notes == ""), note),
                else_=Transaction.notes + " | " + note,
            )

        async with self._session_factory() as session:
            result = await session.execute(
                update(Transaction)
                .where(
                    Transaction.id == transaction_id,
                    Transaction.status == TransactionStatus.PENDING.value,
                )
                .values(**values)
                .returning(Transaction)
                .execution_options(synchronize_session=False)
            )
            transaction = result.scalar_one_or_none()
            await session.commit()
        return transaction


class SqlCsrfTokenRepository(_SqlRepository, CsrfTokenRepository):
    async def add(self, record: CsrfToken) -> CsrfToken:
        async with self._session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError("CSRF token collision") from e
            await session.refresh(record)
        return record

    async def consume(self, token: str, now: datetime) -> CsrfConsumeResult:
        async with self._session_factory() as session:
            result = await session.execute(
                update(CsrfToken)
                .where(
                    CsrfToken.token == token,
                    CsrfToken.is_used.is_(False),
                    CsrfToken.expires_at > now,
                )
                .values(is_used=True)
                .returning(CsrfToken.user_id, CsrfToken.employee_id)
            )
            row = result.first()
            if row is not None:
                await session.commit()
                return CsrfConsumeResult(CsrfConsumeStatus.CONSUMED, row.user_id, row.employee_id)

            result = await session.execute(
                select(CsrfToken.is_used, CsrfToken.user_id, CsrfToken.employee_id).where(
                    CsrfToken.token == token
                )
            )
            existing = result.first()
            if existing is None:
                return CsrfConsumeResult(CsrfConsumeStatus.NOT_FOUND)

            await session.execute(delete(CsrfToken).where(CsrfToken.token == token))
            await session.commit()
            status = CsrfConsumeStatus.USED if existing.is_used else CsrfConsumeStatus.EXPIRED
            return CsrfConsumeResult(status, existing.user_id, existing.employee_id)

    async def purge(self, now: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(CsrfToken).where(
                    or_(CsrfToken.is_used.is_(True), CsrfToken.expires_at <= now)
                )
            )
            await session.commit()
            return result.rowcount or 0


class SqlSecurityLogRepository(_SqlRepository, SecurityLogRepository):
    async def append(self, entry: SecurityLog) -> SecurityLog:
        async with self._session_factory() as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        return entry

    async def list_recent(
        self,
        limit: int = 100,
        severity: str | None = None,
        action: str | None = None,
    ) -> list[SecurityLog]:
        query = select(SecurityLog)
        if severity is not None:
            query = query.where(SecurityLog.severity == severity)
        if action is not None:
            query = query.where(SecurityLog.action == action)
        query = query.order_by(SecurityLog.created_at.desc(), SecurityLog.id.desc()).limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(SecurityLog).where(SecurityLog.created_at < cutoff)
            )
            await session.commit()
            removed = result.rowcount or 0
        if removed:
            logger.debug(f"Removed {removed} security log entries older than {cutoff}")
        return removed


def build_sql_repositories(session_factory: async_sessionmaker[AsyncSession]) -> Repositories:
    """Create repositories sharing one session factory."""
    return Repositories(
        principals=SqlPrincipalRepository(session_factory),
        transactions=SqlTransactionRepository(session_factory),
        csrf_tokens=SqlCsrfTokenRepository(session_factory),
        security_logs=SqlSecurityLogRepository(session_factory),
    )
