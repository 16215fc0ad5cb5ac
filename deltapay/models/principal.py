"""User and employee models - the principals that can authenticate."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from deltapay.models.base import BaseModel


class PrincipalKind(str, Enum):
    """The two kinds of principal. The value is embedded in session tokens."""

    USER = "user"
    EMPLOYEE = "employee"

    @property
    def log_prefix(self) -> str:
        return self.value.upper()


class PrincipalMixin:
    """Credential and lockout columns shared by users and employees.

    failed_login_attempts counts consecutive failures since the last success.
    account_locked_until is only set when that counter reaches the lockout
    threshold and is cleared on the next successful login.
    """

    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Lockout tracking
    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_login_attempt: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    account_locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def is_locked(self, now: datetime) -> bool:
        return self.account_locked_until is not None and self.account_locked_until > now


class User(PrincipalMixin, BaseModel):
    """Bank customer who submits payment requests."""

    __tablename__ = "users"

    kind = PrincipalKind.USER

    id_number: Mapped[str] = mapped_column(String(13), nullable=False, unique=True)
    account_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class Employee(PrincipalMixin, BaseModel):
    """Bank employee who approves or denies pending transactions."""

    __tablename__ = "employees"

    kind = PrincipalKind.EMPLOYEE

    employee_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Employee {self.username}>"


Principal = User | Employee
