"""Single-use anti-CSRF tokens."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from deltapay.models.base import BaseModel


class CsrfToken(BaseModel):
    """A CSRF token bound to the session that requested it.

    ``is_used`` flips from False to True exactly once. Used and expired
    records are deleted when detected and by the periodic sweep.
    """

    __tablename__ = "csrf_tokens"

    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    employee_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=True
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<CsrfToken {self.id} used={self.is_used}>"
