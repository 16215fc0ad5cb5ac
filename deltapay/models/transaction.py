"""Transaction model - a payment request awaiting employee review."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from deltapay.models.base import BaseModel


class TransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class Transaction(BaseModel):
    """Payment created by a user in ``pending`` status.

    Moves exactly once to ``approved`` or ``denied`` through an employee
    action and is terminal afterwards.
    """

    __tablename__ = "transactions"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")
    provider: Mapped[str] = mapped_column(String(20), nullable=False, default="SWIFT")
    recipient_account: Mapped[str] = mapped_column(String(30), nullable=False)
    recipient_swift_code: Mapped[str] = mapped_column(String(11), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value, index=True
    )

    # Review tracking
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_transactions_status_created", "status", "created_at"),)

    def __repr__(self) -> str:
        return f"<Transaction {self.id} {self.status}: {self.amount} {self.currency}>"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "provider": self.provider,
            "recipient_account": self.recipient_account,
            "recipient_swift_code": self.recipient_swift_code,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "processed_by": self.processed_by,
            "notes": self.notes,
        }
