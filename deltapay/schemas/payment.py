"""Pydantic schemas for payments and transaction review."""

from pydantic import BaseModel, Field, field_validator

from deltapay.schemas.auth import MessageResponse


class PaymentRequest(BaseModel):
    """Request to create a payment."""

    amount: str = Field(..., max_length=32, description="Decimal amount with up to 2 places")
    currency: str = Field(..., max_length=8)
    provider: str = Field(..., max_length=32)
    recipient_account: str = Field(..., max_length=64)
    swift_code: str = Field(..., max_length=16)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v: object) -> object:
        # Accept JSON numbers; the pattern check happens on the text form
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class TransactionResponse(BaseModel):
    """A transaction as shown to users and employees."""

    id: int
    user_id: int
    amount: str
    currency: str
    provider: str
    recipient_account: str
    recipient_swift_code: str
    status: str
    created_at: str | None = None
    processed_at: str | None = None
    processed_by: int | None = None
    notes: str | None = None


class TransactionListResponse(MessageResponse):
    """A page of transactions, newest first."""

    transactions: list[TransactionResponse]
    page: int
    limit: int


class PaymentResponse(MessageResponse):
    """Response after creating a payment."""

    transaction_id: int
    transaction: TransactionResponse


class TransactionActionResponse(MessageResponse):
    """Response after approving or denying a transaction."""

    transaction: TransactionResponse


class DenyRequest(BaseModel):
    """Request to deny a pending transaction."""

    reason: str = Field(default="", max_length=500)


class LogCleanupRequest(BaseModel):
    """Request to delete old security log entries."""

    retention_days: int = Field(default=90, ge=1, le=3650)


class LogCleanupResponse(MessageResponse):
    """Response after a security log cleanup."""

    deleted: int
