# Delta Pay Schemas
from deltapay.schemas.auth import (
    AccountToggleRequest,
    AccountToggleResponse,
    CsrfTokenResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    RegisterResponse,
)
from deltapay.schemas.payment import (
    DenyRequest,
    LogCleanupRequest,
    LogCleanupResponse,
    PaymentRequest,
    PaymentResponse,
    TransactionActionResponse,
    TransactionListResponse,
    TransactionResponse,
)

__all__ = [
    "AccountToggleRequest",
    "AccountToggleResponse",
    "CsrfTokenResponse",
    "DenyRequest",
    "LogCleanupRequest",
    "LogCleanupResponse",
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "PaymentRequest",
    "PaymentResponse",
    "ProfileResponse",
    "RegisterRequest",
    "RegisterResponse",
    "TransactionActionResponse",
    "TransactionListResponse",
    "TransactionResponse",
]
