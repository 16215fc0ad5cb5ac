"""Error taxonomy and the Outcome result type returned by core operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Classification of a failed operation, mapped to an HTTP status."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    LOCKED = "locked"
    INVALID_CREDENTIALS = "invalid_credentials"
    TOKEN_INVALID = "token_invalid"
    CSRF = "csrf"
    CONFLICT = "conflict"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.LOCKED: 423,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.TOKEN_INVALID: 401,
    ErrorKind.CSRF: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class GatewayError(Exception):
    """Base error for business-rule and validation failures.

    The message is safe to show to the caller.
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(GatewayError):
    """Malformed input or a pattern mismatch."""

    kind = ErrorKind.VALIDATION
    default_message = "Validation failed"


class NotFoundError(GatewayError):
    """Unknown principal or transaction."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class LockedError(GatewayError):
    """Account temporarily locked after repeated failures."""

    kind = ErrorKind.LOCKED
    default_message = "Account temporarily locked. Please try again later."


class InvalidCredentialsError(GatewayError):
    """Wrong password or unknown username - deliberately indistinguishable."""

    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class TokenInvalidError(GatewayError):
    """Bad signature, malformed structure or expired session token."""

    kind = ErrorKind.TOKEN_INVALID
    default_message = "Invalid or expired token"


class CsrfError(GatewayError):
    """Missing, unknown, expired or already used CSRF token."""

    kind = ErrorKind.CSRF
    default_message = "Invalid CSRF token"


class ConflictError(GatewayError):
    """State conflict, e.g. processing a transaction that is not pending."""

    kind = ErrorKind.CONFLICT
    default_message = "Conflict"


class InternalError(GatewayError):
    """Persistence or unexpected failure. Detail stays in the server logs."""

    kind = ErrorKind.INTERNAL
    default_message = "Server error"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a core operation.

    Callers branch on ``success`` (or ``error``) instead of catching exceptions.
    """

    success: bool
    message: str
    value: T | None = None
    error: ErrorKind | None = None

    @classmethod
    def ok(cls, value: T | None = None, message: str = "OK") -> "Outcome[T]":
        return cls(success=True, message=message, value=value)

    @classmethod
    def fail(cls, error: GatewayError) -> "Outcome[T]":
        return cls(success=False, message=error.message, error=error.kind)

    @property
    def status_code(self) -> int:
        if self.error is None:
            return 200
        return self.error.status_code
