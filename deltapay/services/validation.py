"""Input validation patterns for registration and payments."""

import re
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

from deltapay.services.errors import ValidationError

# Full-match patterns; re.ASCII keeps \d and \s to their ASCII meaning.
REGISTRATION_PATTERNS: dict[str, re.Pattern[str]] = {
    "full_name": re.compile(r"[a-zA-Z\s]{2,50}", re.ASCII),
    "id_number": re.compile(r"[0-9]{13}"),
    "account_number": re.compile(r"[0-9]{10,20}"),
    "username": re.compile(r"[a-zA-Z0-9_]{3,20}"),
    "password": re.compile(
        r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}", re.ASCII
    ),
}

EMPLOYEE_PATTERNS: dict[str, re.Pattern[str]] = {
    "full_name": REGISTRATION_PATTERNS["full_name"],
    "employee_number": re.compile(r"[A-Z0-9]{3,20}"),
    "username": REGISTRATION_PATTERNS["username"],
    "password": REGISTRATION_PATTERNS["password"],
}

PAYMENT_PATTERNS: dict[str, re.Pattern[str]] = {
    "amount": re.compile(r"\d+(\.\d{1,2})?", re.ASCII),
    "currency": re.compile(r"[A-Z]{3}"),
    "provider": re.compile(r"[A-Z\s]{2,20}", re.ASCII),
    "recipient_account": re.compile(r"[A-Z0-9]{8,30}"),
    "swift_code": re.compile(r"[A-Z]{6}[A-Z0-9]{2}([A-Z0-9]{3})?"),
}

SUPPORTED_CURRENCIES = ("USD", "EUR", "GBP", "ZAR", "AUD", "CAD", "CHF", "JPY")
SUPPORTED_PROVIDERS = ("SWIFT", "SEPA", "ACH", "WIRE")

MAX_PAYMENT_AMOUNT = Decimal("1000000")


def field_errors(
    data: Mapping[str, str | None], patterns: Mapping[str, re.Pattern[str]]
) -> list[str]:
    """Return an ``Invalid <field name>`` message for every field that does not match."""
    errors = []
    for field, pattern in patterns.items():
        value = data.get(field)
        if value is None or pattern.fullmatch(value) is None:
            errors.append(f"Invalid {field.replace('_', ' ')}")
    return errors


def validate_fields(
    data: Mapping[str, str | None],
    patterns: Mapping[str, re.Pattern[str]],
    prefix: str = "Validation failed",
) -> None:
    """Raise ValidationError listing every mismatched field."""
    errors = field_errors(data, patterns)
    if errors:
        raise ValidationError(f"{prefix}: {', '.join(errors)}")


def parse_amount(amount: str) -> Decimal:
    """Parse a validated amount string and enforce the payment range."""
    try:
        value = Decimal(amount)
    except InvalidOperation as e:
        raise ValidationError("Validation errors: Invalid amount") from e
    if value <= 0 or value > MAX_PAYMENT_AMOUNT:
        raise ValidationError("Amount must be between 0.01 and 1,000,000")
    return value


def validate_payment(data: Mapping[str, str | None]) -> Decimal:
    """Validate a payment request and return the parsed amount."""
    validate_fields(data, PAYMENT_PATTERNS, prefix="Validation errors")
    amount = parse_amount(data["amount"])

    if data["currency"] not in SUPPORTED_CURRENCIES:
        raise ValidationError(
            f"Unsupported currency. Supported currencies: {', '.join(SUPPORTED_CURRENCIES)}"
        )
    if data["provider"] not in SUPPORTED_PROVIDERS:
        raise ValidationError(
            f"Unsupported provider. Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    return amount
