# Delta Pay Models
from deltapay.models.base import BaseModel
from deltapay.models.csrf_token import CsrfToken
from deltapay.models.principal import Employee, Principal, PrincipalKind, User
from deltapay.models.security_log import SecurityLog
from deltapay.models.transaction import Transaction, TransactionStatus

__all__ = [
    "BaseModel",
    "CsrfToken",
    "Employee",
    "Principal",
    "PrincipalKind",
    "SecurityLog",
    "Transaction",
    "TransactionStatus",
    "User",
]
