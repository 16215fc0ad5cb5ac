# Delta Pay Services
#
# Service modules are imported directly (deltapay.services.credentials, ...).
# Only the error taxonomy is re-exported here because the repositories depend
# on it.
from deltapay.services.errors import ErrorKind, GatewayError, Outcome

__all__ = [
    "ErrorKind",
    "GatewayError",
    "Outcome",
]
