"""Password hashing with Argon2id."""

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

logger = logging.getLogger(__name__)

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Hash a password using Argon2id.

    The result is a PHC string carrying the algorithm, parameters, salt and
    derived key, so it can be verified without any other state.
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison.

    Returns False on mismatch and on a malformed or foreign hash; never raises.
    """
    try:
        return ph.verify(password_hash, password)
    except VerifyMismatchError:
        return False
    except (VerificationError, InvalidHashError) as e:
        logger.debug(f"Password verification failed on malformed hash: {e}")
        return False


def burn_verification(password: str) -> None:
    """Run one full verification against a throwaway hash.

    Called when a username is unknown so the response takes as long as a
    real password check.
    """
    verify_password(password, _dummy_hash())


_DUMMY_HASH: str | None = None


def _dummy_hash() -> str:
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = ph.hash("dummy-password-for-timing")
    return _DUMMY_HASH
