"""Session token service for JWT-based authentication."""

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from jwt.exceptions import PyJWTError

from deltapay.core.clock import Clock, system_clock
from deltapay.models import PrincipalKind
from deltapay.services.errors import Outcome, TokenInvalidError

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "kind", "iat", "exp"]


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""

    subject_id: int
    kind: PrincipalKind
    issued_at: datetime
    expires_at: datetime


class SessionTokenService:
    """Issues and verifies stateless signed session tokens.

    Expiry is checked against the injected clock rather than by PyJWT, so
    tests can move time. There is no refresh and no revocation list.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS512",
        lifetime: timedelta = timedelta(hours=24),
        clock: Clock = system_clock,
    ):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._lifetime = lifetime
        self._clock = clock

    def issue(self, subject_id: int, kind: PrincipalKind) -> str:
        """Create a session token for a principal."""
        issued_at = self._clock.now()
        payload = {
            "sub": str(subject_id),
            "kind": kind.value,
            "iat": int(issued_at.timestamp()),
            # Rounded up so the token never lives less than the full lifetime
            "exp": math.ceil((issued_at + self._lifetime).timestamp()),
        }
        token = jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        # PyJWT 2.x returns str; older type stubs may declare bytes
        return str(token)

    def verify(self, token: str) -> Outcome[SessionClaims]:
        """Verify signature, structure, kind and expiry of a session token.

        Every failure returns the same generic outcome; the reason is only
        logged at debug level.
        """
        try:
            claims = self._decode(token)
        except TokenInvalidError as e:
            logger.debug(f"Session token rejected: {e}")
            return Outcome.fail(TokenInvalidError())

        if not self._clock.now() < claims.expires_at:
            logger.debug(f"Session token rejected: expired at {claims.expires_at.isoformat()}")
            return Outcome.fail(TokenInvalidError())

        return Outcome.ok(claims, message="Token valid")

    def _decode(self, token: str) -> SessionClaims:
        if not token:
            raise TokenInvalidError("empty token")

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except PyJWTError as e:
            raise TokenInvalidError(f"decode failed: {e}") from e

        try:
            kind = PrincipalKind(payload["kind"])
            subject_id = int(payload["sub"])
            issued_at = datetime.fromtimestamp(int(payload["iat"]), UTC)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), UTC)
        except (TypeError, ValueError) as e:
            raise TokenInvalidError(f"malformed claims: {e}") from e

        return SessionClaims(
            subject_id=subject_id,
            kind=kind,
            issued_at=issued_at,
            expires_at=expires_at,
        )
