"""Credential service - registration, login and account lockout."""

import logging
from dataclasses import asdict, dataclass
from datetime import timedelta

from deltapay.core.clock import Clock, system_clock
from deltapay.core.locks import KeyedLock
from deltapay.models import Employee, PrincipalKind, User
from deltapay.models.principal import Principal
from deltapay.repositories.base import PrincipalRepository
from deltapay.services.errors import (
    ConflictError,
    GatewayError,
    InternalError,
    InvalidCredentialsError,
    LockedError,
    NotFoundError,
    Outcome,
)
from deltapay.services.passwords import burn_verification, hash_password, verify_password
from deltapay.services.security_log import (
    AccountEvent,
    LoginEvent,
    SecurityAction,
    SecurityLogService,
    Severity,
    account_action,
    login_action,
    mask_username,
)
from deltapay.services.validation import (
    EMPLOYEE_PATTERNS,
    REGISTRATION_PATTERNS,
    validate_fields,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrincipalProfile:
    """Public view of an authenticated principal. Never carries the hash."""

    id: int
    kind: PrincipalKind
    username: str
    full_name: str
    account_number: str | None = None
    employee_number: str | None = None

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalProfile":
        if principal.kind is PrincipalKind.USER:
            return cls(
                id=principal.id,
                kind=principal.kind,
                username=principal.username,
                full_name=principal.full_name,
                account_number=principal.account_number,
            )
        return cls(
            id=principal.id,
            kind=principal.kind,
            username=principal.username,
            full_name=principal.full_name,
            employee_number=principal.employee_number,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return {key: value for key, value in data.items() if value is not None}


class CredentialService:
    """Verifies passwords and enforces the failed-login lockout policy.

    The lockout is evaluated lazily on each attempt; nothing unlocks accounts
    in the background. Attempts for the same principal are serialised so the
    failure counter cannot lose increments.
    """

    def __init__(
        self,
        repository: PrincipalRepository,
        security_log: SecurityLogService,
        clock: Clock = system_clock,
        lockout_threshold: int = 5,
        lockout_duration: timedelta = timedelta(minutes=30),
    ):
        self._repository = repository
        self._security_log = security_log
        self._clock = clock
        self._lockout_threshold = lockout_threshold
        self._lockout_duration = lockout_duration
        self._locks = KeyedLock()

    async def authenticate(
        self,
        kind: PrincipalKind,
        username: str,
        password: str,
        ip_address: str,
        user_agent: str | None = None,
    ) -> Outcome[PrincipalProfile]:
        """Authenticate an active principal.

        Unknown usernames and wrong passwords produce the same message to
        prevent user enumeration.
        """
        try:
            principal = await self._repository.find_active_by_username(kind, username)
        except Exception as e:
            return await self._login_error(kind, ip_address, user_agent, e)

        if principal is None:
            await self._security_log.log(
                login_action(kind, LoginEvent.NOT_FOUND),
                ip_address,
                severity=Severity.WARNING,
                details=f"Login attempt with non-existent username: {mask_username(username)}",
                user_agent=user_agent,
            )
            # Perform a dummy verification to prevent timing attacks
            burn_verification(password)
            return Outcome.fail(InvalidCredentialsError())

        async with self._locks.hold((kind, principal.id)):
            try:
                return await self._check_password(
                    kind, principal.id, password, ip_address, user_agent
                )
            except Exception as e:
                return await self._login_error(kind, ip_address, user_agent, e)

    async def _check_password(
        self,
        kind: PrincipalKind,
        principal_id: int,
        password: str,
        ip_address: str,
        user_agent: str | None,
    ) -> Outcome[PrincipalProfile]:
        # Re-read under the lock so the counter reflects every earlier attempt
        principal = await self._repository.get(kind, principal_id)
        if principal is None or not principal.is_active:
            burn_verification(password)
            return Outcome.fail(InvalidCredentialsError())

        id_field = self._id_field(kind)
        now = self._clock.now()

        if principal.is_locked(now):
            await self._security_log.log(
                login_action(kind, LoginEvent.ACCOUNT_LOCKED_ATTEMPT),
                ip_address,
                severity=Severity.WARNING,
                details="Login attempt on locked account",
                user_agent=user_agent,
                **{id_field: principal.id},
            )
            return Outcome.fail(LockedError())

        if not verify_password(password, principal.password_hash):
            failed_attempts = principal.failed_login_attempts
            # A lapsed lockout starts a fresh count
            if principal.account_locked_until is not None:
                failed_attempts = 0
            failed_attempts += 1

            locked_until = None
            if failed_attempts >= self._lockout_threshold:
                locked_until = now + self._lockout_duration

            await self._repository.update_failure_state(
                kind, principal.id, failed_attempts, now, locked_until
            )

            if locked_until is not None:
                logger.warning(
                    f"{kind.value.capitalize()} {principal.id} locked until "
                    f"{locked_until.isoformat()} after {failed_attempts} failed attempts"
                )
                await self._security_log.log(
                    login_action(kind, LoginEvent.ACCOUNT_LOCKED),
                    ip_address,
                    severity=Severity.WARNING,
                    details=f"Account locked after {failed_attempts} failed attempts",
                    user_agent=user_agent,
                    **{id_field: principal.id},
                )

            await self._security_log.log(
                login_action(kind, LoginEvent.INVALID_PASSWORD),
                ip_address,
                severity=Severity.WARNING,
                details="Invalid password provided",
                user_agent=user_agent,
                **{id_field: principal.id},
            )
            return Outcome.fail(InvalidCredentialsError())

        await self._repository.reset_failure_state(kind, principal.id, now)
        principal.failed_login_attempts = 0
        principal.account_locked_until = None
        principal.last_login_attempt = now

        await self._security_log.log(
            login_action(kind, LoginEvent.SUCCESS),
            ip_address,
            severity=Severity.INFO,
            details=f"{kind.value.capitalize()} logged in successfully",
            user_agent=user_agent,
            **{id_field: principal.id},
        )
        return Outcome.ok(PrincipalProfile.from_principal(principal), message="Login successful")

    async def _login_error(
        self,
        kind: PrincipalKind,
        ip_address: str,
        user_agent: str | None,
        error: Exception,
    ) -> Outcome[PrincipalProfile]:
        logger.exception(f"Error authenticating {kind.value}: {error}")
        await self._security_log.log(
            login_action(kind, LoginEvent.ERROR),
            ip_address,
            severity=Severity.ERROR,
            details=f"Login error: {type(error).__name__}",
            user_agent=user_agent,
        )
        return Outcome.fail(InternalError())

    @staticmethod
    def _id_field(kind: PrincipalKind) -> str:
        return "user_id" if kind is PrincipalKind.USER else "employee_id"

    async def register_user(
        self,
        full_name: str,
        id_number: str,
        account_number: str,
        username: str,
        password: str,
        ip_address: str,
        user_agent: str | None = None,
    ) -> Outcome[PrincipalProfile]:
        """Register a new customer account."""
        try:
            validate_fields(
                {
                    "full_name": full_name,
                    "id_number": id_number,
                    "account_number": account_number,
                    "username": username,
                    "password": password,
                },
                REGISTRATION_PATTERNS,
            )

            if await self._repository.find_by_username(PrincipalKind.USER, username):
                raise ConflictError("Username already exists")
            if await self._repository.user_identity_exists(id_number, account_number):
                raise ConflictError("Account already exists")

            user = User(
                full_name=full_name.strip(),
                id_number=id_number,
                account_number=account_number,
                username=username,
                password_hash=hash_password(password),
                is_active=True,
                failed_login_attempts=0,
                created_at=self._clock.now(),
            )
            user = await self._repository.add(user)
        except GatewayError as e:
            return Outcome.fail(e)
        except Exception as e:
            logger.exception(f"Error registering user: {e}")
            await self._security_log.log(
                SecurityAction.USER_REGISTRATION_FAILED,
                ip_address,
                severity=Severity.ERROR,
                details=f"Registration failed: {type(e).__name__}",
                user_agent=user_agent,
            )
            return Outcome.fail(InternalError())

        logger.info(f"Registered user: {user.username}")
        await self._security_log.log(
            SecurityAction.USER_REGISTERED,
            ip_address,
            severity=Severity.INFO,
            user_id=user.id,
            details=f"New user registered: {user.username}",
            user_agent=user_agent,
        )
        return Outcome.ok(
            PrincipalProfile.from_principal(user), message="User registered successfully"
        )

    async def create_employee(
        self,
        full_name: str,
        employee_number: str,
        username: str,
        password: str,
        ip_address: str = "system",
    ) -> Outcome[PrincipalProfile]:
        """Create an employee account. Uses the same hashing path as users."""
        try:
            validate_fields(
                {
                    "full_name": full_name,
                    "employee_number": employee_number,
                    "username": username,
                    "password": password,
                },
                EMPLOYEE_PATTERNS,
            )

            if await self._repository.find_by_username(PrincipalKind.EMPLOYEE, username):
                raise ConflictError("Username already exists")

            employee = Employee(
                full_name=full_name.strip(),
                employee_number=employee_number,
                username=username,
                password_hash=hash_password(password),
                is_active=True,
                failed_login_attempts=0,
                created_at=self._clock.now(),
            )
            employee = await self._repository.add(employee)
        except GatewayError as e:
            return Outcome.fail(e)
        except Exception as e:
            logger.exception(f"Error creating employee: {e}")
            return Outcome.fail(InternalError())

        logger.info(f"Created employee: {employee.username}")
        await self._security_log.log(
            SecurityAction.EMPLOYEE_CREATED,
            ip_address,
            severity=Severity.INFO,
            employee_id=employee.id,
            details=f"Employee account created: {employee.username}",
        )
        return Outcome.ok(
            PrincipalProfile.from_principal(employee), message="Employee created successfully"
        )

    async def ensure_bootstrap_employee(
        self,
        username: str,
        password: str,
        full_name: str,
        employee_number: str,
    ) -> bool:
        """Create the configured startup employee unless it already exists.

        Returns:
            True when an employee was created
        """
        existing = await self._repository.find_by_username(PrincipalKind.EMPLOYEE, username)
        if existing is not None:
            logger.debug(f"Bootstrap employee {username} already exists")
            return False

        outcome = await self.create_employee(full_name, employee_number, username, password)
        if not outcome.success:
            logger.warning(f"Could not create bootstrap employee {username}: {outcome.message}")
            return False
        return True

    async def set_account_active(
        self,
        kind: PrincipalKind,
        principal_id: int,
        active: bool,
        employee_id: int,
        ip_address: str,
        reason: str | None = None,
        user_agent: str | None = None,
    ) -> Outcome[PrincipalProfile]:
        """Activate or deactivate an account on behalf of an employee.

        A deactivated principal is refused at login with the generic
        credentials message. Issued session tokens stay valid until they expire.
        """
        label = kind.value.capitalize()
        try:
            principal = await self._repository.set_active(kind, principal_id, active)
        except Exception as e:
            logger.exception(f"Error updating {kind.value} {principal_id} status: {e}")
            await self._security_log.log(
                account_action(kind, AccountEvent.TOGGLE_FAILED),
                ip_address,
                severity=Severity.ERROR,
                employee_id=employee_id,
                details=f"Failed to toggle {kind.value} account {principal_id}: {type(e).__name__}",
                user_agent=user_agent,
            )
            return Outcome.fail(InternalError(f"Failed to toggle {kind.value} account"))

        if principal is None:
            return Outcome.fail(NotFoundError(f"{label} not found"))

        state = "activated" if active else "deactivated"
        details = f"{label} {principal.username} {state}"
        if reason:
            details += f". Reason: {reason}"
        await self._security_log.log(
            account_action(
                kind, AccountEvent.ACTIVATED if active else AccountEvent.DEACTIVATED
            ),
            ip_address,
            severity=Severity.INFO if active else Severity.WARNING,
            employee_id=employee_id,
            details=details,
            user_agent=user_agent,
        )
        return Outcome.ok(
            PrincipalProfile.from_principal(principal),
            message=f"{label} account {state} successfully",
        )
