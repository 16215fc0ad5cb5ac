"""Transaction service - payment creation and employee review."""

import logging

from deltapay.core.clock import Clock, system_clock
from deltapay.models import PrincipalKind, Transaction, TransactionStatus
from deltapay.repositories.base import PrincipalRepository, TransactionRepository
from deltapay.services.errors import (
    ConflictError,
    GatewayError,
    InternalError,
    NotFoundError,
    Outcome,
    ValidationError,
)
from deltapay.services.security_log import SecurityAction, SecurityLogService, Severity
from deltapay.services.validation import validate_payment

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200
MAX_NOTES_LENGTH = 500
MAX_REASON_LENGTH = 500


def _page(limit: int, offset: int) -> tuple[int, int]:
    return max(1, min(limit, MAX_PAGE_SIZE)), max(0, offset)


class TransactionService:
    """Creates payments and moves them from pending to approved or denied.

    A transaction leaves ``pending`` exactly once; the repository performs
    the check and the update as one step.
    """

    def __init__(
        self,
        transactions: TransactionRepository,
        principals: PrincipalRepository,
        security_log: SecurityLogService,
        clock: Clock = system_clock,
    ):
        self._transactions = transactions
        self._principals = principals
        self._security_log = security_log
        self._clock = clock

    async def create_payment(
        self,
        user_id: int,
        amount: str,
        currency: str,
        provider: str,
        recipient_account: str,
        swift_code: str,
        ip_address: str,
        notes: str | None = None,
        user_agent: str | None = None,
    ) -> Outcome[Transaction]:
        """Validate and store a new pending payment for an active user."""
        try:
            parsed_amount = validate_payment(
                {
                    "amount": amount,
                    "currency": currency,
                    "provider": provider,
                    "recipient_account": recipient_account,
                    "swift_code": swift_code,
                }
            )

            user = await self._principals.get(PrincipalKind.USER, user_id)
            if user is None or not user.is_active:
                raise NotFoundError("User not found or account inactive")

            transaction = Transaction(
                user_id=user_id,
                amount=parsed_amount,
                currency=currency,
                provider=provider,
                recipient_account=recipient_account,
                recipient_swift_code=swift_code,
                status=TransactionStatus.PENDING.value,
                notes=notes[:MAX_NOTES_LENGTH] if notes else None,
                created_at=self._clock.now(),
            )
            transaction = await self._transactions.add(transaction)
        except GatewayError as e:
            return Outcome.fail(e)
        except Exception as e:
            logger.exception(f"Error creating payment for user {user_id}: {e}")
            await self._security_log.log(
                SecurityAction.PAYMENT_CREATION_FAILED,
                ip_address,
                severity=Severity.ERROR,
                user_id=user_id,
                details=f"Payment creation failed: {type(e).__name__}",
                user_agent=user_agent,
            )
            return Outcome.fail(InternalError("Failed to create payment transaction"))

        await self._security_log.log(
            SecurityAction.PAYMENT_CREATED,
            ip_address,
            severity=Severity.INFO,
            user_id=user_id,
            details=(
                f"Payment created: {transaction.amount} {currency} "
                f"to {recipient_account} via {provider}"
            ),
            user_agent=user_agent,
        )
        return Outcome.ok(transaction, message="Payment transaction created successfully")

    async def list_user_transactions(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> Outcome[list[Transaction]]:
        """A user's own transactions, newest first."""
        limit, offset = _page(limit, offset)
        try:
            transactions = await self._transactions.list_transactions(
                user_id=user_id, limit=limit, offset=offset
            )
        except Exception as e:
            logger.exception(f"Error listing transactions for user {user_id}: {e}")
            return Outcome.fail(InternalError("Failed to retrieve transactions"))
        return Outcome.ok(transactions, message="Transactions retrieved successfully")

    async def list_transactions(
        self,
        limit: int = 100,
        offset: int = 0,
        status: TransactionStatus | None = None,
    ) -> Outcome[list[Transaction]]:
        """All transactions for review, newest first."""
        limit, offset = _page(limit, offset)
        try:
            transactions = await self._transactions.list_transactions(
                status=status.value if status else None, limit=limit, offset=offset
            )
        except Exception as e:
            logger.exception(f"Error listing transactions: {e}")
            return Outcome.fail(InternalError("Failed to retrieve transactions"))
        return Outcome.ok(transactions, message="Transactions retrieved successfully")

    async def approve(
        self,
        transaction_id: int,
        employee_id: int,
        ip_address: str,
        user_agent: str | None = None,
    ) -> Outcome[Transaction]:
        """Approve a pending transaction."""
        try:
            transaction = await self._complete(
                transaction_id, TransactionStatus.APPROVED, employee_id
            )
        except GatewayError as e:
            return Outcome.fail(e)
        except Exception as e:
            logger.exception(f"Error approving transaction {transaction_id}: {e}")
            await self._security_log.log(
                SecurityAction.TRANSACTION_APPROVAL_FAILED,
                ip_address,
                severity=Severity.ERROR,
                employee_id=employee_id,
                details=f"Transaction {transaction_id} approval failed: {type(e).__name__}",
                user_agent=user_agent,
            )
            return Outcome.fail(InternalError("Failed to approve transaction"))

        await self._security_log.log(
            SecurityAction.TRANSACTION_APPROVED,
            ip_address,
            severity=Severity.INFO,
            employee_id=employee_id,
            details=f"Transaction {transaction_id} approved",
            user_agent=user_agent,
        )
        return Outcome.ok(transaction, message="Transaction approved successfully")

    async def deny(
        self,
        transaction_id: int,
        employee_id: int,
        reason: str | None,
        ip_address: str,
        user_agent: str | None = None,
    ) -> Outcome[Transaction]:
        """Deny a pending transaction, recording the reason in its notes."""
        reason = (reason or "").strip()
        if not reason:
            return Outcome.fail(ValidationError("Denial reason is required"))
        reason = reason[:MAX_REASON_LENGTH]

        try:
            transaction = await self._complete(
                transaction_id,
                TransactionStatus.DENIED,
                employee_id,
                note=f"Denied: {reason}",
            )
        except GatewayError as e:
            return Outcome.fail(e)
        except Exception as e:
            logger.exception(f"Error denying transaction {transaction_id}: {e}")
            await self._security_log.log(
                SecurityAction.TRANSACTION_DENIAL_FAILED,
                ip_address,
                severity=Severity.ERROR,
                employee_id=employee_id,
                details=f"Transaction {transaction_id} denial failed: {type(e).__name__}",
                user_agent=user_agent,
            )
            return Outcome.fail(InternalError("Failed to deny transaction"))

        await self._security_log.log(
            SecurityAction.TRANSACTION_DENIED,
            ip_address,
            severity=Severity.WARNING,
            employee_id=employee_id,
            details=f"Transaction {transaction_id} denied. Reason: {reason}",
            user_agent=user_agent,
        )
        return Outcome.ok(transaction, message="Transaction denied successfully")

    async def _complete(
        self,
        transaction_id: int,
        status: TransactionStatus,
        employee_id: int,
        note: str | None = None,
    ) -> Transaction:
        transaction = await self._transactions.complete_pending(
            transaction_id,
            status.value,
            employee_id,
            self._clock.now(),
            note=note,
        )
        if transaction is not None:
            return transaction

        # Nothing changed; report why
        if await self._transactions.get(transaction_id) is None:
            raise NotFoundError("Transaction not found")
        raise ConflictError("Transaction is not pending")
