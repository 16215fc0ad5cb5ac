"""Employee endpoints: transaction review, account status and security log maintenance."""

from fastapi import APIRouter, Depends, Query

from deltapay.api.deps import (
    RequestContext,
    get_request_context,
    get_services,
    raise_for_outcome,
    require_employee,
    require_employee_with_csrf,
)
from deltapay.models import TransactionStatus
from deltapay.schemas.auth import AccountToggleRequest, AccountToggleResponse, ProfileResponse
from deltapay.schemas.payment import (
    DenyRequest,
    LogCleanupRequest,
    LogCleanupResponse,
    TransactionActionResponse,
    TransactionListResponse,
    TransactionResponse,
)
from deltapay.services.container import ServiceContainer
from deltapay.services.tokens import SessionClaims

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: TransactionStatus | None = Query(None),
    claims: SessionClaims = Depends(require_employee),
    services: ServiceContainer = Depends(get_services),
) -> TransactionListResponse:
    """List all transactions for review, newest first."""
    outcome = await services.transactions.list_transactions(
        limit=limit, offset=(page - 1) * limit, status=status
    )
    raise_for_outcome(outcome)
    return TransactionListResponse(
        success=True,
        message=outcome.message,
        transactions=[TransactionResponse(**tx.to_dict()) for tx in outcome.value],
        page=page,
        limit=limit,
    )


@router.put("/transactions/{transaction_id}/approve", response_model=TransactionActionResponse)
async def approve_transaction(
    transaction_id: int,
    claims: SessionClaims = Depends(require_employee_with_csrf),
    services: ServiceContainer = Depends(get_services),
    context: RequestContext = Depends(get_request_context),
) -> TransactionActionResponse:
    """Approve a pending transaction. Returns 409 if it was already processed."""
    outcome = await services.transactions.approve(
        transaction_id,
        claims.subject_id,
        context.ip_address,
        user_agent=context.user_agent,
    )
    raise_for_outcome(outcome)
    return TransactionActionResponse(
        success=True,
        message=outcome.message,
        transaction=TransactionResponse(**outcome.value.to_dict()),
    )


@router.put("/transactions/{transaction_id}/deny", response_model=TransactionActionResponse)
async def deny_transaction(
    transaction_id: int,
    data: DenyRequest,
    claims: SessionClaims = Depends(require_employee_with_csrf),
    services: ServiceContainer = Depends(get_services),
    context: RequestContext = Depends(get_request_context),
) -> TransactionActionResponse:
    """Deny a pending transaction with a reason."""
    outcome = await services.transactions.deny(
        transaction_id,
        claims.subject_id,
        data.reason,
        context.ip_address,
        user_agent=context.user_agent,
    )
    raise_for_outcome(outcome)
    return TransactionActionResponse(
        success=True,
        message=outcome.message,
        transaction=TransactionResponse(**outcome.value.to_dict()),
    )


@router.put("/users/{principal_id}/toggle", response_model=AccountToggleResponse)
async def toggle_account(
    principal_id: int,
    data: AccountToggleRequest,
    claims: SessionClaims = Depends(require_employee_with_csrf),
    services: ServiceContainer = Depends(get_services),
    context: RequestContext = Depends(get_request_context),
) -> AccountToggleResponse:
    """Lock (deactivate) or unlock (activate) a user or employee account."""
    outcome = await services.credentials.set_account_active(
        data.kind,
        principal_id,
        not data.lock,
        claims.subject_id,
        context.ip_address,
        reason=data.reason,
        user_agent=context.user_agent,
    )
    raise_for_outcome(outcome)
    return AccountToggleResponse(
        success=True,
        message=outcome.message,
        profile=ProfileResponse(**outcome.value.to_dict()),
    )


@router.post("/security-logs/cleanup", response_model=LogCleanupResponse)
async def cleanup_security_logs(
    data: LogCleanupRequest,
    claims: SessionClaims = Depends(require_employee_with_csrf),
    services: ServiceContainer = Depends(get_services),
    context: RequestContext = Depends(get_request_context),
) -> LogCleanupResponse:
    """Delete security log entries older than the given number of days."""
    deleted = await services.security_log.cleanup_old_logs(
        data.retention_days,
        employee_id=claims.subject_id,
        ip_address=context.ip_address,
    )
    return LogCleanupResponse(
        success=True,
        message=f"Cleaned up {deleted} old security log entries",
        deleted=deleted,
    )
