"""Customer payment endpoints."""

from fastapi import APIRouter, Depends, Query, status

from deltapay.api.deps import (
    RequestContext,
    get_request_context,
    get_services,
    raise_for_outcome,
    require_user,
    require_user_with_csrf,
)
from deltapay.schemas.payment import (
    PaymentRequest,
    PaymentResponse,
    TransactionListResponse,
    TransactionResponse,
)
from deltapay.services.container import ServiceContainer
from deltapay.services.tokens import SessionClaims

router = APIRouter(prefix="/user", tags=["payments"])


@router.get("/transactions", response_model=TransactionListResponse)
async def list_my_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    claims: SessionClaims = Depends(require_user),
    services: ServiceContainer = Depends(get_services),
) -> TransactionListResponse:
    """List the caller's own transactions, newest first."""
    outcome = await services.transactions.list_user_transactions(
        claims.subject_id, limit=limit, offset=(page - 1) * limit
    )
    raise_for_outcome(outcome)
    return TransactionListResponse(
        success=True,
        message=outcome.message,
        transactions=[TransactionResponse(**tx.to_dict()) for tx in outcome.value],
        page=page,
        limit=limit,
    )


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    data: PaymentRequest,
    claims: SessionClaims = Depends(require_user_with_csrf),
    services: ServiceContainer = Depends(get_services),
    context: RequestContext = Depends(get_request_context),
) -> PaymentResponse:
    """Submit a payment. It stays pending until an employee reviews it."""
    outcome = await services.transactions.create_payment(
        user_id=claims.subject_id,
        amount=data.amount,
        currency=data.currency,
        provider=data.provider,
        recipient_account=data.recipient_account,
        swift_code=data.swift_code,
        notes=data.notes,
        ip_address=context.ip_address,
        user_agent=context.user_agent,
    )
    raise_for_outcome(outcome)
    transaction = outcome.value
    return PaymentResponse(
        success=True,
        message=outcome.message,
        transaction_id=transaction.id,
        transaction=TransactionResponse(**transaction.to_dict()),
    )
