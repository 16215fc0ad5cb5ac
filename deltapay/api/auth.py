"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, status

from deltapay.api.deps import (
    RequestContext,
    get_request_context,
    get_services,
    get_session,
    raise_for_outcome,
)
from deltapay.models import PrincipalKind
from deltapay.schemas.auth import (
    CsrfTokenResponse,
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    RegisterRequest,
    RegisterResponse,
)
from deltapay.services.container import ServiceContainer
from deltapay.services.tokens import SessionClaims

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    services: ServiceContainer = Depends(get_services),
    context: RequestContext = Depends(get_request_context),
) -> RegisterResponse:
    """Register a new customer account."""
    outcome = await services.credentials.register_user(
        full_name=data.full_name,
        id_number=data.id_number,
        account_number=data.account_number,
        username=data.username,
        password=data.password,
        ip_address=context.ip_address,
        user_agent=context.user_agent,
    )
    raise_for_outcome(outcome)
    return RegisterResponse(success=True, message=outcome.message, user_id=outcome.value.id)


async def _login(
    kind: PrincipalKind,
    data: LoginRequest,
    services: ServiceContainer,
    context: RequestContext,
) -> LoginResponse:
    outcome = await services.credentials.authenticate(
        kind,
        data.username,
        data.password,
        context.ip_address,
        user_agent=context.user_agent,
    )
    raise_for_outcome(outcome)

    profile = outcome.value
    token = services.tokens.issue(profile.id, kind)
    return LoginResponse(
        success=True,
        message=outcome.message,
        token=token,
        expires_in=services.settings.session_token_expire_hours * 3600,
        profile=ProfileResponse(**profile.to_dict()),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    services: ServiceContainer = Depends(get_services),
    context: RequestContext = Depends(get_request_context),
) -> LoginResponse:
    """Authenticate a customer and return a session token.

    Unknown usernames and wrong passwords get the same 401 response.
    A locked account gets 423 until the lockout expires.
    """
    return await _login(PrincipalKind.USER, data, services, context)


@router.post("/employee-login", response_model=LoginResponse)
async def employee_login(
    data: LoginRequest,
    services: ServiceContainer = Depends(get_services),
    context: RequestContext = Depends(get_request_context),
) -> LoginResponse:
    """Authenticate an employee and return a session token."""
    return await _login(PrincipalKind.EMPLOYEE, data, services, context)


@router.get("/csrf-token", response_model=CsrfTokenResponse)
async def csrf_token(
    claims: SessionClaims = Depends(get_session),
    services: ServiceContainer = Depends(get_services),
) -> CsrfTokenResponse:
    """Issue a single-use CSRF token for the authenticated session."""
    if claims.kind is PrincipalKind.USER:
        token = await services.csrf.generate(user_id=claims.subject_id)
    else:
        token = await services.csrf.generate(employee_id=claims.subject_id)
    return CsrfTokenResponse(success=True, message="CSRF token generated", csrf_token=token)
