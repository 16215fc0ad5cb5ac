"""Shared FastAPI dependencies: services, session and CSRF checks."""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status

from deltapay.core.request_utils import get_client_ip, get_user_agent
from deltapay.models import PrincipalKind
from deltapay.services.container import ServiceContainer
from deltapay.services.errors import Outcome
from deltapay.services.tokens import SessionClaims

CSRF_HEADER = "X-CSRF-Token"


@dataclass(frozen=True)
class RequestContext:
    """Caller details recorded in the security log."""

    ip_address: str
    user_agent: str | None


def get_services(request: Request) -> ServiceContainer:
    """Dependency to get the service container built for this application."""
    return request.app.state.services


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )


def raise_for_outcome(outcome: Outcome) -> None:
    """Turn a failed outcome into an HTTP error with the outcome's message."""
    if not outcome.success:
        raise HTTPException(status_code=outcome.status_code, detail=outcome.message)


async def get_session(
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> SessionClaims:
    """Dependency to get the verified session from the bearer token."""
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    outcome = services.tokens.verify(auth_header[7:])
    if not outcome.success:
        raise HTTPException(
            status_code=outcome.status_code,
            detail=outcome.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return outcome.value


async def require_user(claims: SessionClaims = Depends(get_session)) -> SessionClaims:
    if claims.kind is not PrincipalKind.USER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User access required")
    return claims


async def require_employee(claims: SessionClaims = Depends(get_session)) -> SessionClaims:
    if claims.kind is not PrincipalKind.EMPLOYEE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Employee access required"
        )
    return claims


async def csrf_protect(
    request: Request,
    services: ServiceContainer = Depends(get_services),
    context: RequestContext = Depends(get_request_context),
) -> None:
    """Validate and consume the request's CSRF token."""
    outcome = await services.csrf.validate_and_consume(
        request.headers.get(CSRF_HEADER),
        request.method,
        context.ip_address,
        user_agent=context.user_agent,
    )
    raise_for_outcome(outcome)


# Authentication is checked before the CSRF token is spent
async def require_user_with_csrf(
    claims: SessionClaims = Depends(require_user),
    _csrf: None = Depends(csrf_protect),
) -> SessionClaims:
    return claims


async def require_employee_with_csrf(
    claims: SessionClaims = Depends(require_employee),
    _csrf: None = Depends(csrf_protect),
) -> SessionClaims:
    return claims
