"""Health check endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from deltapay.api.deps import get_services
from deltapay.core import check_db_connection
from deltapay.services.container import ServiceContainer

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    storage: str
    database: str
    timestamp: str


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_check(
    response: Response,
    services: ServiceContainer = Depends(get_services),
) -> HealthResponse:
    """
    Health check endpoint.

    With the database backend, returns 503 if the database is unavailable.
    The in-memory backend has no external dependency to check.
    """
    settings = services.settings
    if settings.storage_backend == "database":
        db_healthy = await check_db_connection()
        database = "connected" if db_healthy else "disconnected"
    else:
        db_healthy = True
        database = "not_used"

    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        version=settings.app_version,
        storage=settings.storage_backend,
        database=database,
        timestamp=datetime.now(UTC).isoformat(),
    )
