"""Delta Pay - FastAPI Application Factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from deltapay.api import api_router
from deltapay.api.deps import CSRF_HEADER
from deltapay.core import settings
from deltapay.core.lifespan import shutdown, startup
from deltapay.core.logging import get_logger
from deltapay.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from deltapay.services.container import ServiceContainer, build_services

logger = get_logger("main")

# Leading loc entries that name where a field came from rather than the field
REQUEST_LOCATIONS = ("body", "query", "path", "header", "cookie")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    services: ServiceContainer = app.state.services
    logger.info(
        f"Starting {services.settings.app_name} v{services.settings.app_version} "
        f"(storage: {services.settings.storage_backend})"
    )

    tasks = await startup(services, logger)

    yield

    logger.info("Shutting down...")
    await shutdown(services, logger, tasks)


def _error_body(message: str) -> dict:
    return {"success": False, "message": message}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in REQUEST_LOCATIONS]
        fields.append(f"Invalid {' '.join(location).replace('_', ' ') or 'request'}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(f"Validation failed: {', '.join(fields)}"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Server error"),
    )


def create_app(services: ServiceContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Prebuilt service container; built from the settings when omitted
    """
    if services is None:
        services = build_services(settings)
    app_settings = services.settings

    app = FastAPI(
        title=app_settings.app_name,
        description="Payment gateway with employee transaction review",
        version=app_settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        openapi_url="/openapi.json" if app_settings.debug else None,
    )
    app.state.services = services

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(SecurityHeadersMiddleware)

    # Rate limiting middleware - configurable via RATE_LIMIT_REQUESTS_PER_MINUTE
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=app_settings.rate_limit_requests_per_minute,
        exclude_paths=["/health"],
        enabled=app_settings.rate_limit_enabled,
    )

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on ALL responses, including 429.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            CSRF_HEADER,
        ],
    )

    if app_settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(api_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": app_settings.app_name,
            "version": app_settings.app_version,
        }

    return app


# Application instance
app = create_app()
