"""FastAPI application factory for the OKR Guard API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncEngine

from okrguard.config import configure_logging, settings
from okrguard.exceptions import AppException
from okrguard.modules.tenancy.directory import TenantDirectory
from okrguard.modules.tenancy.scope import SessionFactory, cleanup_health

logger = logging.getLogger(__name__)

# Rate limiter: keyed by client IP address
limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Install isolation policies if configured; dispose the engine on shutdown.

    A failed install propagates and the process never starts serving.
    """
    if settings.install_policies_on_startup:
        from okrguard.modules.tenancy.installer import install_policies

        await install_policies()
    yield
    await app.state.engine.dispose()


def _get_request_id(request: Request) -> str:
    """Retrieve the request ID stored by RequestIdMiddleware."""
    return getattr(request.state, "request_id", "unknown")


def _error_response(
    status_code: int, code: str, message: str, request_id: str, details: list | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or [],
                "requestId": request_id,
            }
        },
    )


def create_app(
    directory: TenantDirectory | None = None,
    engine: AsyncEngine | None = None,
    session_factory: SessionFactory | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    ``directory``, ``engine`` and ``session_factory`` default to the real
    database; tests pass doubles.
    """
    configure_logging()

    if engine is None:
        from okrguard.database.engine import engine as default_engine

        engine = default_engine
    if directory is None:
        directory = TenantDirectory(engine)

    application = FastAPI(
        title="OKR Guard API",
        description="Multi-tenant OKR service with organization isolation enforced by PostgreSQL row-level security.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    application.state.limiter = limiter
    application.state.engine = engine
    application.state.directory = directory
    application.state.session_factory = session_factory

    # --- Middleware (last added = outermost in Starlette) ---

    # Tenant context: owns the request's pinned connection and clears it on exit
    from okrguard.modules.tenancy.middleware import TenantContextMiddleware

    application.add_middleware(
        TenantContextMiddleware,
        directory=directory,
        engine=engine,
        session_factory=session_factory,
    )

    # CORS: configured via CORS_ORIGINS env var, never wildcard with credentials
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID: registered last so it runs first (outermost)
    from okrguard.middleware.request_id import RequestIdMiddleware

    application.add_middleware(RequestIdMiddleware)

    # --- Routers ---
    from okrguard.api.routes import api_router

    application.include_router(api_router)

    # --- Exception Handlers ---

    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return _error_response(
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            request_id=_get_request_id(request),
            details=exc.details,
        )

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {"field": ".".join(str(loc) for loc in err.get("loc", [])), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return _error_response(
            status_code=422,
            code="VALIDATION_ERROR",
            message="Validation failed",
            request_id=_get_request_id(request),
            details=details,
        )

    @application.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return _error_response(
            status_code=429,
            code="RATE_LIMITED",
            message=str(exc.detail),
            request_id=_get_request_id(request),
        )

    @application.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return _error_response(
            status_code=500,
            code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=_get_request_id(request),
        )

    @application.get("/health")
    async def health_check() -> dict:
        if not cleanup_health.healthy:
            return {"status": "degraded", "unhealthyCleanups": cleanup_health.unhealthy}
        return {"status": "ok"}

    return application


app = create_app()
