"""Progression Engine API - Main Application."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from progression_engine.config import Settings, get_settings
from progression_engine.core.context import get_request_id
from progression_engine.core.logging import configure_structlog, get_logger
from progression_engine.core.middleware import RequestContextMiddleware
from progression_engine.core.redis import init_redis, shutdown_redis
from progression_engine.exams.catalog import (
    CassandraExamCatalog,
    ExamCatalog,
    StaticExamCatalog,
)
from progression_engine.exceptions import ProgressionError
from progression_engine.health import router as health_router
from progression_engine.progress.notifier import ProgressNotifier
from progression_engine.progression.dependencies import handle_progression_error
from progression_engine.progression.router import router as progression_router
from progression_engine.progression.service import ProgressionService
from progression_engine.store import (
    MemoryProgressStore,
    ProgressStore,
    RedisProgressStore,
)


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings)

logger = get_logger(__name__)

# Expected outcomes are reported at info, the rest at warning/error
_EXPECTED_ERROR_CODES = frozenset(
    {
        "exam_not_found",
        "quiz_not_found",
        "progress_not_found",
        "cooldown_active",
        "already_passed",
        "attempts_exhausted",
        "feature_disabled",
    }
)
_TRANSIENT_ERROR_CODES = frozenset({"transaction_conflict", "store_unavailable"})


async def _build_catalog(settings: Settings) -> ExamCatalog:
    if settings.catalog_backend == "cassandra":
        # Imported lazily: the driver is only needed for this backend
        from progression_engine.core.database import init_cassandra

        session = await asyncio.to_thread(init_cassandra)
        return CassandraExamCatalog(session=session, keyspace=settings.cassandra_keyspace)

    if settings.catalog_seed_file:
        return StaticExamCatalog.from_file(settings.catalog_seed_file)
    return StaticExamCatalog()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        store_backend=settings.store_backend,
        catalog_backend=settings.catalog_backend,
    )

    # Redis is required by the redis store; otherwise it only carries notifications
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        if settings.store_backend == "redis":
            logger.error("redis_init_failed", error=str(e))
            raise
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - progress notifications disabled",
        )

    store: ProgressStore
    if settings.store_backend == "redis":
        store = RedisProgressStore(
            redis_client, max_attempts=settings.transaction_max_attempts
        )
    else:
        store = MemoryProgressStore(max_attempts=settings.transaction_max_attempts)

    catalog = await _build_catalog(settings)

    app.state.progression_service = ProgressionService(
        store=store,
        catalog=catalog,
        notifier=ProgressNotifier(redis_client),
        settings=settings,
    )
    logger.info(
        "progression_service_initialized",
        store=type(store).__name__,
        catalog=type(catalog).__name__,
        notifications_enabled=redis_client is not None,
    )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    app.state.progression_service = None
    await shutdown_redis()
    if settings.catalog_backend == "cassandra":
        from progression_engine.core.database import shutdown_cassandra

        shutdown_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Never expose stack traces in responses; handlers below log full details
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Learning progression and assessment engine",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(ProgressionError)
    async def progression_exception_handler(
        request: Request, exc: ProgressionError
    ) -> ORJSONResponse:
        """Map progression errors to status codes with a stable body."""
        log_fields = {
            "code": exc.code,
            "detail": exc.message,
            "path": request.url.path,
            "method": request.method,
        }
        if exc.code in _EXPECTED_ERROR_CODES:
            logger.info("progression_request_rejected", **log_fields)
        elif exc.code in _TRANSIENT_ERROR_CODES:
            logger.warning("progression_request_unavailable", **log_fields)
        else:
            logger.error("progression_request_failed", **log_fields)

        response = handle_progression_error(exc)
        request_id = _get_request_id_safe(request)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=[
                {"loc": err.get("loc"), "msg": err.get("msg")} for err in exc.errors()
            ],
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions."""
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    app.include_router(health_router)
    app.include_router(progression_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Progression Engine API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
