"""FastAPI application factory."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from tuneforge.config import Settings, get_settings
from tuneforge.core.exceptions import install_exception_handlers
from tuneforge.core.logging import get_logger, request_context_middleware, setup_logging
from tuneforge.db import close_db, create_engine, create_session_maker, init_db
from tuneforge.services import ArtifactStore, ComputeProvider, SignupNotifier

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    provider: ComputeProvider | None = None,
    artifacts: ArtifactStore | None = None,
    notifier: SignupNotifier | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Components not passed in are built from ``settings`` at startup and
    stored on ``app.state`` for the request dependencies.
    """
    settings = settings or get_settings()

    setup_logging(
        level="DEBUG" if settings.debug else "INFO",
        json_format=settings.is_production(),
        service=settings.app_name.lower(),
    )

    # Tracing only in production, and only when a collector is configured
    otlp_endpoint = os.getenv("OTLP_ENDPOINT") if settings.is_production() else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown."""
        logger.info(
            "Starting TuneForge",
            version=settings.app_version,
            env=settings.env,
        )

        # Startup
        engine = create_engine(settings.database)
        if otlp_endpoint:
            from tuneforge.core.telemetry import instrument_httpx, instrument_sqlalchemy

            instrument_sqlalchemy(engine)
            instrument_httpx()

        await init_db(engine)

        app.state.settings = settings
        app.state.engine = engine
        app.state.session_maker = create_session_maker(engine)
        app.state.provider = provider or ComputeProvider(settings.provider)
        app.state.artifacts = artifacts or ArtifactStore(settings.storage)
        app.state.notifier = notifier or SignupNotifier(settings.notifications)

        logger.info("TuneForge started successfully")

        yield

        # Shutdown
        logger.info("Shutting down TuneForge")
        await app.state.provider.aclose()
        await close_db(engine)
        logger.info("TuneForge shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Fine-tuning job coordination",
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    # Available before startup so dependencies resolve in every context
    app.state.settings = settings

    if otlp_endpoint:
        from tuneforge.core.telemetry import instrument_fastapi, setup_telemetry

        setup_telemetry(
            service_name=settings.app_name.lower(),
            service_version=settings.app_version,
            environment=settings.env,
            otlp_endpoint=otlp_endpoint,
        )
        instrument_fastapi(app)

    # Exception handlers
    install_exception_handlers(app)

    # Middleware (order matters - last added is first executed)
    # No GZip: large bodies are event streams and zip archives
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Job-Id", "X-User-Id", "X-Request-ID"],
    )

    # Request context middleware for structured logging
    app.middleware("http")(request_context_middleware)

    # Include routers
    from tuneforge.api.routes import (
        admin_router,
        downloads_router,
        health_router,
        jobs_router,
        training_router,
        users_router,
    )

    app.include_router(health_router)
    app.include_router(training_router, prefix=settings.api_prefix)
    app.include_router(jobs_router, prefix=settings.api_prefix)
    app.include_router(downloads_router, prefix=settings.api_prefix)
    app.include_router(users_router, prefix=settings.api_prefix)
    app.include_router(admin_router, prefix=settings.api_prefix)

    return app


# Application instance for uvicorn
app = create_app()
