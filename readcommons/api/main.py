"""
ReadCommons API

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import Depends, FastAPI, Request

from .schemas import HealthResponse
from .routes import (
    books_router,
    comments_router,
    reading_lists_router,
    reviews_router,
    tokens_router,
    users_router,
)
from .middleware import (
    AuthenticationMiddleware,
    CORSConfig,
    LoggingConfig,
    RecoverMiddleware,
    setup_cors,
    setup_exception_handlers,
    setup_logging,
    setup_rate_limiting,
)
from .dependencies import (
    ServiceContainer,
    Settings,
    enforce_body_limit,
    get_settings,
)

VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Startup creates the schema and starts the rate limiter sweep. Shutdown
    stops the sweep, waits for background tasks up to the grace period and
    releases the database.
    """
    services: ServiceContainer = app.state.services
    settings = services.settings
    logger.info(f"Starting ReadCommons in {settings.environment} mode")

    await services.create_tables()
    services.rate_limiter.start()
    logger.info("ReadCommons started successfully")

    try:
        yield
    finally:
        logger.info("Shutting down ReadCommons...")
        await services.rate_limiter.stop()

        pending = services.tasks.pending
        if pending:
            logger.info(f"Waiting for {pending} background task(s)")
        if not await services.tasks.drain(settings.shutdown_grace_seconds):
            logger.warning("Background tasks did not finish within the grace period")

        await services.dispose()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    services: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.
        services: Service container. If None, one is built from ``settings``.

    Returns:
        Configured FastAPI application.
    """
    if services is None:
        services = ServiceContainer(settings or get_settings())
    settings = services.settings

    app = FastAPI(
        title="ReadCommons",
        description="Books, reviews, reading lists and comments.",
        version=VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.services = services

    setup_exception_handlers(app)

    # ==========================================================================
    # Middleware (last added = outermost)
    # ==========================================================================

    # 1. Authentication (innermost - runs only for admitted requests)
    app.add_middleware(AuthenticationMiddleware)

    # 2. Rate limiting
    setup_rate_limiting(app, services.rate_limiter)

    # 3. CORS (only with trusted origins)
    setup_cors(app, config=CORSConfig(trusted_origins=settings.cors_trusted_origins))

    # 4. Logging
    setup_logging(
        app,
        config=LoggingConfig(enabled=True),
        structured=settings.environment != "development",
    )

    # 5. Recovery (outermost - nothing escapes)
    app.add_middleware(RecoverMiddleware)

    # ==========================================================================
    # Routers
    # ==========================================================================

    api_prefix = "/api/v1"
    body_limit = [Depends(enforce_body_limit)]

    for router in (
        users_router,
        tokens_router,
        books_router,
        reviews_router,
        reading_lists_router,
        comments_router,
    ):
        app.include_router(router, prefix=api_prefix, dependencies=body_limit)

    # ==========================================================================
    # System Routes
    # ==========================================================================

    @app.get(f"{api_prefix}/healthcheck", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request):
        """Report availability, environment and version."""
        return {
            "status": "available",
            "system_info": {
                "environment": request.app.state.services.settings.environment,
                "version": VERSION,
            },
        }

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "readcommons.api.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level="debug" if settings.debug else "info",
        timeout_graceful_shutdown=settings.shutdown_grace_seconds,
    )


if __name__ == "__main__":
    main()
