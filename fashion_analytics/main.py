"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fashion_analytics.core.config import get_settings
from fashion_analytics.core.exceptions import register_exception_handlers
from fashion_analytics.core.health import router as health_router
from fashion_analytics.core.logging import configure_logging, get_logger
from fashion_analytics.core.middleware import CorrelationIdMiddleware
from fashion_analytics.features.reports.catalog import list_reports
from fashion_analytics.features.reports.routes import router as reports_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown.

    Args:
        _app: FastAPI application instance (unused, required by lifespan protocol).

    Yields:
        None after startup.
    """
    settings = get_settings()

    # Startup
    configure_logging()
    logger.info(
        "app.startup_started",
        app_name=settings.app_name,
        app_env=settings.app_env,
        staging_dir=settings.staging_dir,
        reports=len(list_reports()),
    )

    yield

    # Shutdown
    logger.info("app.shutdown_completed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Analytical reports over fashion store sales",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(CorrelationIdMiddleware)

    # Exception handlers
    register_exception_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(reports_router)

    return app


app = create_app()
