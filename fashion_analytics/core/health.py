"""Health check endpoints."""

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from fashion_analytics.core.exceptions import IngestError
from fashion_analytics.core.logging import get_logger
from fashion_analytics.features.records.deps import get_record_store

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["ok", "degraded", "unhealthy"]
    record_store: Literal["loaded", "unavailable"] | None = None
    row_counts: dict[str, int] | None = None


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Health status response.
    """
    logger.debug("health.check_started")
    return HealthResponse(status="ok")


@router.get("/health/ready", response_model=HealthResponse)
def readiness_check() -> HealthResponse:
    """Readiness check: the staging tables can be loaded.

    Returns:
        Health status with record store state and table sizes.
    """
    logger.debug("health.readiness_check_started")

    try:
        store = get_record_store()
    except IngestError as e:
        logger.error(
            "health.record_store_unavailable",
            error=e.message,
            error_type=type(e).__name__,
        )
        return HealthResponse(status="unhealthy", record_store="unavailable")

    counts = store.row_counts()
    status: Literal["ok", "degraded"] = "degraded" if store.is_empty else "ok"
    logger.info("health.record_store_loaded", **counts)
    return HealthResponse(status=status, record_store="loaded", row_counts=counts)
