"""Core infrastructure: config, logging, middleware, exceptions."""

from fashion_analytics.core.config import Settings, get_settings
from fashion_analytics.core.logging import (
    configure_logging,
    correlation_id_ctx,
    correlation_scope,
    get_logger,
)

__all__ = [
    "Settings",
    "configure_logging",
    "correlation_id_ctx",
    "correlation_scope",
    "get_logger",
    "get_settings",
]
