"""Tests for logging configuration."""

from fashion_analytics.core.logging import (
    add_correlation_id,
    configure_logging,
    correlation_id_ctx,
    correlation_scope,
    get_logger,
)


def test_get_logger_returns_bound_logger():
    """get_logger should return a structlog logger."""
    configure_logging()
    logger = get_logger("test")

    assert hasattr(logger, "info")
    assert hasattr(logger, "error")


def test_correlation_scope_binds_and_resets():
    """correlation_scope should bind an id only inside the block."""
    assert correlation_id_ctx.get() is None

    with correlation_scope("batch-1") as correlation_id:
        assert correlation_id == "batch-1"
        assert correlation_id_ctx.get() == "batch-1"

    assert correlation_id_ctx.get() is None


def test_correlation_scope_generates_uuid():
    """A random UUID should be bound when no id is given."""
    with correlation_scope() as correlation_id:
        assert len(correlation_id) == 36


def test_add_correlation_id_processor():
    """Processor should add the bound id and leave events alone otherwise."""
    assert add_correlation_id(None, "info", {"event": "x"}) == {"event": "x"}

    with correlation_scope("req-7"):
        event = add_correlation_id(None, "info", {"event": "x"})

    assert event["correlation_id"] == "req-7"


def test_configure_logging_console_format():
    """configure_logging should accept explicit overrides."""
    configure_logging(log_level="debug", log_format="console")
    configure_logging()
