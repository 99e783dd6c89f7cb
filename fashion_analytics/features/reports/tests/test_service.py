"""Tests for the report service."""

import threading

import pandas as pd
import pytest

from fashion_analytics.core.exceptions import NotFoundError, ReportDefinitionError
from fashion_analytics.features.reports.catalog import ReportDefinition, list_reports
from fashion_analytics.features.reports.schemas import ReportParameters
from fashion_analytics.features.reports.service import ReportService


class CancelAfter(threading.Event):
    """Event that reports itself set after a number of checks."""

    def __init__(self, checks: int) -> None:
        super().__init__()
        self.remaining = checks

    def is_set(self) -> bool:
        self.remaining -= 1
        return self.remaining < 0


def test_run_returns_plain_rows(service):
    """Results carry metadata and JSON-friendly values."""
    result = service.run("Q10")

    assert result.code == "Q10"
    assert result.name == "monthly_revenue_growth"
    assert result.columns == ["month", "revenue", "growth"]
    assert result.row_count == len(result.rows) == 3
    assert result.rows[-1]["growth"] is None
    assert type(result.rows[0]["revenue"]) is float


def test_run_unknown_report(service):
    """Unknown names raise NotFoundError."""
    with pytest.raises(NotFoundError):
        service.run("no_such_report")


def test_run_parameters_override_defaults(sample_store):
    """Per-run parameters take precedence over the service defaults."""
    service = ReportService(sample_store, ReportParameters(top_customers_per_country=1))

    assert service.run("Q2").row_count == 2
    assert service.run("Q2", ReportParameters()).row_count == 3


def test_declared_columns_enforced(service):
    """A report returning other columns than declared is rejected."""
    definition = ReportDefinition(
        code="Q90",
        name="broken_report",
        title="Broken",
        columns=("a", "b"),
        compute=lambda store, params: pd.DataFrame({"b": [1], "a": [2]}),
    )

    with pytest.raises(ReportDefinitionError, match="unexpected columns"):
        service.evaluate(definition)


def test_run_many_runs_whole_catalog(service):
    """Without names every report runs, in code order."""
    batch = service.run_many()

    assert [r.code for r in batch.results] == [d.code for d in list_reports()]
    assert batch.skipped == []
    assert batch.cancelled is False


def test_run_many_selected_names(service):
    """Names and codes can be mixed."""
    batch = service.run_many(["product_profit", "Q1"])

    assert [r.code for r in batch.results] == ["Q4", "Q1"]


def test_run_many_rejects_unknown_before_running(service):
    """An unknown name fails the whole batch up front."""
    with pytest.raises(NotFoundError):
        service.run_many(["Q1", "nope"])


def test_run_many_cancelled_before_start(service):
    """A set event skips every report."""
    cancel = threading.Event()
    cancel.set()

    batch = service.run_many(["Q1", "Q2"], cancel_event=cancel)

    assert batch.results == []
    assert batch.skipped == ["customer_revenue_summary", "top_customers_by_country"]
    assert batch.cancelled is True


def test_run_many_cancelled_between_reports(service):
    """Reports already started complete; the rest are skipped."""
    batch = service.run_many(["Q1", "Q2", "Q3"], cancel_event=CancelAfter(checks=1))

    assert [r.code for r in batch.results] == ["Q1"]
    assert batch.skipped == ["top_customers_by_country", "top_products_by_brand_month"]


def test_parameters_validation():
    """Segment thresholds must be ordered."""
    with pytest.raises(ValueError, match="segment_medium_threshold"):
        ReportParameters(segment_medium_threshold=0.7, segment_high_threshold=0.5)
