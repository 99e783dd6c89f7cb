"""FastAPI routes for the report catalog.

Endpoints:
- GET /reports - List every report with its output columns
- GET /reports/{report} - Run one report by name or code
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from fashion_analytics.core.config import get_settings
from fashion_analytics.core.logging import get_logger
from fashion_analytics.features.records.deps import get_record_store
from fashion_analytics.features.records.store import RecordStore
from fashion_analytics.features.reports.catalog import list_reports
from fashion_analytics.features.reports.schemas import (
    ReportParameters,
    ReportResult,
    ReportSummary,
)
from fashion_analytics.features.reports.service import ReportService

logger = get_logger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get(
    "",
    response_model=list[ReportSummary],
    summary="List reports",
)
def get_reports() -> list[ReportSummary]:
    """List the report catalog in code order.

    Returns:
        One summary per registered report.
    """
    return [definition.summary() for definition in list_reports()]


@router.get(
    "/{report}",
    response_model=ReportResult,
    summary="Run a report",
    description="""
Run one report against the loaded staging tables.

**Lookup:** by snake_case name (`product_profit`) or code (`Q4`, case-insensitive).

**Parameters:** `reference_date` replaces "today" for the recency reports
(defaults to `REPORT_REFERENCE_DATE`, then the current date).

**Values:** month and day columns are ISO dates; undefined ratios and missing
previous values are `null`.
""",
)
def run_report(
    report: str,
    reference_date: date | None = Query(
        default=None, description="Reference 'today' for recency windows."
    ),
    store: RecordStore = Depends(get_record_store),
) -> ReportResult:
    """Run a single report.

    Args:
        report: Report name or code.
        reference_date: Optional reference date override.
        store: Loaded record store from dependency.

    Returns:
        ReportResult with all rows.

    Raises:
        NotFoundError: If the report does not exist.
    """
    parameters = ReportParameters.from_settings(get_settings(), reference_date=reference_date)
    logger.info("reports.request_received", report=report, reference_date=reference_date)
    return ReportService(store, parameters).run(report)
