"""Report catalog, parameters and the service that runs reports."""

from fashion_analytics.features.reports.catalog import (
    REPORT_CATALOG,
    ReportDefinition,
    get_report,
    list_reports,
    register_report,
)
from fashion_analytics.features.reports.schemas import (
    ReportBatchResult,
    ReportParameters,
    ReportResult,
    ReportSummary,
)
from fashion_analytics.features.reports.service import ReportService

__all__ = [
    "REPORT_CATALOG",
    "ReportBatchResult",
    "ReportDefinition",
    "ReportParameters",
    "ReportResult",
    "ReportService",
    "ReportSummary",
    "get_report",
    "list_reports",
    "register_report",
]
