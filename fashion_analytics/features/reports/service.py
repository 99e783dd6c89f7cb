"""Report service: runs catalog reports against a record store.

Orchestrates:
- Resolving a report by name or code
- Evaluating it with one immutable parameter set
- Checking the output columns against the declared ones
- Converting rows to plain Python values

Reports are pure functions of (store, parameters), so a service instance can be
shared between threads and reports may run concurrently against one store.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import numpy as np
import pandas as pd

from fashion_analytics.core.exceptions import ReportDefinitionError
from fashion_analytics.core.logging import get_logger
from fashion_analytics.features.records.store import RecordStore
from fashion_analytics.features.reports.catalog import ReportDefinition, get_report, list_reports
from fashion_analytics.features.reports.schemas import (
    ReportBatchResult,
    ReportParameters,
    ReportResult,
)

logger = get_logger(__name__)


def _to_python(value: Any) -> Any:
    """Convert one cell to a JSON-friendly Python value.

    Money stays exact Decimal through the whole evaluation and only becomes a
    float here, at the output edge.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (np.floating, float)):
        return None if math.isnan(value) else float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if value is pd.NA:
        return None
    return value


def _to_rows(frame: pd.DataFrame, columns: Iterable[str]) -> list[dict[str, Any]]:
    names = list(columns)
    return [
        {name: _to_python(value) for name, value in zip(names, row, strict=True)}
        for row in frame[names].itertuples(index=False, name=None)
    ]


class ReportService:
    """Service for evaluating catalog reports.

    Attributes:
        store: Loaded record store (read-only).
        parameters: Default parameters for every run.
    """

    def __init__(self, store: RecordStore, parameters: ReportParameters | None = None) -> None:
        self.store = store
        self.parameters = parameters or ReportParameters()

    def evaluate(
        self,
        definition: ReportDefinition,
        parameters: ReportParameters | None = None,
    ) -> pd.DataFrame:
        """Compute a report's raw frame and check its columns.

        Raises:
            ReportDefinitionError: If the frame's columns differ from the declared ones.
        """
        frame = definition.compute(self.store, parameters or self.parameters)
        if tuple(frame.columns) != definition.columns:
            raise ReportDefinitionError(
                message=f"Report '{definition.name}' produced unexpected columns",
                details={"expected": list(definition.columns), "actual": [str(c) for c in frame.columns]},
            )
        return frame

    def run(self, name_or_code: str, parameters: ReportParameters | None = None) -> ReportResult:
        """Run one report.

        Args:
            name_or_code: Report name (e.g. "product_profit") or code (e.g. "Q4").
            parameters: Overrides the service's default parameters for this run.

        Returns:
            ReportResult with plain Python rows.

        Raises:
            NotFoundError: If the report does not exist.
            ReportDefinitionError: If the report is internally inconsistent.
        """
        definition = get_report(name_or_code)
        start_time = time.perf_counter()

        logger.info("reports.run_started", report=definition.name, code=definition.code)

        frame = self.evaluate(definition, parameters)
        rows = _to_rows(frame, definition.columns)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "reports.run_completed",
            report=definition.name,
            code=definition.code,
            row_count=len(rows),
            duration_ms=round(duration_ms, 2),
        )

        return ReportResult(
            code=definition.code,
            name=definition.name,
            title=definition.title,
            columns=list(definition.columns),
            rows=rows,
            row_count=len(rows),
        )

    def run_many(
        self,
        names: Iterable[str] | None = None,
        parameters: ReportParameters | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ReportBatchResult:
        """Run several reports (all of them by default) in catalog order.

        Cancellation is checked before each report starts; a report that has
        started always completes. Reports not started are listed as skipped.

        Raises:
            NotFoundError: If any requested name is unknown (checked up front).
        """
        definitions = (
            list_reports() if names is None else [get_report(name) for name in names]
        )
        batch = ReportBatchResult()

        for index, definition in enumerate(definitions):
            if cancel_event is not None and cancel_event.is_set():
                batch.skipped.extend(d.name for d in definitions[index:])
                logger.warning(
                    "reports.batch_cancelled",
                    completed=len(batch.results),
                    skipped=len(batch.skipped),
                )
                break
            batch.results.append(self.run(definition.name, parameters))

        logger.info(
            "reports.batch_completed",
            completed=len(batch.results),
            skipped=len(batch.skipped),
        )
        return batch
