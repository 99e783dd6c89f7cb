"""Pydantic schemas for report parameters and results."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fashion_analytics.core.config import Settings


class ReportParameters(BaseModel):
    """Thresholds and reference values used by the report catalog.

    Defaults are the thresholds the reports were first written with. The
    parameters are immutable so one run always sees one consistent set.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    reference_date: date | None = Field(
        default=None,
        description="'Today' for recency windows. None means the current date.",
    )
    top_customers_per_country: int = Field(default=5, ge=1)
    top_products_per_brand_month: int = Field(default=3, ge=1)
    growth_history_months: int = Field(default=12, ge=1)
    segment_high_threshold: float = Field(default=0.66, ge=0, le=1)
    segment_medium_threshold: float = Field(default=0.33, ge=0, le=1)
    vip_category: str = Field(default="HighMargin", min_length=1)
    pareto_share: float = Field(default=0.8, gt=0, le=1)
    top_customer_percent_rank: float = Field(default=0.9, ge=0, le=1)
    mom_growth_factor: float = Field(default=1.2, gt=0)
    moving_average_rows: int = Field(default=3, ge=1)
    recent_months: int = Field(default=6, ge=1)
    recent_min_categories: int = Field(
        default=3, ge=0, description="Customers need strictly more categories than this."
    )
    popular_min_customers: int = Field(default=5, ge=1)
    popular_min_revenue: float = Field(
        default=10000, description="Monthly revenue must be strictly greater than this."
    )
    brand_min_products: int = Field(
        default=1, ge=0, description="Customers need strictly more products than this."
    )

    @model_validator(mode="after")
    def validate_segment_thresholds(self) -> ReportParameters:
        """Medium threshold must not exceed the high threshold."""
        if self.segment_medium_threshold > self.segment_high_threshold:
            raise ValueError(
                "segment_medium_threshold must be <= segment_high_threshold "
                f"(got {self.segment_medium_threshold} > {self.segment_high_threshold})"
            )
        return self

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> ReportParameters:
        """Build parameters from application settings plus explicit overrides."""
        values: dict[str, Any] = {
            "reference_date": settings.report_reference_date,
            "vip_category": settings.report_vip_category,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def effective_reference_date(self) -> date:
        """reference_date, or today when unset."""
        return self.reference_date or date.today()


class ReportSummary(BaseModel):
    """Catalog entry describing one report."""

    code: str = Field(..., description="Short report code, e.g. 'Q1'.")
    name: str = Field(..., description="Stable snake_case report name.")
    title: str = Field(..., description="Human-readable title.")
    description: str = Field(default="", description="What the report computes.")
    columns: list[str] = Field(..., description="Output columns, in order.")


class ReportResult(BaseModel):
    """Rows produced by one report run.

    Values are plain Python types: month and day columns are dates, undefined
    ratios and missing lags are None.
    """

    code: str
    name: str
    title: str
    columns: list[str]
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = Field(..., ge=0)


class ReportBatchResult(BaseModel):
    """Results of running several reports in sequence."""

    results: list[ReportResult] = Field(default_factory=list)
    skipped: list[str] = Field(
        default_factory=list,
        description="Reports not started because the batch was cancelled.",
    )

    @property
    def cancelled(self) -> bool:
        """True when at least one report was skipped."""
        return bool(self.skipped)
