"""Tabular evaluation engine: joins, grouped aggregates and window functions."""

from fashion_analytics.features.engine.grouping import (
    group_aggregate,
    inner_join,
    month_number,
    month_of,
    month_series,
    require_columns,
    round_half_up,
    safe_divide,
    with_line_profit,
    with_line_revenue,
)
from fashion_analytics.features.engine.schemas import (
    Aggregate,
    AggregateFunction,
    GroupSpec,
    SortKey,
    WindowFunction,
    WindowSpec,
)
from fashion_analytics.features.engine.windows import apply_window, apply_windows

__all__ = [
    "Aggregate",
    "AggregateFunction",
    "GroupSpec",
    "SortKey",
    "WindowFunction",
    "WindowSpec",
    "apply_window",
    "apply_windows",
    "group_aggregate",
    "inner_join",
    "month_number",
    "month_of",
    "month_series",
    "require_columns",
    "round_half_up",
    "safe_divide",
    "with_line_profit",
    "with_line_revenue",
]
