"""Join/group evaluator: inner joins, GROUP BY aggregates and shared derivations.

Conventions shared with SQL:
- GROUP BY treats null keys as one group
- SUM of only nulls is null, AVG/COUNT DISTINCT ignore nulls
- Joins never match null keys
- Ratios with a zero (or null) denominator are null, never an error
- Money columns hold Decimal (object dtype) and stay exact Decimal
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import numpy as np
import pandas as pd

from fashion_analytics.core.exceptions import ReportDefinitionError
from fashion_analytics.core.logging import get_logger
from fashion_analytics.features.engine.schemas import AggregateFunction, GroupSpec

logger = get_logger(__name__)

HavingPredicate = Callable[[pd.DataFrame], "pd.Series[bool]"]

_ROW_MARKER = "__row_marker"


def require_columns(frame: pd.DataFrame, columns: Iterable[str], context: str) -> None:
    """Fail fast when a spec references a field the frame does not have.

    Args:
        frame: Frame about to be evaluated.
        columns: Referenced column names.
        context: Where the reference comes from (for the error message).

    Raises:
        ReportDefinitionError: If any column is missing.
    """
    missing = [c for c in dict.fromkeys(columns) if c not in frame.columns]
    if missing:
        raise ReportDefinitionError(
            message=f"{context}: unknown field(s) {missing}",
            details={"missing": missing, "available": [str(c) for c in frame.columns]},
        )


# =============================================================================
# Months
# =============================================================================


def month_of(value: date | datetime | pd.Timestamp) -> date:
    """Truncate a date or timestamp to the first day of its month.

    Args:
        value: Date-like value.

    Returns:
        First day of the month as a date.
    """
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        value = value.date()
    return value.replace(day=1)


def month_series(series: pd.Series) -> pd.Series:
    """Vectorized month_of: datetime64 values truncated to month start.

    Null dates stay NaT. The result sorts and groups like any datetime column.
    """
    return pd.to_datetime(series).dt.to_period("M").dt.to_timestamp()


def month_number(series: pd.Series) -> pd.Series:
    """Months since year 0 (year * 12 + month - 1), for month arithmetic."""
    dates = pd.to_datetime(series)
    return dates.dt.year * 12 + dates.dt.month - 1


# =============================================================================
# Arithmetic
# =============================================================================


def exact(value: Any) -> Decimal:
    """Decimal form of a number, through its shortest text for floats.

    Thresholds such as 0.8 are compared against exact money as Decimal("0.8"),
    not as the nearest binary float.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, np.integer)):
        return Decimal(int(value))
    return Decimal(repr(float(value)))


def _is_exact(value: Any) -> bool:
    """True for Decimal scalars and object (Decimal-holding) columns."""
    if isinstance(value, pd.Series):
        return value.dtype == object
    return isinstance(value, Decimal)


def _cells(value: Any, length: int) -> list[Any]:
    return value.tolist() if isinstance(value, pd.Series) else [value] * length


def _divide(numerator: Any, denominator: Any) -> Any:
    if numerator is None or denominator is None or pd.isna(numerator) or pd.isna(denominator):
        return None
    if denominator == 0:
        return None
    if isinstance(numerator, Decimal) or isinstance(denominator, Decimal):
        return exact(numerator) / exact(denominator)
    return float(numerator) / float(denominator)


def safe_divide(numerator: Any, denominator: Any) -> Any:
    """Divide, yielding null where the denominator is zero or null.

    Works element-wise when either side is a Series. Decimal operands (money
    columns are object-dtype Decimal) give exact Decimal quotients in an
    object Series, with None for undefined ratios; float operands give a
    float Series with NaN.

    Args:
        numerator: Series or scalar.
        denominator: Series or scalar.

    Returns:
        Series of quotients, or a scalar quotient / None.
    """
    if not isinstance(numerator, pd.Series) and not isinstance(denominator, pd.Series):
        return _divide(numerator, denominator)

    if _is_exact(numerator) or _is_exact(denominator):
        index = numerator.index if isinstance(numerator, pd.Series) else denominator.index
        quotients = [
            _divide(n, d)
            for n, d in zip(
                _cells(numerator, len(index)), _cells(denominator, len(index)), strict=True
            )
        ]
        return pd.Series(quotients, index=index, dtype="object")

    if isinstance(denominator, pd.Series):
        den = denominator.astype("float64")
        den = den.where(den != 0)
    else:
        den = np.nan if denominator is None or pd.isna(denominator) or denominator == 0 else float(denominator)

    num = numerator.astype("float64") if isinstance(numerator, pd.Series) else numerator
    if num is None:
        num = np.nan
    return num / den


def difference(minuend: pd.Series, subtrahend: pd.Series) -> pd.Series:
    """Element-wise minuend - subtrahend, null where either side is null."""
    if not _is_exact(minuend) and not _is_exact(subtrahend):
        return minuend - subtrahend
    values = [
        None if pd.isna(a) or pd.isna(b) else a - b
        for a, b in zip(minuend.tolist(), subtrahend.tolist(), strict=True)
    ]
    return pd.Series(values, index=minuend.index, dtype="object")


def round_half_up(series: pd.Series, places: int = 2) -> pd.Series:
    """Round like SQL NUMERIC ROUND (half away from zero), keeping nulls.

    Decimal cells are quantized as they are. Floats go through their
    shortest decimal repr, so 2.675 rounds to 2.68 rather than the
    binary-float 2.67.
    """
    quantum = Decimal(1).scaleb(-places)

    def _round(value: Any) -> Decimal | None:
        if value is None or pd.isna(value):
            return None
        return exact(value).quantize(quantum, rounding=ROUND_HALF_UP)

    rounded = series.map(_round)
    if _is_exact(series):
        return rounded.astype("object")
    return rounded.astype("float64")


# =============================================================================
# Joins
# =============================================================================


def _as_list(keys: str | Sequence[str]) -> list[str]:
    return [keys] if isinstance(keys, str) else list(keys)


def inner_join(
    left: pd.DataFrame,
    right: pd.DataFrame,
    on: str | Sequence[str],
    right_on: str | Sequence[str] | None = None,
) -> pd.DataFrame:
    """Inner equality join of two frames.

    Callers project the columns they need first; any non-key column present
    on both sides is ambiguous and rejected rather than silently suffixed.

    Args:
        left: Left frame.
        right: Right frame.
        on: Key column(s) of the left frame (and of the right when right_on is None).
        right_on: Key column(s) of the right frame, if named differently.

    Returns:
        Joined frame, left rows in their original order.

    Raises:
        ReportDefinitionError: On unknown keys, key count mismatch or ambiguous columns.
    """
    left_keys = _as_list(on)
    right_keys = left_keys if right_on is None else _as_list(right_on)

    require_columns(left, left_keys, "inner_join (left)")
    require_columns(right, right_keys, "inner_join (right)")
    if len(left_keys) != len(right_keys):
        raise ReportDefinitionError(
            message="inner_join: left and right key counts differ",
            details={"left": left_keys, "right": right_keys},
        )

    shared_keys = {lk for lk, rk in zip(left_keys, right_keys, strict=True) if lk == rk}
    ambiguous = sorted((set(left.columns) & set(right.columns)) - shared_keys)
    if ambiguous:
        raise ReportDefinitionError(
            message=f"inner_join: ambiguous column(s) {ambiguous}; project them away first",
            details={"ambiguous": ambiguous},
        )

    return left.dropna(subset=left_keys).merge(
        right.dropna(subset=right_keys),
        how="inner",
        left_on=left_keys,
        right_on=right_keys,
        sort=False,
    )


# =============================================================================
# Grouping
# =============================================================================


def _sum_or_null(series: pd.Series) -> Any:
    return series.sum(min_count=1)


def _mean_or_null(series: pd.Series) -> Any:
    values = series.dropna()
    if values.empty:
        return np.nan
    if _is_exact(series):
        return sum(values, Decimal(0)) / len(values)
    return values.mean()


def group_aggregate(
    frame: pd.DataFrame,
    spec: GroupSpec,
    having: HavingPredicate | None = None,
) -> pd.DataFrame:
    """GROUP BY spec.keys computing spec.aggregates, then an optional HAVING.

    Produces one row per distinct key combination, sorted by the keys.

    Args:
        frame: Input rows.
        spec: Grouping keys and aggregates.
        having: Predicate over the aggregated frame; rows where it is False are dropped.

    Returns:
        Frame with columns spec.output_columns.

    Raises:
        ReportDefinitionError: If a key or aggregate column is unknown.
    """
    referenced = [*spec.keys, *(a.column for a in spec.aggregates if a.column is not None)]
    require_columns(frame, referenced, "group_aggregate")

    keys = list(spec.keys)
    if frame.empty:
        empty = frame[keys].iloc[0:0].copy()
        for agg in spec.aggregates:
            empty[agg.output] = pd.Series(dtype="float64")
        return empty.reset_index(drop=True)

    work = frame.assign(**{_ROW_MARKER: 1})
    named: dict[str, tuple[str, Any]] = {}
    for agg in spec.aggregates:
        if agg.function is AggregateFunction.SUM:
            named[agg.output] = (str(agg.column), _sum_or_null)
        elif agg.function is AggregateFunction.AVG:
            named[agg.output] = (str(agg.column), _mean_or_null)
        elif agg.function is AggregateFunction.COUNT:
            named[agg.output] = (agg.column or _ROW_MARKER, "count")
        else:
            named[agg.output] = (str(agg.column), "nunique")

    result = work.groupby(keys, dropna=False, sort=True).agg(**named).reset_index()

    if having is not None:
        mask = having(result)
        result = result[mask.fillna(False).astype(bool)].reset_index(drop=True)

    logger.debug(
        "engine.group_aggregated",
        keys=keys,
        input_rows=len(frame),
        groups=len(result),
    )
    return result[spec.output_columns]


# =============================================================================
# Derived line metrics
# =============================================================================


def _times(quantity: pd.Series, price: pd.Series) -> pd.Series:
    # Decimal prices need Python ints, not numpy ones, on the other side.
    if _is_exact(price):
        quantity = quantity.astype("object")
    return quantity * price


def with_line_revenue(frame: pd.DataFrame) -> pd.DataFrame:
    """Add gross_revenue (quantity * unit_price) and net_revenue (gross - discount).

    Discount is subtracted exactly once, per line. Decimal prices give exact
    Decimal revenue.
    """
    require_columns(frame, ["quantity", "unit_price", "discount"], "line revenue")
    result = frame.copy()
    result["gross_revenue"] = _times(result["quantity"], result["unit_price"])
    result["net_revenue"] = result["gross_revenue"] - result["discount"]
    return result


def with_line_profit(frame: pd.DataFrame) -> pd.DataFrame:
    """Add line_cost, profit (net - cost) and gross_profit (gross - cost).

    Requires a sale-item frame joined with product cost_price.
    """
    require_columns(frame, ["cost_price"], "line profit")
    result = frame.copy() if "net_revenue" in frame.columns else with_line_revenue(frame)
    result["line_cost"] = _times(result["quantity"], result["cost_price"])
    result["profit"] = result["net_revenue"] - result["line_cost"]
    result["gross_profit"] = result["gross_revenue"] - result["line_cost"]
    return result
