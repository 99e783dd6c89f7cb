"""Window function evaluator.

Computes one value per input row without collapsing rows. Within each
partition rows are ordered by the window's sort keys, then by input position,
so ties are broken deterministically by the order rows were given in.

CRITICAL: Every function is computed per partition; nothing crosses a
partition boundary (shift/cumsum/rolling are all grouped by partition id).
"""

from __future__ import annotations

from decimal import Decimal

import pandas as pd

from fashion_analytics.core.logging import get_logger
from fashion_analytics.features.engine.grouping import require_columns
from fashion_analytics.features.engine.schemas import WindowFunction, WindowSpec

logger = get_logger(__name__)

_POSITION = "__position"
_PARTITION = "__partition"


def _sort_for_window(frame: pd.DataFrame, spec: WindowSpec) -> pd.DataFrame:
    """Stable sort by partition, order keys (SQL null placement) and position.

    Nulls go last for ascending keys and first for descending keys. Each key
    gets a helper flag column so the placement does not depend on pandas'
    single na_position setting.
    """
    work = frame.copy()
    work[_POSITION] = range(len(work))

    by: list[str] = []
    ascending: list[bool] = []

    for column in spec.partition_by:
        by.append(column)
        ascending.append(True)

    for i, key in enumerate(spec.order_by):
        flag = f"__null_{i}"
        # Ascending: non-null (False) before null (True). Descending: null first.
        work[flag] = work[key.column].notna() if key.descending else work[key.column].isna()
        by.extend([flag, key.column])
        ascending.extend([True, not key.descending])

    by.append(_POSITION)
    ascending.append(True)

    ordered = work.sort_values(by=by, ascending=ascending, na_position="last", kind="mergesort")
    if spec.partition_by:
        ordered[_PARTITION] = ordered.groupby(
            list(spec.partition_by), dropna=False, sort=False
        ).ngroup()
    else:
        ordered[_PARTITION] = 0
    return ordered


def _same_as_previous(series: pd.Series) -> pd.Series:
    """Row equals the previous row, counting two nulls as equal."""
    previous = series.shift()
    same = (series == previous) | (series.isna() & previous.isna())
    return same.fillna(False).astype(bool)


def _peer_starts(ordered: pd.DataFrame, spec: WindowSpec) -> pd.Series:
    """True on the first row of each peer group (same partition and order values).

    Without order keys every row of a partition is a peer of every other.
    """
    partition = ordered[_PARTITION]
    starts = partition != partition.shift()
    if spec.order_by:
        same = pd.Series(True, index=ordered.index)
        for key in spec.order_by:
            same &= _same_as_previous(ordered[key.column])
        starts |= ~same
    return starts.astype(bool)


def _row_number(ordered: pd.DataFrame) -> pd.Series:
    return ordered.groupby(_PARTITION, sort=False).cumcount() + 1


def _rank(ordered: pd.DataFrame, spec: WindowSpec) -> pd.Series:
    row_number = _row_number(ordered)
    starts = _peer_starts(ordered, spec)
    return row_number.where(starts).ffill().astype("int64")


def _percent_rank(ordered: pd.DataFrame, spec: WindowSpec) -> pd.Series:
    rank = _rank(ordered, spec)
    partition = ordered[_PARTITION]
    size = partition.groupby(partition, sort=False).transform("size")
    denominator = (size - 1).where(size > 1)
    return ((rank - 1) / denominator).fillna(0.0).astype("float64")


def _lag(ordered: pd.DataFrame, column: str) -> pd.Series:
    return ordered.groupby(_PARTITION, sort=False)[column].shift(1)


def _is_exact(series: pd.Series) -> bool:
    # Money columns hold Decimal in object dtype
    return series.dtype == object


def _running_sum(ordered: pd.DataFrame, spec: WindowSpec, column: str) -> pd.Series:
    values = ordered[column] if _is_exact(ordered[column]) else ordered[column].astype("float64")
    grouped = values.fillna(0).groupby(ordered[_PARTITION], sort=False)
    cumulative = grouped.transform(lambda s: s.cumsum()) if _is_exact(values) else grouped.cumsum()
    seen = values.notna().astype("int64").groupby(ordered[_PARTITION], sort=False).cumsum()
    cumulative = cumulative.where(seen > 0)

    # RANGE frame: all peers of a row share the value at the last peer
    peer_id = _peer_starts(ordered, spec).cumsum()
    return cumulative.groupby(peer_id, sort=False).transform("last")


def _exact_rolling_mean(series: pd.Series, window: int) -> pd.Series:
    """ROWS-frame mean over Decimal cells, skipping nulls."""
    cells = series.tolist()
    means: list[Decimal | None] = []
    for end in range(len(cells)):
        frame = [v for v in cells[max(0, end - window + 1) : end + 1] if not pd.isna(v)]
        means.append(sum(frame, Decimal(0)) / len(frame) if frame else None)
    return pd.Series(means, index=series.index, dtype="object")


def _moving_avg(ordered: pd.DataFrame, column: str, preceding: int) -> pd.Series:
    values = ordered[column]
    if _is_exact(values):
        return values.groupby(ordered[_PARTITION], sort=False).transform(
            lambda s: _exact_rolling_mean(s, preceding + 1)
        )
    return values.astype("float64").groupby(ordered[_PARTITION], sort=False).transform(
        lambda s: s.rolling(window=preceding + 1, min_periods=1).mean()
    )


def apply_window(frame: pd.DataFrame, spec: WindowSpec) -> pd.DataFrame:
    """Evaluate one window function and append it as spec.output.

    Args:
        frame: Input rows (not modified).
        spec: Window specification.

    Returns:
        Copy of the frame, rows in input order, with the new column.

    Raises:
        ReportDefinitionError: If the window references an unknown field.
    """
    require_columns(frame, spec.referenced_columns, f"window '{spec.output}'")

    result = frame.reset_index(drop=True)
    if result.empty:
        dtype = "int64" if spec.function in (WindowFunction.ROW_NUMBER, WindowFunction.RANK) else "float64"
        result[spec.output] = pd.Series(dtype=dtype)
        return result

    ordered = _sort_for_window(result, spec)

    if spec.function is WindowFunction.ROW_NUMBER:
        values = _row_number(ordered).astype("int64")
    elif spec.function is WindowFunction.RANK:
        values = _rank(ordered, spec)
    elif spec.function is WindowFunction.PERCENT_RANK:
        values = _percent_rank(ordered, spec)
    elif spec.function is WindowFunction.LAG:
        values = _lag(ordered, str(spec.column))
    elif spec.function is WindowFunction.RUNNING_SUM:
        values = _running_sum(ordered, spec, str(spec.column))
    else:
        values = _moving_avg(ordered, str(spec.column), int(spec.preceding or 0))

    # Index labels survived the sort, so assignment realigns to input order
    result[spec.output] = values

    logger.debug(
        "engine.window_applied",
        function=spec.function.value,
        output=spec.output,
        rows=len(result),
        partitions=int(ordered[_PARTITION].nunique()),
    )
    return result


def apply_windows(frame: pd.DataFrame, *specs: WindowSpec) -> pd.DataFrame:
    """Apply several window specs in order; later specs may read earlier outputs."""
    result = frame
    for spec in specs:
        result = apply_window(result, spec)
    return result
