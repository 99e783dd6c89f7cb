"""Pydantic specs for the join/group and window evaluators.

Specs are designed to be:
- Immutable (frozen=True) so a report definition cannot drift between runs
- Strict (extra="forbid") so typos fail when a spec object is built
- Self-checking: inconsistent combinations raise at construction time
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EngineSpecBase(BaseModel):
    """Base for evaluator specs: immutable, no extra fields."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


# =============================================================================
# Grouping
# =============================================================================


class AggregateFunction(str, Enum):
    """Aggregates supported by the group evaluator.

    Nulls are ignored by every aggregate except row COUNT (column=None).
    """

    SUM = "sum"
    AVG = "avg"
    COUNT = "count"
    COUNT_DISTINCT = "count_distinct"


class Aggregate(EngineSpecBase):
    """One aggregate expression of a GROUP BY.

    Attributes:
        output: Name of the output column.
        function: Aggregate to apply.
        column: Input column. None is only valid for COUNT (counts rows).
    """

    output: str = Field(..., min_length=1)
    function: AggregateFunction
    column: str | None = None

    @model_validator(mode="after")
    def validate_column_required(self) -> Aggregate:
        """Every aggregate except row COUNT needs an input column."""
        if self.column is None and self.function is not AggregateFunction.COUNT:
            raise ValueError(f"Aggregate '{self.output}' ({self.function.value}) needs a column")
        return self


class GroupSpec(EngineSpecBase):
    """GROUP BY keys plus the aggregates computed per group.

    Attributes:
        keys: Grouping columns (at least one).
        aggregates: Aggregate expressions (at least one).
    """

    keys: tuple[str, ...] = Field(..., min_length=1)
    aggregates: tuple[Aggregate, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_unique_outputs(self) -> GroupSpec:
        """Output names must be unique and must not shadow a grouping key."""
        names = [a.output for a in self.aggregates]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate aggregate outputs: {names}")
        clash = set(names) & set(self.keys)
        if clash:
            raise ValueError(f"Aggregate outputs shadow grouping keys: {sorted(clash)}")
        if len(set(self.keys)) != len(self.keys):
            raise ValueError(f"Duplicate grouping keys: {list(self.keys)}")
        return self

    @property
    def output_columns(self) -> list[str]:
        """Columns of the grouped frame, keys first."""
        return [*self.keys, *(a.output for a in self.aggregates)]


# =============================================================================
# Windows
# =============================================================================


class WindowFunction(str, Enum):
    """Window functions supported by the window evaluator.

    RUNNING_SUM uses the SQL default frame (RANGE UNBOUNDED PRECEDING to the
    current row, peers included); with no order keys it is the partition total.
    MOVING_AVG uses a ROWS frame of ``preceding`` rows plus the current row.
    """

    ROW_NUMBER = "row_number"
    RANK = "rank"
    PERCENT_RANK = "percent_rank"
    LAG = "lag"
    RUNNING_SUM = "running_sum"
    MOVING_AVG = "moving_avg"


RANKING_FUNCTIONS = frozenset(
    {WindowFunction.ROW_NUMBER, WindowFunction.RANK, WindowFunction.PERCENT_RANK}
)
VALUE_FUNCTIONS = frozenset(
    {WindowFunction.LAG, WindowFunction.RUNNING_SUM, WindowFunction.MOVING_AVG}
)


class SortKey(EngineSpecBase):
    """One ORDER BY key. Nulls sort last ascending and first descending."""

    column: str = Field(..., min_length=1)
    descending: bool = False


class WindowSpec(EngineSpecBase):
    """A window function over PARTITION BY / ORDER BY.

    Attributes:
        function: Window function kind.
        output: Name of the output column.
        partition_by: Partition columns (empty = single partition).
        order_by: Ordering keys within each partition.
        column: Input column for LAG, RUNNING_SUM and MOVING_AVG.
        preceding: Rows before the current one in a MOVING_AVG frame.
    """

    function: WindowFunction
    output: str = Field(..., min_length=1)
    partition_by: tuple[str, ...] = ()
    order_by: tuple[SortKey, ...] = ()
    column: str | None = None
    preceding: int | None = Field(default=None, ge=0)

    @field_validator("order_by", mode="before")
    @classmethod
    def coerce_sort_keys(cls, v: object) -> object:
        """Allow plain column names as ascending sort keys."""
        if isinstance(v, (list, tuple)):
            return tuple(SortKey(column=k) if isinstance(k, str) else k for k in v)
        return v

    @model_validator(mode="after")
    def validate_function_arguments(self) -> WindowSpec:
        """Check the arguments each function kind needs."""
        if self.function in RANKING_FUNCTIONS and not self.order_by:
            raise ValueError(f"{self.function.value} needs at least one order_by key")
        if self.function in VALUE_FUNCTIONS and self.column is None:
            raise ValueError(f"{self.function.value} needs an input column")
        if self.function in (WindowFunction.LAG, WindowFunction.MOVING_AVG) and not self.order_by:
            raise ValueError(f"{self.function.value} needs at least one order_by key")
        if self.function is WindowFunction.MOVING_AVG and self.preceding is None:
            raise ValueError("moving_avg needs 'preceding' (rows before the current row)")
        if self.function is not WindowFunction.MOVING_AVG and self.preceding is not None:
            raise ValueError("'preceding' only applies to moving_avg")
        if self.output in self.partition_by:
            raise ValueError(f"Window output '{self.output}' shadows a partition column")
        return self

    @property
    def referenced_columns(self) -> list[str]:
        """Input columns the window reads."""
        columns = [*self.partition_by, *(k.column for k in self.order_by)]
        if self.column is not None:
            columns.append(self.column)
        return columns
