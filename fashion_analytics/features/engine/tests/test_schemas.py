"""Tests for evaluator specs."""

import pytest
from pydantic import ValidationError

from fashion_analytics.features.engine.schemas import (
    Aggregate,
    AggregateFunction,
    GroupSpec,
    SortKey,
    WindowFunction,
    WindowSpec,
)


class TestGroupSpec:
    """Tests for GroupSpec validation."""

    def test_output_columns_keys_first(self):
        spec = GroupSpec(
            keys=("region",),
            aggregates=(Aggregate(output="total", function=AggregateFunction.SUM, column="amount"),),
        )
        assert spec.output_columns == ["region", "total"]

    def test_row_count_needs_no_column(self):
        agg = Aggregate(output="rows", function=AggregateFunction.COUNT)
        assert agg.column is None

    def test_sum_needs_column(self):
        with pytest.raises(ValidationError, match="needs a column"):
            Aggregate(output="total", function=AggregateFunction.SUM)

    def test_duplicate_outputs_rejected(self):
        agg = Aggregate(output="n", function=AggregateFunction.COUNT)
        with pytest.raises(ValidationError, match="Duplicate aggregate outputs"):
            GroupSpec(keys=("region",), aggregates=(agg, agg))

    def test_output_shadowing_key_rejected(self):
        with pytest.raises(ValidationError, match="shadow"):
            GroupSpec(
                keys=("region",),
                aggregates=(Aggregate(output="region", function=AggregateFunction.COUNT),),
            )

    def test_keys_required(self):
        with pytest.raises(ValidationError):
            GroupSpec(keys=(), aggregates=(Aggregate(output="n", function=AggregateFunction.COUNT),))

    def test_extra_fields_rejected(self):
        with pytest.raises(ValidationError):
            Aggregate(output="n", function=AggregateFunction.COUNT, distinct=True)


class TestWindowSpec:
    """Tests for WindowSpec validation."""

    def test_plain_strings_become_ascending_keys(self):
        spec = WindowSpec(function=WindowFunction.ROW_NUMBER, output="rn", order_by=("score",))
        assert spec.order_by == (SortKey(column="score"),)

    def test_rank_needs_order(self):
        with pytest.raises(ValidationError, match="order_by"):
            WindowSpec(function=WindowFunction.RANK, output="rnk", partition_by=("team",))

    def test_lag_needs_column(self):
        with pytest.raises(ValidationError, match="input column"):
            WindowSpec(function=WindowFunction.LAG, output="prev", order_by=("score",))

    def test_running_sum_without_order_allowed(self):
        spec = WindowSpec(function=WindowFunction.RUNNING_SUM, output="total", column="score")
        assert spec.order_by == ()

    def test_moving_avg_needs_preceding(self):
        with pytest.raises(ValidationError, match="preceding"):
            WindowSpec(
                function=WindowFunction.MOVING_AVG, output="ma", order_by=("day",), column="score"
            )

    def test_preceding_only_for_moving_avg(self):
        with pytest.raises(ValidationError, match="only applies"):
            WindowSpec(
                function=WindowFunction.LAG, output="prev", order_by=("day",), column="score", preceding=1
            )

    def test_output_cannot_shadow_partition(self):
        with pytest.raises(ValidationError, match="shadows"):
            WindowSpec(
                function=WindowFunction.ROW_NUMBER, output="team", partition_by=("team",), order_by=("score",)
            )

    def test_referenced_columns(self):
        spec = WindowSpec(
            function=WindowFunction.LAG,
            output="prev",
            partition_by=("team",),
            order_by=("day",),
            column="score",
        )
        assert spec.referenced_columns == ["team", "day", "score"]
