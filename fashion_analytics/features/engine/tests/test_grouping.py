"""Tests for joins, grouped aggregates and shared derivations."""

from datetime import date, datetime
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from fashion_analytics.core.exceptions import ReportDefinitionError
from fashion_analytics.features.engine.grouping import (
    difference,
    exact,
    group_aggregate,
    inner_join,
    month_number,
    month_of,
    month_series,
    round_half_up,
    safe_divide,
    with_line_profit,
    with_line_revenue,
)
from fashion_analytics.features.engine.schemas import Aggregate, AggregateFunction, GroupSpec


def _spec(*aggregates: Aggregate, keys: tuple[str, ...] = ("region",)) -> GroupSpec:
    return GroupSpec(keys=keys, aggregates=aggregates)


class TestGroupAggregate:
    """Tests for group_aggregate."""

    def test_groups_partition_the_input(self, lines):
        result = group_aggregate(lines, _spec(Aggregate(output="rows", function=AggregateFunction.COUNT)))

        assert result["rows"].sum() == len(lines)
        assert len(result) == 3  # north, south and the null region

    def test_null_keys_form_one_group_sorted_last(self, lines):
        result = group_aggregate(lines, _spec(Aggregate(output="rows", function=AggregateFunction.COUNT)))

        assert result["region"].tolist()[:2] == ["north", "south"]
        assert pd.isna(result["region"].iloc[2])

    def test_aggregates_ignore_nulls(self, lines):
        result = group_aggregate(
            lines,
            _spec(
                Aggregate(output="total", function=AggregateFunction.SUM, column="amount"),
                Aggregate(output="mean", function=AggregateFunction.AVG, column="amount"),
                Aggregate(output="amounts", function=AggregateFunction.COUNT, column="amount"),
                Aggregate(output="customers", function=AggregateFunction.COUNT_DISTINCT, column="customer"),
            ),
        )

        north = result[result["region"] == "north"].iloc[0]
        assert north["total"] == 10.0
        assert north["mean"] == 10.0
        assert north["amounts"] == 1
        assert north["customers"] == 1

    def test_sum_of_only_nulls_is_null(self):
        frame = pd.DataFrame({"region": ["x"], "amount": [np.nan]})

        result = group_aggregate(frame, _spec(Aggregate(output="total", function=AggregateFunction.SUM, column="amount")))

        assert pd.isna(result["total"].iloc[0])

    def test_having_filters_groups(self, lines):
        result = group_aggregate(
            lines,
            _spec(Aggregate(output="customers", function=AggregateFunction.COUNT_DISTINCT, column="customer")),
            having=lambda g: g["customers"] > 1,
        )

        assert result["region"].tolist() == ["south"]

    def test_empty_input_gives_empty_output(self, lines):
        result = group_aggregate(
            lines.iloc[0:0],
            _spec(Aggregate(output="total", function=AggregateFunction.SUM, column="amount")),
        )

        assert result.empty
        assert list(result.columns) == ["region", "total"]

    def test_decimal_sum_and_avg_are_exact(self):
        frame = pd.DataFrame(
            {
                "region": ["N", "N", "N", "S"],
                "amount": [Decimal("0.1"), Decimal("0.2"), Decimal("-0.3"), Decimal("1.5")],
            }
        )

        result = group_aggregate(
            frame,
            _spec(
                Aggregate(output="total", function=AggregateFunction.SUM, column="amount"),
                Aggregate(output="mean", function=AggregateFunction.AVG, column="amount"),
            ),
            having=lambda g: g["total"] == 0,
        )

        assert result["region"].tolist() == ["N"]
        assert result["total"].iloc[0] == Decimal("0")
        assert result["mean"].iloc[0] == Decimal("0")

    def test_unknown_column_fails_fast(self, lines):
        with pytest.raises(ReportDefinitionError, match="unknown field"):
            group_aggregate(lines, _spec(Aggregate(output="total", function=AggregateFunction.SUM, column="price")))


class TestInnerJoin:
    """Tests for inner_join."""

    def test_null_keys_never_match(self):
        left = pd.DataFrame({"k": ["a", None], "x": [1, 2]})
        right = pd.DataFrame({"k": ["a", None], "y": [3, 4]})

        result = inner_join(left, right, "k")

        assert result.to_dict(orient="records") == [{"k": "a", "x": 1, "y": 3}]

    def test_differently_named_keys(self):
        left = pd.DataFrame({"sale_id": ["s1"], "x": [1]})
        right = pd.DataFrame({"id": ["s1"], "y": [2]})

        result = inner_join(left, right, "sale_id", right_on="id")

        assert len(result) == 1

    def test_ambiguous_columns_rejected(self):
        left = pd.DataFrame({"k": ["a"], "amount": [1]})
        right = pd.DataFrame({"k": ["a"], "amount": [2]})

        with pytest.raises(ReportDefinitionError, match="ambiguous"):
            inner_join(left, right, "k")

    def test_unknown_key_rejected(self):
        with pytest.raises(ReportDefinitionError):
            inner_join(pd.DataFrame({"k": [1]}), pd.DataFrame({"j": [1]}), "k")


class TestMonths:
    """Tests for month helpers."""

    def test_month_of(self):
        assert month_of(date(2024, 2, 29)) == date(2024, 2, 1)
        assert month_of(datetime(2024, 3, 5, 12)) == date(2024, 3, 1)
        assert month_of(pd.Timestamp("2024-12-31")) == date(2024, 12, 1)

    def test_month_series_keeps_nat(self):
        result = month_series(pd.Series(pd.to_datetime(["2024-01-15", None])))

        assert result.iloc[0] == pd.Timestamp("2024-01-01")
        assert pd.isna(result.iloc[1])

    def test_month_number_is_consecutive_across_years(self):
        numbers = month_number(pd.Series(pd.to_datetime(["2023-12-01", "2024-01-01"])))

        assert numbers.iloc[1] - numbers.iloc[0] == 1


class TestArithmetic:
    """Tests for safe_divide and round_half_up."""

    def test_scalar_division_by_zero_is_null(self):
        assert safe_divide(5, 0) is None
        assert safe_divide(None, 2) is None
        assert safe_divide(6, 3) == 2.0

    def test_series_division_by_zero_is_null(self):
        result = safe_divide(pd.Series([4.0, 1.0, 2.0]), pd.Series([2.0, 0.0, np.nan]))

        assert result.iloc[0] == 2.0
        assert result.iloc[1:].isna().all()

    def test_series_over_zero_scalar(self):
        assert safe_divide(pd.Series([1.0, 2.0]), 0).isna().all()

    def test_round_half_up(self):
        result = round_half_up(pd.Series([2.675, 0.125, -1.005, np.nan]), 2)

        assert result.iloc[:3].tolist() == [2.68, 0.13, -1.01]
        assert pd.isna(result.iloc[3])

    def test_decimal_division_is_exact(self):
        numerator = pd.Series([Decimal("1"), Decimal("0.3"), None], dtype=object)
        denominator = pd.Series([Decimal("4"), Decimal("0"), Decimal("2")], dtype=object)

        result = safe_divide(numerator, denominator)

        assert result.tolist() == [Decimal("0.25"), None, None]
        assert safe_divide(Decimal("0.3"), 3) == Decimal("0.1")

    def test_decimal_rounding_keeps_decimals(self):
        result = round_half_up(pd.Series([Decimal("2.675"), Decimal("-0.005"), None], dtype=object), 2)

        assert result.tolist() == [Decimal("2.68"), Decimal("-0.01"), None]

    def test_difference_is_null_when_either_side_is(self):
        left = pd.Series([Decimal("0.3"), Decimal("5")], dtype=object)
        right = pd.Series([Decimal("0.1"), np.nan], dtype=object)

        assert difference(left, right).tolist() == [Decimal("0.2"), None]

    def test_exact_uses_shortest_text(self):
        assert exact(0.8) == Decimal("0.8")
        assert exact(10000) == Decimal("10000")
        assert exact(Decimal("1.10")) == Decimal("1.10")


class TestLineMetrics:
    """Tests for derived line revenue and profit."""

    def test_discount_subtracted_once_per_line(self):
        frame = pd.DataFrame({"quantity": [2, 3], "unit_price": [10.0, 10.0], "discount": [2.0, 0.0]})

        result = with_line_revenue(frame)

        assert result["gross_revenue"].tolist() == [20.0, 30.0]
        assert result["net_revenue"].tolist() == [18.0, 30.0]

    def test_profit_variants(self):
        frame = pd.DataFrame(
            {"quantity": [2], "unit_price": [10.0], "discount": [2.0], "cost_price": [4.0]}
        )

        result = with_line_profit(frame)

        assert result["line_cost"].iloc[0] == 8.0
        assert result["profit"].iloc[0] == 10.0
        assert result["gross_profit"].iloc[0] == 12.0

    def test_profit_needs_cost(self):
        frame = pd.DataFrame({"quantity": [1], "unit_price": [1.0], "discount": [0.0]})

        with pytest.raises(ReportDefinitionError):
            with_line_profit(frame)

    def test_decimal_prices_stay_exact(self):
        frame = pd.DataFrame(
            {
                "quantity": [1, 1],
                "unit_price": [Decimal("0.1"), Decimal("0.3")],
                "discount": [Decimal("0"), Decimal("0")],
                "cost_price": [Decimal("0.2"), Decimal("0.2")],
            }
        )

        result = with_line_profit(frame)

        assert result["gross_profit"].tolist() == [Decimal("-0.1"), Decimal("0.1")]
        assert sum(result["gross_profit"]) == 0
