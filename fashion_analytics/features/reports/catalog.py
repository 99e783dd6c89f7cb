"""The report catalog: 25 analytical reports over the record store.

Each report is a pure function ``(store, parameters) -> DataFrame`` composed
from the join/group evaluator and the window evaluator, registered under a
code (Q1..Q25) and a snake_case name with its exact output columns.

Revenue conventions are kept per report, exactly as the reports were first
written: most use net revenue (quantity * unit_price - discount), while the
top-customer and product rankings (Q2, Q3, Q19) and the profit reports
(Q4, Q5) ignore the discount. Reports that output a numeric
customer_id/product_id drop rows whose identifier is not digit-only before
aggregating; the others group by the raw identifier text.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction

import pandas as pd

from fashion_analytics.core.exceptions import NotFoundError, ReportDefinitionError
from fashion_analytics.features.engine.grouping import (
    difference,
    exact,
    group_aggregate,
    inner_join,
    month_number,
    month_series,
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
from fashion_analytics.features.records.schemas import TableName
from fashion_analytics.features.records.store import RecordStore
from fashion_analytics.features.reports.schemas import ReportParameters, ReportSummary

ReportFunction = Callable[[RecordStore, ReportParameters], pd.DataFrame]

CODE_PATTERN = re.compile(r"Q[1-9][0-9]*")
NAME_PATTERN = re.compile(r"[a-z][a-z0-9_]*")


@dataclass(frozen=True)
class ReportDefinition:
    """A registered report.

    Attributes:
        code: Short code (Q1..Q25).
        name: Stable snake_case name.
        title: Human-readable title.
        columns: Exact output columns, in order.
        compute: Pure function producing the result frame.
        description: Longer description (the function docstring).
    """

    code: str
    name: str
    title: str
    columns: tuple[str, ...]
    compute: ReportFunction
    description: str = ""

    @property
    def number(self) -> int:
        """Numeric part of the code, used for catalog ordering."""
        return int(self.code[1:])

    def summary(self) -> ReportSummary:
        """Catalog entry for listings."""
        return ReportSummary(
            code=self.code,
            name=self.name,
            title=self.title,
            description=self.description,
            columns=list(self.columns),
        )


REPORT_CATALOG: dict[str, ReportDefinition] = {}


def register_report(
    code: str,
    name: str,
    title: str,
    columns: tuple[str, ...],
) -> Callable[[ReportFunction], ReportFunction]:
    """Register a report function in REPORT_CATALOG.

    Args:
        code: Short code, e.g. "Q7".
        name: snake_case name.
        title: Human-readable title.
        columns: Exact output columns.

    Returns:
        Decorator that registers and returns the function unchanged.

    Raises:
        ReportDefinitionError: On a malformed code/name, empty or duplicate
            columns, or a code/name that is already registered.
    """
    if not CODE_PATTERN.fullmatch(code):
        raise ReportDefinitionError(f"Invalid report code '{code}'")
    if not NAME_PATTERN.fullmatch(name):
        raise ReportDefinitionError(f"Invalid report name '{name}'")
    if not columns or len(set(columns)) != len(columns):
        raise ReportDefinitionError(
            f"Report '{name}' needs unique, non-empty output columns",
            details={"columns": list(columns)},
        )
    if name in REPORT_CATALOG or any(d.code == code for d in REPORT_CATALOG.values()):
        raise ReportDefinitionError(f"Report '{code}'/'{name}' is already registered")

    def decorator(func: ReportFunction) -> ReportFunction:
        REPORT_CATALOG[name] = ReportDefinition(
            code=code,
            name=name,
            title=title,
            columns=columns,
            compute=func,
            description=" ".join(inspect.cleandoc(func.__doc__ or "").split("\n\n")[0].split()),
        )
        return func

    return decorator


def get_report(name_or_code: str) -> ReportDefinition:
    """Look a report up by name or by code (code match is case-insensitive).

    Raises:
        NotFoundError: If no report matches.
    """
    if name_or_code in REPORT_CATALOG:
        return REPORT_CATALOG[name_or_code]
    wanted = name_or_code.upper()
    for definition in REPORT_CATALOG.values():
        if definition.code == wanted:
            return definition
    raise NotFoundError(
        message=f"Unknown report '{name_or_code}'",
        details={"available": [d.name for d in list_reports()]},
    )


def list_reports() -> list[ReportDefinition]:
    """All registered reports in code order."""
    return sorted(REPORT_CATALOG.values(), key=lambda d: d.number)


# =============================================================================
# Building blocks
# =============================================================================


def _sum(output: str, column: str) -> Aggregate:
    return Aggregate(output=output, function=AggregateFunction.SUM, column=column)


def _avg(output: str, column: str) -> Aggregate:
    return Aggregate(output=output, function=AggregateFunction.AVG, column=column)


def _count(output: str, column: str | None = None) -> Aggregate:
    return Aggregate(output=output, function=AggregateFunction.COUNT, column=column)


def _distinct(output: str, column: str) -> Aggregate:
    return Aggregate(output=output, function=AggregateFunction.COUNT_DISTINCT, column=column)


def _desc(column: str) -> SortKey:
    return SortKey(column=column, descending=True)


def _customers(store: RecordStore, *columns: str, numeric_ids: bool = False) -> pd.DataFrame:
    frame = store.frame(TableName.CUSTOMERS)
    if numeric_ids:
        frame = frame[frame["customer_num"].notna()]
    return frame[["customer_id", *columns]]


def _products(store: RecordStore, *columns: str, numeric_ids: bool = False) -> pd.DataFrame:
    frame = store.frame(TableName.PRODUCTS)
    if numeric_ids:
        frame = frame[frame["product_num"].notna()]
    return frame[["product_id", *columns]]


def _sales(store: RecordStore, *columns: str, numeric_ids: bool = False) -> pd.DataFrame:
    frame = store.frame(TableName.SALES)
    if numeric_ids:
        frame = frame[frame["customer_num"].notna()]
    return frame[["sale_id", *columns]]


def _items(store: RecordStore, *columns: str, numeric_ids: bool = False) -> pd.DataFrame:
    """Sale items with gross/net line revenue, projected to the given columns."""
    frame = with_line_revenue(store.frame(TableName.SALE_ITEMS))
    if numeric_ids:
        frame = frame[frame["product_num"].notna()]
    return frame[["sale_id", *columns]]


def _with_month(frame: pd.DataFrame, source: str, output: str) -> pd.DataFrame:
    result = frame.copy()
    result[output] = month_series(result[source])
    return result.drop(columns=[source])


def _numeric_id(frame: pd.DataFrame, text_column: str, numeric_column: str) -> pd.DataFrame:
    """Replace a text identifier column by its integer form, keeping the name."""
    result = frame.drop(columns=[text_column]).rename(columns={numeric_column: text_column})
    result[text_column] = result[text_column].astype("int64")
    return result


def _at_most(series: pd.Series, limit: Decimal) -> pd.Series:
    """series <= limit, with nulls never passing."""
    return series.map(lambda value: not pd.isna(value) and value <= limit).astype(bool)


def _finish(
    frame: pd.DataFrame,
    columns: tuple[str, ...],
    sort_by: list[str] | None = None,
    ascending: list[bool] | bool = True,
) -> pd.DataFrame:
    """Order (stably) and project the final output."""
    result = frame
    if sort_by and not result.empty:
        result = result.sort_values(by=sort_by, ascending=ascending, kind="mergesort")
    return result.reset_index(drop=True)[list(columns)]


# =============================================================================
# Customer revenue
# =============================================================================

Q1_COLUMNS = ("customer_id", "total_revenue", "total_discount", "total_items")


@register_report("Q1", "customer_revenue_summary", "Revenue, discount and items per customer", Q1_COLUMNS)
def customer_revenue_summary(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Net revenue, total discount and units bought per customer.

    Only customers with a digit-only id; highest revenue first.
    """
    joined = inner_join(
        inner_join(
            _customers(store, "customer_num", numeric_ids=True),
            _sales(store, "customer_id"),
            "customer_id",
        ),
        _items(store, "net_revenue", "discount", "quantity"),
        "sale_id",
    )
    grouped = group_aggregate(
        joined,
        GroupSpec(
            keys=("customer_id", "customer_num"),
            aggregates=(
                _sum("total_revenue", "net_revenue"),
                _sum("total_discount", "discount"),
                _sum("total_items", "quantity"),
            ),
        ),
    )
    result = _numeric_id(grouped, "customer_id", "customer_num")
    return _finish(result, Q1_COLUMNS, sort_by=["total_revenue"], ascending=False)


Q2_COLUMNS = ("country", "customer_id", "revenue", "rn")


@register_report("Q2", "top_customers_by_country", "Top customers per country", Q2_COLUMNS)
def top_customers_by_country(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Highest-spending customers in each country by gross revenue (no discount).

    ROW_NUMBER per country, so exactly N rows per country at most even with ties.
    """
    joined = inner_join(
        inner_join(
            _customers(store, "country", "customer_num", numeric_ids=True),
            _sales(store, "customer_id"),
            "customer_id",
        ),
        _items(store, "gross_revenue"),
        "sale_id",
    )
    grouped = group_aggregate(
        joined,
        GroupSpec(
            keys=("country", "customer_id", "customer_num"),
            aggregates=(_sum("revenue", "gross_revenue"),),
        ),
    )
    ranked = apply_window(
        grouped,
        WindowSpec(
            function=WindowFunction.ROW_NUMBER,
            output="rn",
            partition_by=("country",),
            order_by=(_desc("revenue"),),
        ),
    )
    ranked = ranked[ranked["rn"] <= params.top_customers_per_country]
    result = _numeric_id(ranked, "customer_id", "customer_num")
    return _finish(result, Q2_COLUMNS, sort_by=["country", "rn"])


# =============================================================================
# Product revenue and profit
# =============================================================================

Q3_COLUMNS = ("brand", "month", "product_id", "revenue", "rnk")


@register_report("Q3", "top_products_by_brand_month", "Top products per brand per month", Q3_COLUMNS)
def top_products_by_brand_month(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Best products of each brand in each month by gross revenue.

    RANK per (brand, month): ties share a rank, so a month may list more than N.
    """
    joined = inner_join(
        inner_join(_products(store, "brand"), _items(store, "product_id", "gross_revenue"), "product_id"),
        _sales(store, "sale_date"),
        "sale_id",
    )
    joined = _with_month(joined, "sale_date", "month")
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=("brand", "month", "product_id"), aggregates=(_sum("revenue", "gross_revenue"),)),
    )
    ranked = apply_window(
        grouped,
        WindowSpec(
            function=WindowFunction.RANK,
            output="rnk",
            partition_by=("brand", "month"),
            order_by=(_desc("revenue"),),
        ),
    )
    ranked = ranked[ranked["rnk"] <= params.top_products_per_brand_month]
    return _finish(ranked, Q3_COLUMNS, sort_by=["brand", "month", "rnk", "product_id"])


Q4_COLUMNS = ("product_id", "total_profit")


@register_report("Q4", "product_profit", "Total profit per product", Q4_COLUMNS)
def product_profit(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Gross profit (quantity * (unit_price - cost_price)) per product.

    Joins products with sale items only, so items of unknown sales still count.
    """
    joined = inner_join(
        _products(store, "product_num", "cost_price", numeric_ids=True),
        _items(store, "product_id", "gross_revenue", "net_revenue", "quantity"),
        "product_id",
    )
    joined = with_line_profit(joined)
    grouped = group_aggregate(
        joined,
        GroupSpec(
            keys=("product_id", "product_num"),
            aggregates=(_sum("total_profit", "gross_profit"),),
        ),
    )
    result = _numeric_id(grouped, "product_id", "product_num")
    return _finish(result, Q4_COLUMNS, sort_by=["product_id"])


Q5_COLUMNS = ("customer_id", "product_id", "profit")


@register_report("Q5", "negative_profit_pairs", "Customer/product pairs sold at a loss", Q5_COLUMNS)
def negative_profit_pairs(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Customer and product combinations whose total gross profit is negative."""
    joined = inner_join(
        inner_join(
            _items(
                store, "product_id", "product_num", "gross_revenue", "net_revenue", "quantity",
                numeric_ids=True,
            ),
            _products(store, "cost_price"),
            "product_id",
        ),
        _sales(store, "customer_id", "customer_num", numeric_ids=True),
        "sale_id",
    )
    joined = with_line_profit(joined)
    grouped = group_aggregate(
        joined,
        GroupSpec(
            keys=("customer_id", "customer_num", "product_id", "product_num"),
            aggregates=(_sum("profit", "gross_profit"),),
        ),
        having=lambda g: g["profit"] < 0,
    )
    result = _numeric_id(_numeric_id(grouped, "customer_id", "customer_num"), "product_id", "product_num")
    return _finish(result, Q5_COLUMNS, sort_by=["customer_id", "product_id"])


Q6_COLUMNS = ("category", "brand", "avg_profit_margin")


@register_report("Q6", "category_brand_margin", "Average profit margin per category and brand", Q6_COLUMNS)
def category_brand_margin(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Mean of per-line margins (net profit / net revenue) per category and brand.

    Lines with zero net revenue have no margin and are left out of the mean.
    """
    joined = inner_join(
        _products(store, "category", "brand", "cost_price"),
        _items(store, "product_id", "gross_revenue", "net_revenue", "quantity"),
        "product_id",
    )
    joined = with_line_profit(joined)
    joined["margin"] = safe_divide(joined["profit"], joined["net_revenue"])
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=("category", "brand"), aggregates=(_avg("avg_profit_margin", "margin"),)),
    )
    return _finish(grouped, Q6_COLUMNS)


# =============================================================================
# Channels and campaigns
# =============================================================================

Q7_COLUMNS = ("channel", "campaign", "revenue", "total_items")


def _channel_campaign_totals(store: RecordStore) -> pd.DataFrame:
    joined = inner_join(
        _sales(store, "channel", "campaign"),
        _items(store, "net_revenue", "quantity"),
        "sale_id",
    )
    return group_aggregate(
        joined,
        GroupSpec(
            keys=("channel", "campaign"),
            aggregates=(_sum("revenue", "net_revenue"), _sum("total_items", "quantity")),
        ),
    )


@register_report("Q7", "channel_campaign_revenue", "Revenue and items per channel and campaign", Q7_COLUMNS)
def channel_campaign_revenue(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Net revenue and units sold per (channel, campaign)."""
    return _finish(_channel_campaign_totals(store), Q7_COLUMNS)


Q8_COLUMNS = ("channel", "campaign", "effectiveness", "rnk")


@register_report("Q8", "best_campaign_per_channel", "Most effective campaign per channel", Q8_COLUMNS)
def best_campaign_per_channel(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Campaign with the highest net revenue per unit in each channel.

    Effectiveness is null when no units were sold; like SQL, nulls rank first
    in descending order.
    """
    totals = _channel_campaign_totals(store)
    totals["effectiveness"] = safe_divide(totals["revenue"], totals["total_items"])
    ranked = apply_window(
        totals,
        WindowSpec(
            function=WindowFunction.RANK,
            output="rnk",
            partition_by=("channel",),
            order_by=(_desc("effectiveness"),),
        ),
    )
    ranked = ranked[ranked["rnk"] == 1]
    return _finish(ranked, Q8_COLUMNS, sort_by=["channel", "campaign"])


Q9_COLUMNS = ("sale_month", "channel", "revenue", "channel_rank")


@register_report("Q9", "channel_rank_by_month", "Channel ranking per month", Q9_COLUMNS)
def channel_rank_by_month(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Channels ranked by net revenue within each month."""
    joined = inner_join(_sales(store, "sale_date", "channel"), _items(store, "net_revenue"), "sale_id")
    joined = _with_month(joined, "sale_date", "sale_month")
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=("sale_month", "channel"), aggregates=(_sum("revenue", "net_revenue"),)),
    )
    ranked = apply_window(
        grouped,
        WindowSpec(
            function=WindowFunction.RANK,
            output="channel_rank",
            partition_by=("sale_month",),
            order_by=(_desc("revenue"),),
        ),
    )
    return _finish(ranked, Q9_COLUMNS, sort_by=["sale_month", "channel_rank", "channel"])


# =============================================================================
# Time series
# =============================================================================

Q10_COLUMNS = ("month", "revenue", "growth")


@register_report("Q10", "monthly_revenue_growth", "Monthly revenue growth", Q10_COLUMNS)
def monthly_revenue_growth(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Net revenue per month and its change from the previous month with sales.

    Latest months first, limited to growth_history_months rows. Growth is
    computed before the limit, so the oldest listed month still has one.
    """
    joined = inner_join(_sales(store, "sale_date"), _items(store, "net_revenue"), "sale_id")
    joined = _with_month(joined, "sale_date", "month")
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=("month",), aggregates=(_sum("revenue", "net_revenue"),)),
    )
    lagged = apply_window(
        grouped,
        WindowSpec(function=WindowFunction.LAG, output="previous", order_by=("month",), column="revenue"),
    )
    lagged["growth"] = difference(lagged["revenue"], lagged["previous"])
    result = _finish(lagged, Q10_COLUMNS, sort_by=["month"], ascending=False)
    return result.head(params.growth_history_months)


Q20_COLUMNS = ("customer_id", "sale_date", "cumulative_spend", "mom_growth")


@register_report("Q20", "customer_cumulative_spend", "Cumulative spend and growth per customer", Q20_COLUMNS)
def customer_cumulative_spend(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Running net spend per customer by purchase day, with the change from
    the previous purchase day.
    """
    joined = inner_join(_sales(store, "customer_id", "sale_date"), _items(store, "net_revenue"), "sale_id")
    daily = group_aggregate(
        joined,
        GroupSpec(keys=("customer_id", "sale_date"), aggregates=(_sum("revenue", "net_revenue"),)),
    )
    windowed = apply_windows(
        daily,
        WindowSpec(
            function=WindowFunction.RUNNING_SUM,
            output="cumulative_spend",
            partition_by=("customer_id",),
            order_by=("sale_date",),
            column="revenue",
        ),
        WindowSpec(
            function=WindowFunction.LAG,
            output="previous",
            partition_by=("customer_id",),
            order_by=("sale_date",),
            column="revenue",
        ),
    )
    windowed["mom_growth"] = difference(windowed["revenue"], windowed["previous"])
    return _finish(windowed, Q20_COLUMNS, sort_by=["customer_id", "sale_date"])


Q21_COLUMNS = ("product_id", "sale_month", "moving_avg")


@register_report("Q21", "product_moving_average", "Moving average of monthly revenue per product", Q21_COLUMNS)
def product_moving_average(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Average net revenue over each product's current and preceding sales months.

    The window covers moving_average_rows months with sales (not calendar
    months); the first months average over what is available.
    """
    joined = inner_join(
        _sales(store, "sale_date"),
        _items(store, "product_id", "product_num", "net_revenue", numeric_ids=True),
        "sale_id",
    )
    joined = _with_month(joined, "sale_date", "sale_month")
    grouped = group_aggregate(
        joined,
        GroupSpec(
            keys=("product_id", "product_num", "sale_month"),
            aggregates=(_sum("revenue", "net_revenue"),),
        ),
    )
    averaged = apply_window(
        grouped,
        WindowSpec(
            function=WindowFunction.MOVING_AVG,
            output="moving_avg",
            partition_by=("product_num",),
            order_by=("sale_month",),
            column="revenue",
            preceding=params.moving_average_rows - 1,
        ),
    )
    result = _numeric_id(averaged, "product_id", "product_num")
    return _finish(result, Q21_COLUMNS, sort_by=["product_id", "sale_month"])


# =============================================================================
# Customer lifecycle
# =============================================================================

Q11_COLUMNS = ("month", "customer_type", "customer_count")


@register_report("Q11", "new_vs_returning_customers", "New vs returning customers per month", Q11_COLUMNS)
def new_vs_returning_customers(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Distinct buyers per month, split by whether they signed up that month."""
    joined = inner_join(
        _sales(store, "customer_id", "sale_date").drop(columns=["sale_id"]),
        _customers(store, "signup_date"),
        "customer_id",
    )
    joined = _with_month(joined, "sale_date", "month")
    is_new = month_series(joined["signup_date"]) == joined["month"]
    joined["customer_type"] = is_new.map({True: "New", False: "Returning"})
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=("month", "customer_type"), aggregates=(_distinct("customer_count", "customer_id"),)),
    )
    return _finish(grouped, Q11_COLUMNS)


Q12_COLUMNS = ("cohort_month", "avg_purchase_frequency")


@register_report("Q12", "cohort_purchase_frequency", "Average purchase frequency per signup cohort", Q12_COLUMNS)
def cohort_purchase_frequency(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Mean number of sales per buying customer, by signup month."""
    cohorts = _with_month(_customers(store, "signup_date"), "signup_date", "cohort_month")
    joined = inner_join(cohorts, _sales(store, "customer_id"), "customer_id")
    purchases = group_aggregate(
        joined,
        GroupSpec(keys=("customer_id", "cohort_month"), aggregates=(_count("purchase_count", "sale_id"),)),
    )
    grouped = group_aggregate(
        purchases,
        GroupSpec(keys=("cohort_month",), aggregates=(_avg("avg_purchase_frequency", "purchase_count"),)),
    )
    return _finish(grouped, Q12_COLUMNS)


Q18_COLUMNS = ("customer_id", "month", "qty", "prev_qty")


@register_report("Q18", "mom_quantity_growth", "Customers with month-over-month quantity growth", Q18_COLUMNS)
def mom_quantity_growth(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Months where a customer bought at least mom_growth_factor times the
    units of the previous month.

    Chains start at the earliest sale month of the whole data set and advance
    one calendar month at a time: a customer who did not buy in that first
    month, or skipped a month, has no qualifying prior month from then on.
    Evaluated as a scan over per-customer monthly totals sorted by month.
    """
    sales = _sales(store, "customer_id", "sale_date")
    joined = inner_join(sales, _items(store, "quantity"), "sale_id")
    joined = _with_month(joined, "sale_date", "month")
    monthly = group_aggregate(
        joined,
        GroupSpec(keys=("customer_id", "month"), aggregates=(_sum("qty", "quantity"),)),
    )
    if monthly.empty:
        return _finish(monthly.assign(prev_qty=pd.Series(dtype="int64")), Q18_COLUMNS)

    anchor = month_series(sales["sale_date"]).min()
    monthly["month_no"] = month_number(monthly["month"])
    lagged = apply_windows(
        monthly,
        WindowSpec(
            function=WindowFunction.LAG,
            output="prev_month_no",
            partition_by=("customer_id",),
            order_by=("month",),
            column="month_no",
        ),
        WindowSpec(
            function=WindowFunction.LAG,
            output="prev_qty",
            partition_by=("customer_id",),
            order_by=("month",),
            column="qty",
        ),
    )
    lagged = lagged.sort_values(["customer_id", "month"], kind="mergesort").reset_index(drop=True)

    consecutive = (lagged["month_no"] - lagged["prev_month_no"]) == 1
    run_id = (~consecutive).cumsum()
    run_start = lagged.groupby(run_id, sort=False)["month"].transform("first")
    in_chain = (run_start == anchor) & consecutive

    factor = Fraction(str(params.mom_growth_factor))
    grew = lagged["qty"] * factor.denominator >= lagged["prev_qty"] * factor.numerator

    result = lagged[in_chain & grew].copy()
    result["qty"] = result["qty"].astype("int64")
    result["prev_qty"] = result["prev_qty"].astype("int64")
    return _finish(result, Q18_COLUMNS, sort_by=["customer_id", "month"])


# =============================================================================
# Segmentation
# =============================================================================


def _country_revenue_rank(store: RecordStore, numeric_ids: bool) -> pd.DataFrame:
    """Net revenue per (country, customer) with its PERCENT_RANK in the country."""
    extra = ("country", "customer_num") if numeric_ids else ("country",)
    joined = inner_join(
        inner_join(
            _customers(store, *extra, numeric_ids=numeric_ids),
            _sales(store, "customer_id"),
            "customer_id",
        ),
        _items(store, "net_revenue"),
        "sale_id",
    )
    keys = ("country", "customer_id", "customer_num") if numeric_ids else ("country", "customer_id")
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=keys, aggregates=(_sum("revenue", "net_revenue"),)),
    )
    return apply_window(
        grouped,
        WindowSpec(
            function=WindowFunction.PERCENT_RANK,
            output="pr",
            partition_by=("country",),
            order_by=("revenue",),
        ),
    )


Q13_COLUMNS = ("country", "customer_id", "revenue", "pr", "revenue_segment")


@register_report("Q13", "customer_revenue_segments", "High / Medium / Low revenue customers", Q13_COLUMNS)
def customer_revenue_segments(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Customers bucketed by their revenue percent rank within their country."""
    ranked = _country_revenue_rank(store, numeric_ids=True)
    ranked["revenue_segment"] = "Low"
    ranked.loc[ranked["pr"] >= params.segment_medium_threshold, "revenue_segment"] = "Medium"
    ranked.loc[ranked["pr"] >= params.segment_high_threshold, "revenue_segment"] = "High"
    result = _numeric_id(ranked, "customer_id", "customer_num")
    return _finish(result, Q13_COLUMNS, sort_by=["country", "customer_id"])


Q14_COLUMNS = ("customer_id",)


@register_report("Q14", "vip_category_customers", "Customers who bought every product of the VIP category", Q14_COLUMNS)
def vip_category_customers(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Customers whose purchases cover every distinct product in vip_category."""
    products = _products(store, "category")
    vip_products = products[products["category"] == params.vip_category]
    required = vip_products["product_id"].nunique()

    joined = inner_join(
        inner_join(
            _sales(store, "customer_id", "customer_num", numeric_ids=True),
            _items(store, "product_id"),
            "sale_id",
        ),
        vip_products,
        "product_id",
    )
    grouped = group_aggregate(
        joined,
        GroupSpec(
            keys=("customer_id", "customer_num"),
            aggregates=(_distinct("product_count", "product_id"),),
        ),
        having=lambda g: g["product_count"] == required,
    )
    result = _numeric_id(grouped, "customer_id", "customer_num")
    return _finish(result, Q14_COLUMNS, sort_by=["customer_id"])


Q15_COLUMNS = ("category", "discounted_revenue", "pct_contribution")


@register_report("Q15", "category_revenue_contribution", "Revenue per category and share of total", Q15_COLUMNS)
def category_revenue_contribution(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Net revenue per category and its percentage of all line revenue.

    The total covers every sale item, including items of unknown products.
    Percentages are rounded half-up to two places; null when the total is 0.
    """
    all_items = _items(store, "net_revenue")
    total = all_items["net_revenue"].sum(min_count=1)

    joined = inner_join(
        _products(store, "category"),
        _items(store, "product_id", "net_revenue").drop(columns=["sale_id"]),
        "product_id",
    )
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=("category",), aggregates=(_sum("discounted_revenue", "net_revenue"),)),
    )
    percent = safe_divide(grouped["discounted_revenue"] * 100, total)
    grouped["pct_contribution"] = round_half_up(percent, 2)
    return _finish(grouped, Q15_COLUMNS)


Q16_COLUMNS = ("category", "product_id", "revenue", "cum_pct")


@register_report("Q16", "pareto_products_by_category", "Products making up the top revenue share per category", Q16_COLUMNS)
def pareto_products_by_category(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Products whose cumulative share of category revenue (best sellers
    first) stays within pareto_share.

    Products with equal revenue share one cumulative value, as in a SQL
    running SUM without an explicit ROWS frame.
    """
    joined = inner_join(
        _products(store, "category"),
        _items(store, "product_id", "net_revenue").drop(columns=["sale_id"]),
        "product_id",
    )
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=("category", "product_id"), aggregates=(_sum("revenue", "net_revenue"),)),
    )
    windowed = apply_windows(
        grouped,
        WindowSpec(
            function=WindowFunction.RUNNING_SUM,
            output="running_revenue",
            partition_by=("category",),
            order_by=(_desc("revenue"),),
            column="revenue",
        ),
        WindowSpec(
            function=WindowFunction.RUNNING_SUM,
            output="category_revenue",
            partition_by=("category",),
            column="revenue",
        ),
    )
    windowed["cum_pct"] = safe_divide(windowed["running_revenue"], windowed["category_revenue"])
    windowed = windowed[_at_most(windowed["cum_pct"], exact(params.pareto_share))]
    return _finish(windowed, Q16_COLUMNS, sort_by=["category", "cum_pct", "product_id"])


Q17_COLUMNS = ("country", "customer_id", "revenue", "pr")


@register_report("Q17", "top_decile_customers_by_country", "Top revenue percentile customers per country", Q17_COLUMNS)
def top_decile_customers_by_country(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Customers whose revenue percent rank in their country is at least
    top_customer_percent_rank. Raw (textual) customer ids.
    """
    ranked = _country_revenue_rank(store, numeric_ids=False)
    ranked = ranked[ranked["pr"] >= params.top_customer_percent_rank]
    return _finish(ranked, Q17_COLUMNS, sort_by=["country", "customer_id"])


Q19_COLUMNS = ("category", "month", "product_id", "revenue", "rank")


@register_report("Q19", "product_rank_by_category_month", "Product ranking per category per month", Q19_COLUMNS)
def product_rank_by_category_month(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Every product ranked by gross revenue within its category and month."""
    joined = inner_join(
        inner_join(_products(store, "category"), _items(store, "product_id", "gross_revenue"), "product_id"),
        _sales(store, "sale_date"),
        "sale_id",
    )
    joined = _with_month(joined, "sale_date", "month")
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=("category", "month", "product_id"), aggregates=(_sum("revenue", "gross_revenue"),)),
    )
    ranked = apply_window(
        grouped,
        WindowSpec(
            function=WindowFunction.RANK,
            output="rank",
            partition_by=("category", "month"),
            order_by=(_desc("revenue"),),
        ),
    )
    return _finish(ranked, Q19_COLUMNS, sort_by=["category", "month", "rank", "product_id"])


Q22_COLUMNS = ("customer_id",)


@register_report("Q22", "multi_category_recent_customers", "Customers buying many categories recently", Q22_COLUMNS)
def multi_category_recent_customers(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Customers who bought from more than recent_min_categories categories
    in the recent_months before the reference date.
    """
    cutoff = pd.Timestamp(params.effective_reference_date) - pd.DateOffset(months=params.recent_months)
    sales = _sales(store, "customer_id", "sale_date")
    sales = sales[sales["sale_date"] >= cutoff]

    joined = inner_join(
        inner_join(sales, _items(store, "product_id"), "sale_id"),
        _products(store, "category"),
        "product_id",
    )
    grouped = group_aggregate(
        joined,
        GroupSpec(keys=("customer_id",), aggregates=(_distinct("categories", "category"),)),
        having=lambda g: g["categories"] > params.recent_min_categories,
    )
    return _finish(grouped, Q22_COLUMNS)


Q23_COLUMNS = ("product_id", "sale_month")


@register_report("Q23", "popular_products_by_month", "Products with many buyers and high revenue per month", Q23_COLUMNS)
def popular_products_by_month(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """(product, month) pairs with at least popular_min_customers distinct
    buyers and net revenue above popular_min_revenue.
    """
    joined = inner_join(
        _sales(store, "customer_id", "sale_date"),
        _items(store, "product_id", "product_num", "net_revenue", numeric_ids=True),
        "sale_id",
    )
    joined = _with_month(joined, "sale_date", "sale_month")
    grouped = group_aggregate(
        joined,
        GroupSpec(
            keys=("product_id", "product_num", "sale_month"),
            aggregates=(_distinct("customers", "customer_id"), _sum("revenue", "net_revenue")),
        ),
        having=lambda g: (g["customers"] >= params.popular_min_customers)
        & (g["revenue"] > exact(params.popular_min_revenue)),
    )
    result = _numeric_id(grouped, "product_id", "product_num")
    return _finish(result, Q23_COLUMNS, sort_by=["product_id", "sale_month"])


Q24_COLUMNS = ("channel", "campaign", "product_id", "total_qty", "revenue", "rnk")


@register_report("Q24", "top_product_per_channel", "Top-selling product per channel and campaign", Q24_COLUMNS)
def top_product_per_channel(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Product(s) with the highest net revenue in each (channel, campaign)."""
    joined = inner_join(
        _sales(store, "channel", "campaign"),
        _items(store, "product_id", "quantity", "net_revenue"),
        "sale_id",
    )
    grouped = group_aggregate(
        joined,
        GroupSpec(
            keys=("channel", "campaign", "product_id"),
            aggregates=(_sum("total_qty", "quantity"), _sum("revenue", "net_revenue")),
        ),
    )
    ranked = apply_window(
        grouped,
        WindowSpec(
            function=WindowFunction.RANK,
            output="rnk",
            partition_by=("channel", "campaign"),
            order_by=(_desc("revenue"),),
        ),
    )
    ranked = ranked[ranked["rnk"] == 1]
    return _finish(ranked, Q24_COLUMNS, sort_by=["channel", "campaign", "product_id"])


Q25_COLUMNS = ("brand", "customer_id", "product_count", "revenue", "total_discount")


@register_report("Q25", "multi_product_brand_customers", "Customers buying several products of a brand", Q25_COLUMNS)
def multi_product_brand_customers(store: RecordStore, params: ReportParameters) -> pd.DataFrame:
    """Per brand, customers who bought more than brand_min_products distinct
    products, with their net revenue and discount.
    """
    joined = inner_join(
        inner_join(
            _products(store, "brand"),
            _items(store, "product_id", "net_revenue", "discount"),
            "product_id",
        ),
        _sales(store, "customer_id"),
        "sale_id",
    )
    grouped = group_aggregate(
        joined,
        GroupSpec(
            keys=("brand", "customer_id"),
            aggregates=(
                _distinct("product_count", "product_id"),
                _sum("revenue", "net_revenue"),
                _sum("total_discount", "discount"),
            ),
        ),
        having=lambda g: g["product_count"] > params.brand_min_products,
    )
    return _finish(grouped, Q25_COLUMNS)
