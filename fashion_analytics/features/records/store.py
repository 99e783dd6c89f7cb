"""In-memory record store for the four typed tables.

The store is built once from validated records and never mutated. It exposes:
- Lazy, restartable scans of typed records (customers(), products(), ...)
- Typed pandas DataFrames for the join/group and window evaluators

Frames carry the numeric form of identifiers (customer_num, product_num) as
nullable Int64 columns; malformed identifiers are <NA> there. Money columns
(cost_price, unit_price, discount) hold exact Decimal values in object dtype.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any, Generic, TypeVar

import pandas as pd

from fashion_analytics.core.logging import get_logger
from fashion_analytics.features.records.schemas import (
    Customer,
    Product,
    RecordBase,
    Sale,
    SaleItem,
    TableName,
)

logger = get_logger(__name__)

R = TypeVar("R", bound=RecordBase)

TABLE_DTYPES: dict[TableName, dict[str, str]] = {
    TableName.CUSTOMERS: {
        "customer_id": "object",
        "country": "object",
        "signup_date": "datetime64[ns]",
        "customer_num": "Int64",
    },
    TableName.PRODUCTS: {
        "product_id": "object",
        "brand": "object",
        "category": "object",
        "cost_price": "object",
        "product_num": "Int64",
    },
    TableName.SALES: {
        "sale_id": "object",
        "customer_id": "object",
        "sale_date": "datetime64[ns]",
        "channel": "object",
        "campaign": "object",
        "customer_num": "Int64",
    },
    TableName.SALE_ITEMS: {
        "sale_id": "object",
        "product_id": "object",
        "quantity": "int64",
        "unit_price": "object",
        "discount": "object",
        "product_num": "Int64",
    },
}


class TableScan(Generic[R]):
    """Restartable scan over one table's records.

    Every ``iter()`` starts a fresh pass; records are yielded lazily.
    """

    def __init__(self, table: TableName, records: tuple[R, ...]) -> None:
        self.table = table
        self._records = records

    def __iter__(self) -> Iterator[R]:
        yield from self._records

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"TableScan(table={self.table.value!r}, rows={len(self._records)})"


def _row(record: RecordBase, table: TableName) -> dict[str, Any]:
    """Flatten a record into frame columns, including derived numeric ids."""
    if isinstance(record, Customer):
        return {
            "customer_id": record.customer_id,
            "country": record.country,
            "signup_date": record.signup_date,
            "customer_num": record.customer_num,
        }
    if isinstance(record, Product):
        return {
            "product_id": record.product_id,
            "brand": record.brand,
            "category": record.category,
            "cost_price": record.cost_price,
            "product_num": record.product_num,
        }
    if isinstance(record, Sale):
        return {
            "sale_id": record.sale_id,
            "customer_id": record.customer_id,
            "sale_date": record.sale_date,
            "channel": record.channel,
            "campaign": record.campaign,
            "customer_num": record.customer_num,
        }
    if isinstance(record, SaleItem):
        return {
            "sale_id": record.sale_id,
            "product_id": record.product_id,
            "quantity": record.quantity,
            "unit_price": record.unit_price,
            "discount": record.discount,
            "product_num": record.product_num,
        }
    raise TypeError(f"Unsupported record type for {table.value}: {type(record).__name__}")


def build_frame(table: TableName, records: Iterable[RecordBase]) -> pd.DataFrame:
    """Build a typed DataFrame for a table.

    Empty inputs still produce every column with its declared dtype.

    Args:
        table: Table the records belong to.
        records: Typed records.

    Returns:
        DataFrame with the columns and dtypes of TABLE_DTYPES[table].
    """
    dtypes = TABLE_DTYPES[table]
    frame = pd.DataFrame([_row(r, table) for r in records], columns=list(dtypes))

    for column, dtype in dtypes.items():
        if dtype.startswith("datetime64"):
            frame[column] = pd.to_datetime(frame[column]).astype(dtype)
        else:
            frame[column] = frame[column].astype(dtype)

    return frame


class RecordStore:
    """Holds the four immutable tables a report run reads from.

    Example:
        >>> store = RecordStore(customers=[Customer(customer_id="1", ...)])
        >>> [c.customer_id for c in store.customers()]
        ['1']
        >>> store.frame(TableName.SALES).columns.tolist()
        ['sale_id', 'customer_id', 'sale_date', 'channel', 'campaign', 'customer_num']
    """

    def __init__(
        self,
        customers: Iterable[Customer] = (),
        products: Iterable[Product] = (),
        sales: Iterable[Sale] = (),
        sale_items: Iterable[SaleItem] = (),
    ) -> None:
        self._records: dict[TableName, tuple[Any, ...]] = {
            TableName.CUSTOMERS: tuple(customers),
            TableName.PRODUCTS: tuple(products),
            TableName.SALES: tuple(sales),
            TableName.SALE_ITEMS: tuple(sale_items),
        }
        # Materialized once; frame() hands out copies
        self._frames: dict[TableName, pd.DataFrame] = {
            table: build_frame(table, records) for table, records in self._records.items()
        }

        logger.debug("records.store_built", **self.row_counts())

    def customers(self) -> TableScan[Customer]:
        """Scan all customers."""
        return TableScan(TableName.CUSTOMERS, self._records[TableName.CUSTOMERS])

    def products(self) -> TableScan[Product]:
        """Scan all products."""
        return TableScan(TableName.PRODUCTS, self._records[TableName.PRODUCTS])

    def sales(self) -> TableScan[Sale]:
        """Scan all sales."""
        return TableScan(TableName.SALES, self._records[TableName.SALES])

    def sale_items(self) -> TableScan[SaleItem]:
        """Scan all sale line items."""
        return TableScan(TableName.SALE_ITEMS, self._records[TableName.SALE_ITEMS])

    def frame(self, table: TableName | str) -> pd.DataFrame:
        """Return a private copy of a table as a typed DataFrame.

        Args:
            table: Table name (enum or its string value).

        Returns:
            Copy of the table frame; callers may modify it freely.
        """
        return self._frames[TableName(table)].copy()

    def row_counts(self) -> dict[str, int]:
        """Row count per table."""
        return {table.value: len(records) for table, records in self._records.items()}

    @property
    def is_empty(self) -> bool:
        """True when every table is empty."""
        return all(len(records) == 0 for records in self._records.values())
