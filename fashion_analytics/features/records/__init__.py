"""Record store and staging ingestion for customers, products, sales and sale items."""

from fashion_analytics.features.records.loader import (
    LoadResult,
    load_staging_dir,
    load_staging_rows,
    read_staging_csv,
)
from fashion_analytics.features.records.schemas import (
    Customer,
    Product,
    RejectedRow,
    Sale,
    SaleItem,
    TableName,
    parse_identifier,
)
from fashion_analytics.features.records.store import RecordStore, TableScan

__all__ = [
    "Customer",
    "LoadResult",
    "Product",
    "RecordStore",
    "RejectedRow",
    "Sale",
    "SaleItem",
    "TableName",
    "TableScan",
    "load_staging_dir",
    "load_staging_rows",
    "parse_identifier",
    "read_staging_csv",
]
