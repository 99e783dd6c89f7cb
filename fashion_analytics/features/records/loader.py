"""Staging ingestion: validate text rows once and build the record store.

Rows that cannot be typed (bad date, non-integer quantity, non-decimal
price, missing required field) are quarantined into a reject list instead of
being filtered again by every report. Identifiers that are not digit-only are
kept (they still join as text) and only counted here.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from fashion_analytics.core.config import Settings, get_settings
from fashion_analytics.core.exceptions import IngestError
from fashion_analytics.core.logging import get_logger
from fashion_analytics.features.records.schemas import (
    RECORD_TYPES,
    RecordBase,
    RejectedRow,
    TableName,
    parse_identifier,
)
from fashion_analytics.features.records.store import RecordStore

logger = get_logger(__name__)

StagingRow = Mapping[str, Any]

# Identifier columns whose numeric form is used by cast-id reports
IDENTIFIER_COLUMNS: dict[TableName, str] = {
    TableName.CUSTOMERS: "customer_id",
    TableName.PRODUCTS: "product_id",
    TableName.SALES: "customer_id",
    TableName.SALE_ITEMS: "product_id",
}


@dataclass
class LoadResult:
    """Result of loading the staging tables.

    Attributes:
        store: Record store built from the accepted rows.
        rejected: Rows that failed typing, in table then row order.
        stats: Per-table loaded/rejected/malformed-identifier counts.
    """

    store: RecordStore
    rejected: list[RejectedRow] = field(default_factory=list)
    stats: dict[str, dict[str, int]] = field(default_factory=dict)


def _raw_text(row: StagingRow) -> dict[str, str | None]:
    return {str(k): None if v is None else str(v) for k, v in row.items()}


def _validate_table(
    table: TableName,
    rows: Iterable[StagingRow],
) -> tuple[list[RecordBase], list[RejectedRow]]:
    """Type every row of one staging table.

    Args:
        table: Table being loaded.
        rows: Raw staging rows (column name -> text or already-typed value).

    Returns:
        Tuple of (accepted records, rejected rows).
    """
    record_type = RECORD_TYPES[table]
    known_fields = set(record_type.model_fields)

    accepted: list[RecordBase] = []
    rejected: list[RejectedRow] = []

    for idx, row in enumerate(rows):
        fields = {k: v for k, v in row.items() if k in known_fields}
        try:
            accepted.append(record_type.model_validate(fields))
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ())) or "row"
            rejected.append(
                RejectedRow(
                    table=table,
                    row_index=idx,
                    error_code=str(first.get("type", "invalid")).upper(),
                    error_message=f"{location}: {first.get('msg', 'invalid value')}",
                    raw=_raw_text(row),
                )
            )

    return accepted, rejected


def load_staging_rows(
    customers: Iterable[StagingRow] = (),
    products: Iterable[StagingRow] = (),
    sales: Iterable[StagingRow] = (),
    sale_items: Iterable[StagingRow] = (),
) -> LoadResult:
    """Validate staging rows and build a RecordStore.

    Args:
        customers: Raw customer rows.
        products: Raw product rows.
        sales: Raw sale rows.
        sale_items: Raw sale line rows.

    Returns:
        LoadResult with the store, reject list and load statistics.
    """
    staged: dict[TableName, Iterable[StagingRow]] = {
        TableName.CUSTOMERS: customers,
        TableName.PRODUCTS: products,
        TableName.SALES: sales,
        TableName.SALE_ITEMS: sale_items,
    }

    accepted: dict[TableName, list[Any]] = {}
    rejected: list[RejectedRow] = []
    stats: dict[str, dict[str, int]] = {}

    for table, rows in staged.items():
        records, table_rejects = _validate_table(table, rows)
        id_column = IDENTIFIER_COLUMNS[table]
        malformed = sum(1 for r in records if parse_identifier(getattr(r, id_column)) is None)

        accepted[table] = records
        rejected.extend(table_rejects)
        stats[table.value] = {
            "loaded": len(records),
            "rejected": len(table_rejects),
            "malformed_identifiers": malformed,
        }

        logger.info(
            "ingest.table_loaded",
            table=table.value,
            loaded=len(records),
            rejected=len(table_rejects),
            malformed_identifiers=malformed,
        )
        if table_rejects:
            logger.warning(
                "ingest.rows_rejected",
                table=table.value,
                count=len(table_rejects),
                first_error=table_rejects[0].error_message,
            )

    store = RecordStore(
        customers=accepted[TableName.CUSTOMERS],
        products=accepted[TableName.PRODUCTS],
        sales=accepted[TableName.SALES],
        sale_items=accepted[TableName.SALE_ITEMS],
    )
    return LoadResult(store=store, rejected=rejected, stats=stats)


def read_staging_csv(path: Path) -> list[dict[str, str | None]]:
    """Read a staging CSV as text rows.

    Every value is kept as a string; blanks stay blank (they become None at
    validation). A zero-byte file is an empty table.

    Args:
        path: CSV file path.

    Returns:
        List of row dicts keyed by normalized (stripped, lower-case) column name.

    Raises:
        IngestError: If the file does not exist or cannot be parsed.
    """
    if not path.is_file():
        raise IngestError(
            message=f"Staging file not found: {path}",
            details={"path": str(path)},
        )

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        logger.warning("ingest.empty_file", path=str(path))
        return []
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise IngestError(
            message=f"Staging file could not be parsed: {path}",
            details={"path": str(path), "error": str(e)},
        ) from e

    df.columns = [str(c).strip().lower() for c in df.columns]
    return df.to_dict(orient="records")  # type: ignore[return-value]


def load_staging_dir(
    directory: str | Path | None = None,
    settings: Settings | None = None,
) -> LoadResult:
    """Load the four staging CSVs from a directory.

    Args:
        directory: Directory holding the CSVs (default: settings.staging_dir).
        settings: Settings providing file names (default: get_settings()).

    Returns:
        LoadResult for the directory.

    Raises:
        IngestError: If the directory or any staging file is missing or unreadable.
    """
    settings = settings or get_settings()
    base = Path(directory or settings.staging_dir)

    if not base.is_dir():
        raise IngestError(
            message=f"Staging directory not found: {base}",
            details={"path": str(base)},
        )

    logger.info("ingest.load_started", staging_dir=str(base))

    result = load_staging_rows(
        customers=read_staging_csv(base / settings.staging_customers_file),
        products=read_staging_csv(base / settings.staging_products_file),
        sales=read_staging_csv(base / settings.staging_sales_file),
        sale_items=read_staging_csv(base / settings.staging_sale_items_file),
    )

    logger.info(
        "ingest.load_completed",
        staging_dir=str(base),
        rejected=len(result.rejected),
        **result.store.row_counts(),
    )
    return result
