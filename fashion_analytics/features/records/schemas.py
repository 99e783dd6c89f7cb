"""Typed record schemas for the four staging tables.

Records are validated and parsed once at the ingestion boundary:
- Numeric and date fields arrive already typed (Decimal, int, date)
- Identifiers stay textual; their numeric form is derived separately
- Missing campaign defaults to "NA", missing discount defaults to 0
- Descriptive fields (country, dates, brand, category, channel) may be null;
  only identifiers and numeric fields are required
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DIGITS_PATTERN = re.compile(r"[0-9]+")

DEFAULT_CAMPAIGN = "NA"
DEFAULT_DISCOUNT = Decimal("0")


class TableName(str, Enum):
    """Names of the four record sets held by the store."""

    CUSTOMERS = "customers"
    PRODUCTS = "products"
    SALES = "sales"
    SALE_ITEMS = "sale_items"


def parse_identifier(value: str | None) -> int | None:
    """Return the numeric form of an identifier, or None if it is not digit-only.

    Args:
        value: Raw identifier text.

    Returns:
        Integer value when the whole string matches ``^[0-9]+$``, else None.
    """
    if value is None or not DIGITS_PATTERN.fullmatch(value):
        return None
    return int(value)


def _coerce_date(value: Any) -> Any:
    """Accept ISO dates with an optional trailing time component."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10 and value[10] in ("T", " "):
        return value[:10]
    return value


class RecordBase(BaseModel):
    """Base for staged records.

    Immutable, no extra fields, surrounding whitespace stripped from text.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    @model_validator(mode="before")
    @classmethod
    def strip_raw_values(cls, data: Any) -> Any:
        """Strip raw string values and map blanks to None before field parsing."""
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip()
                if value == "":
                    value = None
            cleaned[key] = value
        return cleaned


class Customer(RecordBase):
    """A customer row: identifier, country, signup date."""

    customer_id: str = Field(..., min_length=1)
    country: str | None = None
    signup_date: date | None = None

    @field_validator("signup_date", mode="before")
    @classmethod
    def parse_signup_date(cls, v: Any) -> Any:
        """Accept timestamps by keeping their date part."""
        return _coerce_date(v)

    @property
    def customer_num(self) -> int | None:
        """Numeric customer id, None for malformed identifiers."""
        return parse_identifier(self.customer_id)


class Product(RecordBase):
    """A product row with its unit cost."""

    product_id: str = Field(..., min_length=1)
    brand: str | None = None
    category: str | None = None
    cost_price: Decimal

    @property
    def product_num(self) -> int | None:
        """Numeric product id, None for malformed identifiers."""
        return parse_identifier(self.product_id)


class Sale(RecordBase):
    """A sale header: who bought, when, through which channel and campaign."""

    sale_id: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1)
    sale_date: date | None = None
    channel: str | None = None
    campaign: str = DEFAULT_CAMPAIGN

    @field_validator("sale_date", mode="before")
    @classmethod
    def parse_sale_date(cls, v: Any) -> Any:
        """Accept timestamps by keeping their date part."""
        return _coerce_date(v)

    @field_validator("campaign", mode="before")
    @classmethod
    def default_campaign(cls, v: Any) -> Any:
        """Missing campaign falls back to "NA"."""
        return DEFAULT_CAMPAIGN if v is None else v

    @property
    def customer_num(self) -> int | None:
        """Numeric customer id, None for malformed identifiers."""
        return parse_identifier(self.customer_id)


class SaleItem(RecordBase):
    """A sale line: product, quantity, unit price and line discount."""

    sale_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    quantity: int
    unit_price: Decimal
    discount: Decimal = DEFAULT_DISCOUNT

    @field_validator("discount", mode="before")
    @classmethod
    def default_discount(cls, v: Any) -> Any:
        """Missing discount falls back to 0."""
        return DEFAULT_DISCOUNT if v is None else v

    @property
    def product_num(self) -> int | None:
        """Numeric product id, None for malformed identifiers."""
        return parse_identifier(self.product_id)


RECORD_TYPES: dict[TableName, type[RecordBase]] = {
    TableName.CUSTOMERS: Customer,
    TableName.PRODUCTS: Product,
    TableName.SALES: Sale,
    TableName.SALE_ITEMS: SaleItem,
}


class RejectedRow(BaseModel):
    """A staging row quarantined at load time."""

    table: TableName = Field(..., description="Staging table the row came from")
    row_index: int = Field(..., ge=0, description="0-based index of the row in its table")
    error_code: str = Field(..., description="Machine-readable error code")
    error_message: str = Field(..., description="Human-readable error message")
    raw: dict[str, str | None] = Field(default_factory=dict, description="Row as staged")
