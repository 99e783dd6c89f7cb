"""Shared pytest fixtures for fashion store analytics tests."""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from fashion_analytics.features.records.deps import get_record_store
from fashion_analytics.features.records.loader import load_staging_rows
from fashion_analytics.features.records.store import RecordStore
from fashion_analytics.main import app

StoreFactory = Callable[..., RecordStore]


@pytest.fixture
def staging_rows() -> dict[str, list[dict[str, str]]]:
    """Small staging data set covering every report.

    Identifiers "C9" and "P13" are malformed (not digit-only). Sale S3 has a
    blank campaign and one S2 line has a blank discount.
    """
    return {
        "customers": [
            {"customer_id": "1", "country": "DE", "signup_date": "2024-01-10"},
            {"customer_id": "2", "country": "DE", "signup_date": "2023-12-05"},
            {"customer_id": "3", "country": "FR", "signup_date": "2024-02-01"},
            {"customer_id": "C9", "country": "FR", "signup_date": "2024-01-15"},
        ],
        "products": [
            {"product_id": "10", "brand": "Acme", "category": "HighMargin", "cost_price": "5"},
            {"product_id": "11", "brand": "Acme", "category": "HighMargin", "cost_price": "20"},
            {"product_id": "12", "brand": "Bolt", "category": "Basics", "cost_price": "1"},
            {"product_id": "P13", "brand": "Bolt", "category": "Basics", "cost_price": "2"},
        ],
        "sales": [
            {"sale_id": "S1", "customer_id": "1", "sale_date": "2024-01-15", "channel": "Online", "campaign": "Winter"},
            {"sale_id": "S2", "customer_id": "1", "sale_date": "2024-02-10", "channel": "Online", "campaign": "Winter"},
            {"sale_id": "S3", "customer_id": "2", "sale_date": "2024-01-20", "channel": "Store", "campaign": ""},
            {"sale_id": "S4", "customer_id": "3", "sale_date": "2024-03-05", "channel": "Online", "campaign": "Spring"},
            {"sale_id": "S5", "customer_id": "C9", "sale_date": "2024-02-15", "channel": "Store", "campaign": "NA"},
        ],
        "sale_items": [
            {"sale_id": "S1", "product_id": "10", "quantity": "2", "unit_price": "10", "discount": "2"},
            {"sale_id": "S2", "product_id": "10", "quantity": "3", "unit_price": "10", "discount": "0"},
            {"sale_id": "S2", "product_id": "11", "quantity": "1", "unit_price": "15", "discount": ""},
            {"sale_id": "S3", "product_id": "12", "quantity": "4", "unit_price": "5", "discount": "1"},
            {"sale_id": "S4", "product_id": "11", "quantity": "2", "unit_price": "25", "discount": "5"},
            {"sale_id": "S5", "product_id": "P13", "quantity": "1", "unit_price": "8", "discount": "0"},
        ],
    }


@pytest.fixture
def make_store() -> StoreFactory:
    """Build a RecordStore from raw staging rows (missing tables are empty)."""

    def _make(**tables: Iterable[Mapping[str, Any]]) -> RecordStore:
        return load_staging_rows(**tables).store

    return _make


@pytest.fixture
def sample_store(make_store: StoreFactory, staging_rows) -> RecordStore:
    """RecordStore loaded from staging_rows."""
    return make_store(**staging_rows)


@pytest.fixture
async def client(sample_store: RecordStore):
    """Create async HTTP client with the sample store injected."""
    app.dependency_overrides[get_record_store] = lambda: sample_store
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
