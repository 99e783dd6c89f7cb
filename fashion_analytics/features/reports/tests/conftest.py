"""Test fixtures for the report catalog."""

from collections.abc import Callable

import pytest

from fashion_analytics.features.records.store import RecordStore
from fashion_analytics.features.reports.schemas import ReportParameters
from fashion_analytics.features.reports.service import ReportService


def _sale(sale_id: str, customer_id: str, sale_date: str) -> dict[str, str]:
    return {
        "sale_id": sale_id,
        "customer_id": customer_id,
        "sale_date": sale_date,
        "channel": "Online",
        "campaign": "NA",
    }


def _item(sale_id: str, quantity: int, unit_price: str = "10", discount: str = "0") -> dict[str, str]:
    return {
        "sale_id": sale_id,
        "product_id": "1",
        "quantity": str(quantity),
        "unit_price": unit_price,
        "discount": discount,
    }


@pytest.fixture
def service(sample_store: RecordStore) -> ReportService:
    """Service over the shared sample store with default parameters."""
    return ReportService(sample_store)


@pytest.fixture
def run_rows(service: ReportService) -> Callable[..., list[dict]]:
    """Run a report on the sample store and return its rows."""

    def _run(name: str, **overrides) -> list[dict]:
        parameters = ReportParameters(**overrides) if overrides else None
        return service.run(name, parameters).rows

    return _run


@pytest.fixture
def c1_store(make_store) -> RecordStore:
    """Customer C1: 2 units at 10 with discount 2 in January, 3 units at 10 in February."""
    return make_store(
        customers=[{"customer_id": "C1", "country": "DE", "signup_date": "2024-01-01"}],
        products=[{"product_id": "1", "brand": "Acme", "category": "Basics", "cost_price": "4"}],
        sales=[_sale("S1", "C1", "2024-01-10"), _sale("S2", "C1", "2024-02-10")],
        sale_items=[_item("S1", 2, discount="2"), _item("S2", 3)],
    )


@pytest.fixture
def mom_store(make_store) -> RecordStore:
    """Customer A buys in Jan/Feb/Mar, B in Jan/Mar, D starts in Feb."""
    return make_store(
        products=[{"product_id": "1", "brand": "Acme", "category": "Basics", "cost_price": "4"}],
        sales=[
            _sale("A1", "A", "2024-01-05"),
            _sale("A2", "A", "2024-02-05"),
            _sale("A3", "A", "2024-03-05"),
            _sale("B1", "B", "2024-01-20"),
            _sale("B3", "B", "2024-03-20"),
            _sale("D2", "D", "2024-02-11"),
            _sale("D3", "D", "2024-03-11"),
        ],
        sale_items=[
            _item("A1", 1),
            _item("A2", 2),
            _item("A3", 4),
            _item("B1", 1),
            _item("B3", 5),
            _item("D2", 1),
            _item("D3", 5),
        ],
    )
