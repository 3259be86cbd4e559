"""
Pytest configuration and shared fixtures for Smart Bill tests.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from smart_bill.billing import BillingEngine, LineItem, create_context  # noqa: E402


@pytest.fixture
def engine():
    """Engine with a fixed billing ID and clock so results compare equal."""
    return BillingEngine(
        id_generator=lambda prefix: f"{prefix}-TEST-0001",
        clock=lambda: "2024-01-01T00:00:00+00:00",
    )


@pytest.fixture
def make_item():
    """Factory for line items with sensible defaults."""
    def _make(unit_price, quantity=1, item_id="i1", name="Item", **kwargs):
        return LineItem(id=item_id, name=name, quantity=quantity, unit_price=unit_price, **kwargs)
    return _make


@pytest.fixture
def hundred_context(make_item):
    """Context with a single item priced 100."""
    return create_context().with_item(make_item(100))


@pytest.fixture
def sample_payload():
    """Declarative payload covering items, add-ons, discounts, charges and taxes."""
    return {
        "billingId": "INV-42",
        "config": {"currency": "USD", "decimalPlaces": 2, "roundOff": True},
        "items": [
            {
                "id": "pizza",
                "name": "Pizza",
                "qty": 2,
                "unitPrice": 10,
                "addOns": [{"id": "cheese", "name": "Extra Cheese", "qty": 1, "unitPrice": 2}],
            },
            {"id": "soda", "name": "Soda", "qty": 1, "unitPrice": 3.5},
        ],
        "discounts": [{"id": "d1", "type": "PERCENT", "value": 10}],
        "charges": [{"name": "Delivery", "kind": "FLAT", "value": 5}],
        "taxes": [{"name": "Sales Tax", "rate": 8}],
        "meta": {"orderId": "A-1"},
    }


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers bound to streams captured by a previous test."""
    yield
    logger = logging.getLogger("smart_bill")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
