"""
Shared fixtures: a migrated temporary database, a frozen clock and
builders for documents with line items.
"""

import shutil
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from sales_core.db import Store
from sales_core.domain.models import (
    Contact,
    Delivery,
    DeliveryItem,
    Invoice,
    LineItem,
    PurchaseOrder,
    Quotation,
    SalesOrder,
)
from sales_core.repositories import RepositoryFactory


class FrozenClock:
    """Callable clock returning a fixed time until advanced."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def line_items(*quantities, unit_price=100.0):
    return [
        LineItem(
            product_id=index + 1,
            product_name=f"Product {index + 1}",
            product_code=f"P-{index + 1:03d}",
            quantity=qty,
            unit_price=unit_price,
            total=qty * unit_price,
        )
        for index, qty in enumerate(quantities)
    ]


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def temp_dir():
    path = Path(tempfile.mkdtemp())
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def store(temp_dir):
    store = Store(temp_dir / "sales.db", settings_file=temp_dir / "settings.json")
    store.migrate()
    yield store
    store.close()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 15, 10, 0, 0))


@pytest.fixture
def repos(store, clock):
    return RepositoryFactory(store, clock=clock)


@pytest.fixture
def contact(repos):
    return repos.contacts.create(Contact(name="ACME S.r.l.", email="buyer@acme.example"))


@pytest.fixture
def make_quotation(repos, contact):
    def _make(items=None, **fields):
        fields.setdefault("contact_id", contact.id)
        fields.setdefault("subtotal", 200.0)
        fields.setdefault("grand_total", 200.0)
        return repos.quotations.create(Quotation(items=items if items is not None else line_items(2), **fields))
    return _make


@pytest.fixture
def make_sales_order(repos, contact):
    def _make(items=None, **fields):
        fields.setdefault("contact_id", contact.id)
        return repos.sales_orders.create(SalesOrder(items=items if items is not None else line_items(1), **fields))
    return _make


@pytest.fixture
def make_purchase_order(repos, contact):
    def _make(items=None, **fields):
        fields.setdefault("contact_id", contact.id)
        return repos.purchase_orders.create(
            PurchaseOrder(items=items if items is not None else line_items(1), **fields)
        )
    return _make


@pytest.fixture
def make_delivery(repos):
    def _make(items=None, **fields):
        if items is None:
            items = [DeliveryItem(product_id=1, product_name="Product 1", quantity=3)]
        return repos.deliveries.create(Delivery(items=items, **fields))
    return _make


@pytest.fixture
def make_invoice(repos, contact, clock):
    def _make(items=None, **fields):
        fields.setdefault("contact_id", contact.id)
        fields.setdefault("issue_date", clock.now)
        fields.setdefault("due_date", clock.now + timedelta(days=30))
        fields.setdefault("subtotal", 1000.0)
        fields.setdefault("tax_total", 100.0)
        fields.setdefault("grand_total", 1100.0)
        return repos.invoices.create(Invoice(items=items if items is not None else line_items(10), **fields))
    return _make
