"""
Pytest fixtures for Ledgerman tests.
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from ledgerman.adapters import reset_product_lookup
from ledgerman.service import Inventory
from ledgerman.tests.shop.models import Product


User = get_user_model()


@pytest.fixture(autouse=True)
def _fresh_product_lookup():
    """Each test loads the lookup from the current settings."""
    reset_product_lookup()
    yield
    reset_product_lookup()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='testuser',
        password='testpass123'
    )


@pytest.fixture
def product(db):
    """Product without thresholds (no stock-level alerts unless out/negative)."""
    return Product.objects.create(name='Farinha de Trigo', sku='FARINHA-1KG')


@pytest.fixture
def other_product(db):
    return Product.objects.create(name='Açúcar', sku='ACUCAR-1KG')


@pytest.fixture
def thresholds_product(db):
    """reorder_point=10, minimum_stock_level=20, maximum_stock_level=100."""
    return Product.objects.create(
        name='Manteiga',
        sku='MANTEIGA-200G',
        reorder_point=Decimal('10'),
        minimum_stock_level=Decimal('20'),
        maximum_stock_level=Decimal('100'),
    )


@pytest.fixture
def inventory():
    """Fresh facade (same configured lookup as ledgerman.inventory)."""
    return Inventory()


@pytest.fixture
def day():
    """Fixed reference day at 09:00 UTC."""
    return datetime(2026, 3, 2, 9, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def reference_ledger(inventory, product, day):
    """
    10 @ 5, then 10 @ 8, then an outward of 15, all on the same day.

    FIFO consumes 90, LIFO 105, weighted average 97.5.
    """
    inventory.append_movement(product, 'purchase_receipt', Decimal('10'), Decimal('5'), occurred_at=day)
    inventory.append_movement(product, 'purchase_receipt', Decimal('10'), Decimal('8'),
                              occurred_at=day + timedelta(hours=1))
    inventory.append_movement(product, 'sales_issue', Decimal('15'), occurred_at=day + timedelta(hours=2))
    return product
