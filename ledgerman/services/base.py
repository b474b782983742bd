"""
Shared plumbing for ledger services.
"""

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

from django.utils import timezone

from ledgerman.adapters import get_product_lookup
from ledgerman.costing import q4, to_decimal
from ledgerman.exceptions import InvalidMovement


class ProductService:
    """
    Base for services that need to resolve products.

    The lookup may be injected; otherwise the configured one is loaded on
    first use.
    """

    def __init__(self, products=None):
        self._products = products

    @property
    def products(self):
        if self._products is None:
            return get_product_lookup()
        return self._products

    def resolve(self, product):
        return self.products.resolve(product)


def parse_amount(value, field: str = 'quantity') -> Decimal:
    """
    Parse a submitted quantity or cost and quantize it to the stored 4 places.

    NaN, infinities and anything that is not a number are InvalidMovement.
    Comparisons (zero checks, remaining vs requested) must run on the
    quantized value so they agree with what the database keeps.
    """
    try:
        amount = to_decimal(value)
        if amount.is_finite():
            return q4(amount)
    except (InvalidOperation, TypeError, ValueError):
        pass
    raise InvalidMovement('INVALID_QUANTITY', **{field: str(value)})


def as_datetime(value) -> datetime:
    """Normalise None/date/naive datetime to an aware datetime (date = start of day)."""
    if value is None:
        return timezone.now()
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            return timezone.make_aware(value)
        return value
    if isinstance(value, date):
        return timezone.make_aware(datetime.combine(value, time.min))
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")
