"""
Product Lookup Protocol: Interface for resolving products and their thresholds.

Ledgerman never imports a product model. It references products generically
(content type + id) and asks a ProductLookup for anything else it needs.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ProductThresholds:
    """Stock thresholds used by alert derivation."""

    reorder_point: Decimal = Decimal('0')
    minimum_stock_level: Decimal = Decimal('0')
    maximum_stock_level: Decimal | None = None  # None = no overstock check
    reorder_quantity: Decimal = Decimal('0')  # usual purchase lot size


@runtime_checkable
class ProductLookup(Protocol):
    """
    Protocol for product resolution.

    Implementations should provide methods to:
    - Resolve a product reference to a model instance
    - Enumerate products for batch jobs (alerts, valuation reports)
    - Read the stock thresholds of a product
    """

    def resolve(self, ref: Any) -> Any:
        """
        Resolve a product reference.

        Args:
            ref: A model instance or an "app_label.model:pk" string

        Returns:
            The product instance

        Raises:
            ProductNotFound: If the reference does not exist
        """
        ...

    def iter_products(self) -> Iterable[Any]:
        """Yield every product the batch jobs should visit."""
        ...

    def thresholds(self, product: Any) -> ProductThresholds:
        """
        Read stock thresholds for a product.

        Args:
            product: Product instance

        Returns:
            ProductThresholds (defaults for missing attributes)
        """
        ...
