"""
Ledgerman Adapters.

Implementations of protocols for external systems.

Usage:
    from ledgerman.adapters import get_product_lookup

    lookup = get_product_lookup()
    product = lookup.resolve("shop.product:42")

Settings:
    LEDGERMAN = {
        "PRODUCT_LOOKUP": "ledgerman.adapters.models.ModelProductLookup",
    }
"""

from __future__ import annotations

import logging
import threading

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from ledgerman.conf import ledgerman_settings
from ledgerman.protocols.product import ProductLookup

logger = logging.getLogger(__name__)


# Cached lookup instance
_lock = threading.Lock()
_product_lookup: ProductLookup | None = None


def get_product_lookup() -> ProductLookup:
    """
    Return the configured product lookup.

    Returns:
        ProductLookup instance

    Raises:
        ImproperlyConfigured: If PRODUCT_LOOKUP is empty or import fails
    """
    global _product_lookup

    if _product_lookup is None:
        with _lock:
            if _product_lookup is None:  # double-checked
                lookup_path = ledgerman_settings.PRODUCT_LOOKUP

                if not lookup_path:
                    raise ImproperlyConfigured(
                        "LEDGERMAN['PRODUCT_LOOKUP'] must be configured. "
                        "Example: 'ledgerman.adapters.models.ModelProductLookup'"
                    )

                try:
                    lookup_class = import_string(lookup_path)
                    _product_lookup = lookup_class()
                    logger.debug("Loaded product lookup: %s", lookup_path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import product lookup '{lookup_path}': {e}"
                    ) from e

    return _product_lookup


def reset_product_lookup() -> None:
    """Reset the cached lookup. Useful for testing."""
    global _product_lookup
    _product_lookup = None


__all__ = [
    "get_product_lookup",
    "reset_product_lookup",
]
