"""
Ledgerman Protocols.

Defines interfaces for external system integration.
"""

from ledgerman.protocols.product import (
    ProductLookup,
    ProductThresholds,
)

__all__ = [
    "ProductLookup",
    "ProductThresholds",
]
