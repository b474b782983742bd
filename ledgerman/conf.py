"""
Ledgerman configuration.

Usage in settings.py:
    LEDGERMAN = {
        "PRODUCT_LOOKUP": "ledgerman.adapters.models.ModelProductLookup",
        "PRODUCT_MODELS": ["shop.Product"],
        "DEFAULT_LOCATION": "main",
        "EXPIRY_HORIZON_DAYS": 30,
        "DEFAULT_VALUATION_METHOD": "fifo",
    }
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings


@dataclass
class LedgermanSettings:
    """Ledgerman configuration settings."""

    # Product lookup backend (dotted path)
    PRODUCT_LOOKUP: str = "ledgerman.adapters.models.ModelProductLookup"

    # Product models visited by batch jobs ("app_label.Model")
    PRODUCT_MODELS: list[str] = field(default_factory=list)

    # Location tag used when a movement or batch names none
    DEFAULT_LOCATION: str = "main"

    # Expiry alerts look this many days ahead
    EXPIRY_HORIZON_DAYS: int = 30

    # Expiry alert level cutoffs (days to expiry, inclusive)
    EXPIRY_CRITICAL_DAYS: int = 7
    EXPIRY_WARNING_DAYS: int = 15

    # Method used by compute_valuations when none is given
    DEFAULT_VALUATION_METHOD: str = "fifo"


def get_ledgerman_settings() -> LedgermanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "LEDGERMAN", {})
    return LedgermanSettings(**{
        k: v for k, v in user_settings.items()
        if k in LedgermanSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_ledgerman_settings(), name)


ledgerman_settings = _LazySettings()
