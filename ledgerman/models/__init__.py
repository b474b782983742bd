"""
Ledgerman Models.

Core models for the inventory ledger:
- Movement: Immutable ledger of stock changes
- Batch: Received lot with remaining quantity and expiry
- StockValuation: Computed value per product, date and method
- StockAlert: Derived stock and expiry alerts
"""

from ledgerman.models.alert import StockAlert
from ledgerman.models.batch import Batch
from ledgerman.models.enums import (
    AlertLevel,
    AlertType,
    BatchStatus,
    ConsumptionOrder,
    Direction,
    MovementKind,
    QualityStatus,
    ValuationMethod,
)
from ledgerman.models.movement import Movement
from ledgerman.models.valuation import StockValuation

__all__ = [
    'Direction',
    'MovementKind',
    'BatchStatus',
    'QualityStatus',
    'ConsumptionOrder',
    'ValuationMethod',
    'AlertType',
    'AlertLevel',
    'Movement',
    'Batch',
    'StockValuation',
    'StockAlert',
]
