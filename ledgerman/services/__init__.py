"""
Ledger services: modular organization of inventory operations.

    from ledgerman.services import Ledger, BatchTracker, StockMovements, ValuationEngine, AlertDeriver
"""

from ledgerman.services.alerts import AlertDeriver
from ledgerman.services.batches import BatchTracker
from ledgerman.services.ledger import Ledger
from ledgerman.services.movements import StockMovements
from ledgerman.services.valuation import ValuationEngine

__all__ = [
    'Ledger',
    'BatchTracker',
    'StockMovements',
    'ValuationEngine',
    'AlertDeriver',
]
