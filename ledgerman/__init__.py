"""
Django Ledgerman: Livro de Estoque e Valoração.

Uso:
    from ledgerman import inventory, LedgerError

    inventory.receive(farinha, Decimal('10'), unit_cost=Decimal('5'))
    inventory.issue(farinha, Decimal('4'))
    inventory.compute_valuation(farinha, date.today(), 'fifo')
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'inventory':
        from ledgerman.service import inventory
        return inventory
    elif name == 'Inventory':
        from ledgerman.service import Inventory
        return Inventory
    elif name == 'LedgerError':
        from ledgerman.exceptions import LedgerError
        return LedgerError
    elif name == 'Movement':
        from ledgerman.models.movement import Movement
        return Movement
    elif name == 'Batch':
        from ledgerman.models.batch import Batch
        return Batch
    elif name == 'StockValuation':
        from ledgerman.models.valuation import StockValuation
        return StockValuation
    elif name == 'StockAlert':
        from ledgerman.models.alert import StockAlert
        return StockAlert
    elif name == 'MovementKind':
        from ledgerman.models.enums import MovementKind
        return MovementKind
    elif name == 'ValuationMethod':
        from ledgerman.models.enums import ValuationMethod
        return ValuationMethod
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'inventory',
    'Inventory',
    'LedgerError',
    'Movement',
    'Batch',
    'StockValuation',
    'StockAlert',
    'MovementKind',
    'ValuationMethod',
]

__version__ = '0.1.0'
