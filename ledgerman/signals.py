"""
Ledgerman signals.

Subscribe from a host app to react to ledger events:

    from django.dispatch import receiver
    from ledgerman.signals import alert_raised

    @receiver(alert_raised)
    def notify(sender, alert, **kwargs):
        ...
"""

from django.dispatch import Signal

# sender=Movement, movement=<Movement>
movement_appended = Signal()

# sender=StockAlert, alert=<StockAlert>
alert_raised = Signal()

# sender=StockValuation, snapshot=<StockValuation>, unmatched_quantity=<Decimal>
negative_stock_encountered = Signal()
