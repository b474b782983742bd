"""
Inventory Service: The single public interface for ledger operations.

Usage:
    from ledgerman import inventory, LedgerError

    movement = inventory.receive(croissant, Decimal('10'), unit_cost=Decimal('5'))
    inventory.issue(croissant, Decimal('4'))
    inventory.current_stock(croissant)                          # 6
    inventory.compute_valuation(croissant, date.today(), 'fifo').closing_value
"""

from datetime import date
from decimal import Decimal

from ledgerman.models.alert import StockAlert
from ledgerman.models.batch import Batch
from ledgerman.models.enums import ConsumptionOrder, MovementKind
from ledgerman.models.movement import Movement
from ledgerman.models.valuation import StockValuation
from ledgerman.services.alerts import AlertDeriver, BulkAcknowledgement, ReorderSuggestion
from ledgerman.services.batches import BatchStats, BatchTracker, ConsumptionPlan, Reconciliation
from ledgerman.services.ledger import Balance, Ledger, MovementReport
from ledgerman.services.movements import StockMovements
from ledgerman.services.valuation import ValuationEngine, ValuationRangeReport, ValuationReport


class Inventory:
    """
    Single interface for all ledger operations.

    Services are built around one product lookup; pass ``products`` to use
    an explicit lookup (tests, multi-catalog setups), otherwise the one in
    LEDGERMAN['PRODUCT_LOOKUP'] is loaded on first use.

    IMPORTANT: All state-changing methods use atomic transactions
    with appropriate locking. See each service's docstring.
    """

    def __init__(self, products=None):
        self.ledger = Ledger(products)
        self.batches = BatchTracker(products)
        self.movements = StockMovements(products, ledger=self.ledger, batches=self.batches)
        self.valuation = ValuationEngine(products, ledger=self.ledger)
        self.alerts = AlertDeriver(products, ledger=self.ledger, batches=self.batches)

    # ══════════════════════════════════════════════════════════════
    # CORE: MOVEMENTS
    # ══════════════════════════════════════════════════════════════

    def append_movement(self, product, kind: MovementKind | str, quantity: Decimal,
                        unit_cost: Decimal = Decimal('0'), occurred_at=None,
                        batch=None, location: str | None = None, **kwargs) -> Movement:
        """
        Append a movement record.

        Outward kinds are stored negative; an outward record that references
        a batch decrements it in the same transaction.
        """
        return self.movements.append_movement(
            product, kind, quantity,
            unit_cost=unit_cost,
            occurred_at=occurred_at,
            batch=batch,
            location=location,
            **kwargs,
        )

    def receive(self, product, quantity: Decimal, unit_cost: Decimal = Decimal('0'),
                **kwargs) -> Movement:
        """Stock entry as a new batch. See StockMovements.receive()."""
        return self.movements.receive(product, quantity, unit_cost=unit_cost, **kwargs)

    def issue(self, product, quantity: Decimal,
              order: ConsumptionOrder | str = ConsumptionOrder.OLDEST_FIRST,
              **kwargs) -> list[Movement]:
        """Stock exit drawn from batches. See StockMovements.issue()."""
        return self.movements.issue(product, quantity, order=order, **kwargs)

    def adjust(self, product, counted_quantity: Decimal, reason: str, **kwargs) -> list[Movement]:
        """Count correction. See StockMovements.adjust()."""
        return self.movements.adjust(product, counted_quantity, reason, **kwargs)

    def reverse(self, movement: Movement, reason: str, user=None) -> Movement:
        """Offsetting record for a movement. See StockMovements.reverse()."""
        return self.movements.reverse(movement, reason, user=user)

    def deactivate(self, movement: Movement, reason: str) -> Movement:
        """Withdraw a wrong record and undo its batch effect. See StockMovements.deactivate()."""
        return self.movements.deactivate(movement, reason)

    # ══════════════════════════════════════════════════════════════
    # CORE: QUERIES
    # ══════════════════════════════════════════════════════════════

    def current_stock(self, product) -> Decimal:
        return self.ledger.current_stock(product)

    def running_balance(self, product, as_of=None) -> Balance:
        return self.ledger.running_balance(product, as_of)

    def records_up_to(self, product, as_of, since: date | None = None):
        return self.ledger.records_up_to(product, as_of, since=since)

    def movement_report(self, date_from: date, date_to: date, product=None,
                        location: str | None = None) -> MovementReport:
        return self.ledger.movement_report(date_from, date_to, product=product, location=location)

    # ══════════════════════════════════════════════════════════════
    # BATCHES
    # ══════════════════════════════════════════════════════════════

    def register_batch(self, product, quantity: Decimal, **kwargs) -> Batch:
        """
        Register a batch without a ledger record.

        Prefer receive(), which registers the batch and appends its receipt.
        """
        return self.batches.register(product, quantity, **kwargs)

    def select_consumption_layers(self, product, quantity: Decimal,
                                  order: ConsumptionOrder | str = ConsumptionOrder.OLDEST_FIRST) -> ConsumptionPlan:
        """Batches that would cover ``quantity``, plus the shortfall. No mutation."""
        return self.batches.select_for_consumption(product, quantity, order)

    def consume_batch(self, batch, quantity: Decimal) -> Batch:
        """
        Decrement a batch.

        Raises:
            InsufficientBatchStock: quantity > remaining (batch unchanged)
        """
        return self.batches.consume(batch, quantity)

    def expire_batches(self, today: date | None = None) -> int:
        return self.batches.expire_overdue(today)

    def reconcile(self, product) -> Reconciliation:
        return self.batches.reconcile(product)

    def batch_stats(self, product=None, today: date | None = None) -> BatchStats:
        return self.batches.stats(product, today=today)

    # ══════════════════════════════════════════════════════════════
    # VALUATION
    # ══════════════════════════════════════════════════════════════

    def compute_valuation(self, product, as_of, method=None, **kwargs) -> StockValuation:
        """Compute and upsert a snapshot. See ValuationEngine.compute()."""
        return self.valuation.compute(product, as_of, method, **kwargs)

    def compare_valuations(self, product, as_of, methods=None) -> list[StockValuation]:
        return self.valuation.compare(product, as_of, methods)

    def valuation_report(self, as_of, method=None, products=None) -> ValuationReport:
        return self.valuation.report(as_of, method, products=products)

    def valuation_range_report(self, date_from: date, date_to: date, method=None,
                               product=None, location: str | None = None) -> ValuationRangeReport:
        """Stored snapshots between two dates. See ValuationEngine.report_range()."""
        return self.valuation.report_range(date_from, date_to, method, product=product, location=location)

    # ══════════════════════════════════════════════════════════════
    # ALERTS
    # ══════════════════════════════════════════════════════════════

    def generate_alerts(self, products=None, today: date | None = None) -> list[StockAlert]:
        """Derive alerts; returns only the newly created ones."""
        return self.alerts.generate(products, today=today)

    def acknowledge_alert(self, alert, user=None) -> StockAlert:
        return self.alerts.acknowledge(alert, user=user)

    def acknowledge_alerts(self, alerts, user=None) -> BulkAcknowledgement:
        return self.alerts.acknowledge_many(alerts, user=user)

    def resolve_alert(self, alert) -> StockAlert:
        return self.alerts.resolve_alert(alert)

    def alert_summary(self) -> dict:
        return self.alerts.summary()

    def reorder_suggestions(self, products=None) -> list[ReorderSuggestion]:
        """Products at or below their reorder point with a recommended order quantity."""
        return self.alerts.reorder_suggestions(products)


inventory = Inventory()
