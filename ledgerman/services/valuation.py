"""
Valuation engine: FIFO, LIFO and weighted-average snapshots from the ledger.

One scan over Ledger.records_up_to() drives a costing strategy from
ledgerman.costing; the three methods differ only in the strategy. Records
with equal occurred_at are applied in insertion order.

Usage:
    engine = ValuationEngine()
    snapshot = engine.compute(product, date(2026, 3, 31), 'fifo')
    snapshot.closing_value

    # Chain from the latest earlier snapshot instead of rescanning history
    engine.compute(product, date(2026, 4, 1), 'fifo', chain=True)
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal

from django.contrib.contenttypes.models import ContentType
from django.db import transaction
from django.utils import timezone

from ledgerman.conf import ledgerman_settings
from ledgerman.costing import ZERO, costing_for, q4
from ledgerman.exceptions import InvalidDateRange, LedgerError, NegativeStockEncountered
from ledgerman.models.enums import ValuationMethod
from ledgerman.models.movement import Movement
from ledgerman.models.valuation import StockValuation
from ledgerman.services.base import ProductService
from ledgerman.services.ledger import Ledger
from ledgerman.signals import negative_stock_encountered

logger = logging.getLogger('ledgerman')


@dataclass(frozen=True)
class TraceStep:
    """Running figures after one ledger record."""

    movement: Movement
    quantity: Decimal
    unit_cost: Decimal
    value: Decimal  # inward value, or minus the consumed value
    running_stock: Decimal
    running_value: Decimal
    average_cost: Decimal
    shortfall: Decimal = ZERO


@dataclass
class ValuationReport:
    """Snapshots of every product for one date and method."""

    as_of: date
    method: ValuationMethod
    snapshots: list[StockValuation] = field(default_factory=list)

    @property
    def total_value(self) -> Decimal:
        return sum((s.closing_value for s in self.snapshots), ZERO)

    @property
    def flagged(self) -> list[StockValuation]:
        return [s for s in self.snapshots if s.negative_stock_encountered]


@dataclass
class ValuationRangeReport:
    """Stored snapshots of one method across a date range."""

    date_from: date
    date_to: date
    method: ValuationMethod
    snapshots: list[StockValuation] = field(default_factory=list)

    @property
    def total_by_date(self) -> dict[date, Decimal]:
        """Closing value of all products per valuation date, newest first."""
        totals: dict[date, Decimal] = {}
        for snapshot in self.snapshots:
            totals[snapshot.valuation_date] = totals.get(snapshot.valuation_date, ZERO) + snapshot.closing_value
        return totals

    @property
    def flagged(self) -> list[StockValuation]:
        return [s for s in self.snapshots if s.negative_stock_encountered]


class _Scan:
    """Costing state plus the signed stock balance, advanced record by record."""

    def __init__(self, method: ValuationMethod, stock=ZERO, value=ZERO, layers=None):
        self.costing = costing_for(method, opening_stock=stock, opening_value=value, layers=layers)
        self.stock = stock
        self.unmatched = ZERO

    @property
    def value(self) -> Decimal:
        return self.costing.value

    @property
    def average_cost(self) -> Decimal:
        if self.stock <= 0:
            return ZERO
        return self.value / self.stock

    def apply(self, movement) -> TraceStep:
        quantity = movement.quantity
        shortfall = ZERO
        if quantity > 0:
            self.costing.receive(quantity, movement.unit_cost, ref=movement.pk)
            value = quantity * movement.unit_cost
        else:
            consumption = self.costing.issue(-quantity)
            value = -consumption.value
            shortfall = consumption.shortfall
            self.unmatched += shortfall
        self.stock += quantity
        return TraceStep(
            movement=movement,
            quantity=quantity,
            unit_cost=movement.unit_cost,
            value=value,
            running_stock=self.stock,
            running_value=self.value,
            average_cost=self.average_cost,
            shortfall=shortfall,
        )


def parse_method(method) -> ValuationMethod:
    if method is None:
        method = ledgerman_settings.DEFAULT_VALUATION_METHOD
    try:
        return ValuationMethod(method)
    except ValueError:
        raise LedgerError('INVALID_METHOD', method=str(method))


def _local_date(value) -> date:
    if isinstance(value, datetime):
        return timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
    return value


class ValuationEngine(ProductService):
    """Compute and persist valuation snapshots."""

    def __init__(self, products=None, ledger=None):
        super().__init__(products)
        self.ledger = ledger or Ledger(products)

    def previous(self, product, as_of, method) -> StockValuation | None:
        """Latest snapshot for (product, method) dated before ``as_of``."""
        product = self.resolve(product)
        return (
            StockValuation.objects.for_product(product)
            .filter(method=parse_method(method), valuation_date__lt=_local_date(as_of))
            .order_by('-valuation_date')
            .first()
        )

    def trace(self, product, as_of, method=None) -> Iterator[TraceStep]:
        """Yield running stock/value/average after every record up to ``as_of``."""
        scan = _Scan(parse_method(method))
        for movement in self.ledger.records_up_to(product, as_of):
            yield scan.apply(movement)

    def compute(self, product, as_of, method=None, opening=None, chain=False,
                strict=False, location=None) -> StockValuation:
        """
        Compute and upsert the snapshot keyed by (product, as_of day, method).

        Without ``opening`` the period is the ``as_of`` day and the opening
        balance is the state after every earlier record. With ``opening`` (an
        earlier snapshot of the same product and method) the costing state is
        rehydrated from it and only later records are scanned. ``chain=True``
        uses the latest earlier snapshot as opening when one exists.

        Raises:
            LedgerError('INVALID_METHOD'): Unknown method
            LedgerError('OPENING_MISMATCH'): Opening is for another product/method
            InvalidDateRange: Opening is not dated before as_of
            NegativeStockEncountered: Only with strict=True, after persisting
        """
        product = self.resolve(product)
        method = parse_method(method)
        ct = ContentType.objects.get_for_model(product)
        valuation_date = _local_date(as_of)

        if opening is None and chain:
            opening = self.previous(product, as_of, method)

        if opening is not None:
            if (opening.content_type_id != ct.pk or opening.object_id != product.pk
                    or opening.method != method):
                raise LedgerError(
                    'OPENING_MISMATCH',
                    opening_id=opening.pk,
                    method=method.value,
                )
            if opening.valuation_date >= valuation_date:
                raise InvalidDateRange(
                    date_from=str(opening.valuation_date),
                    date_to=str(valuation_date),
                )
            scan = _Scan(method, opening.closing_stock, opening.closing_value, opening.layers)
            period_start = opening.valuation_date + timedelta(days=1)
            records = self.ledger.records_up_to(product, as_of, since=opening.valuation_date)
        else:
            scan = _Scan(method)
            period_start = valuation_date
            records = self.ledger.records_up_to(product, as_of)

        opening_stock = opening_value = None
        inward_quantity = inward_value = ZERO
        outward_quantity = outward_value = ZERO

        for movement in records:
            in_period = _local_date(movement.occurred_at) >= period_start
            if in_period and opening_stock is None:
                opening_stock, opening_value = scan.stock, scan.value
            step = scan.apply(movement)
            if not in_period:
                continue
            if step.quantity > 0:
                inward_quantity += step.quantity
                inward_value += step.value
            else:
                outward_quantity -= step.quantity
                outward_value -= step.value

        if opening_stock is None:
            opening_stock, opening_value = scan.stock, scan.value

        defaults = {
            'period_start': period_start,
            'location': location or ledgerman_settings.DEFAULT_LOCATION,
            'opening_stock': q4(opening_stock),
            'opening_value': q4(opening_value),
            'inward_quantity': q4(inward_quantity),
            'inward_value': q4(inward_value),
            'outward_quantity': q4(outward_quantity),
            'outward_value': q4(outward_value),
            'closing_stock': q4(scan.stock),
            'closing_value': q4(scan.value),
            'average_cost': q4(scan.average_cost),
            'layers': scan.costing.state(),
            'negative_stock_encountered': scan.unmatched > 0,
            'unmatched_quantity': q4(scan.unmatched),
        }

        with transaction.atomic():
            snapshot, created = StockValuation.objects.update_or_create(
                content_type=ct,
                object_id=product.pk,
                valuation_date=valuation_date,
                method=method,
                defaults=defaults,
            )

        logger.info(
            "valuation.computed",
            extra={
                "product": str(product),
                "date": str(valuation_date),
                "method": method.value,
                "closing_stock": str(snapshot.closing_stock),
                "closing_value": str(snapshot.closing_value),
                "is_new": created,
            },
        )

        if snapshot.negative_stock_encountered:
            logger.warning(
                "valuation.negative_stock",
                extra={
                    "product": str(product),
                    "date": str(valuation_date),
                    "method": method.value,
                    "unmatched_qty": str(snapshot.unmatched_quantity),
                },
            )
            negative_stock_encountered.send(
                sender=StockValuation,
                snapshot=snapshot,
                unmatched_quantity=snapshot.unmatched_quantity,
            )
            if strict:
                raise NegativeStockEncountered(
                    snapshot=snapshot,
                    product=str(product),
                    method=method.value,
                    unmatched_quantity=snapshot.unmatched_quantity,
                )

        return snapshot

    def compare(self, product, as_of, methods=None, strict=False) -> list[StockValuation]:
        """One snapshot per method, in the order given (default: all methods)."""
        methods = methods or list(ValuationMethod)
        return [self.compute(product, as_of, method, strict=strict) for method in methods]

    def report(self, as_of, method=None, products=None) -> ValuationReport:
        """Value every product (default: all products known to the lookup)."""
        method = parse_method(method)
        report = ValuationReport(as_of=_local_date(as_of), method=method)
        for product in (products if products is not None else self.products.iter_products()):
            report.snapshots.append(self.compute(product, as_of, method))
        return report

    def report_range(self, date_from, date_to, method=None, product=None,
                     location=None) -> ValuationRangeReport:
        """
        Stored snapshots between two dates (inclusive) for one method.

        Nothing is computed here; run compute()/report() for the dates first.
        Newest date first, then by product.

        Raises:
            InvalidDateRange: If date_to is before date_from
            LedgerError('INVALID_METHOD'): Unknown method
        """
        date_from, date_to = _local_date(date_from), _local_date(date_to)
        if date_to < date_from:
            raise InvalidDateRange(date_from=str(date_from), date_to=str(date_to))
        method = parse_method(method)

        qs = StockValuation.objects.filter(
            method=method,
            valuation_date__gte=date_from,
            valuation_date__lte=date_to,
        )
        if product is not None:
            qs = qs.for_product(self.resolve(product))
        if location:
            qs = qs.filter(location=location)

        return ValuationRangeReport(
            date_from=date_from,
            date_to=date_to,
            method=method,
            snapshots=list(qs.order_by('-valuation_date', 'content_type_id', 'object_id')),
        )
