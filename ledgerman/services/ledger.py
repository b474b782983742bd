"""
Ledger: append-only record of stock movements and read-side scans.

The ledger is the source of truth: balances, valuations and alerts are all
derived from it. Writes here do not touch batches; workflows that must keep
batch quantities in step live in services.movements.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from django.contrib.contenttypes.models import ContentType
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce

from ledgerman.conf import ledgerman_settings
from ledgerman.costing import ZERO, q4
from ledgerman.exceptions import InvalidDateRange, InvalidMovement, LedgerError
from ledgerman.models.enums import MovementKind
from ledgerman.models.movement import Movement
from ledgerman.services.base import ProductService, as_datetime, parse_amount
from ledgerman.signals import movement_appended

logger = logging.getLogger('ledgerman')


@dataclass(frozen=True)
class Balance:
    """Signed running sums over a ledger scan."""

    stock: Decimal = ZERO
    value: Decimal = ZERO


@dataclass
class KindTotals:
    count: int = 0
    quantity: Decimal = ZERO
    value: Decimal = ZERO


@dataclass
class MovementReport:
    """Movements in a date range with per-kind totals."""

    date_from: date
    date_to: date
    movements: list = field(default_factory=list)
    by_kind: dict[str, KindTotals] = field(default_factory=dict)

    @property
    def inward_quantity(self) -> Decimal:
        return sum((t.quantity for k, t in self.by_kind.items() if MovementKind(k).is_inward), ZERO)

    @property
    def outward_quantity(self) -> Decimal:
        return -sum((t.quantity for k, t in self.by_kind.items() if MovementKind(k).is_outward), ZERO)


def parse_kind(kind) -> MovementKind:
    """Parse a kind value; unknown kinds are an InvalidMovement."""
    try:
        return MovementKind(kind)
    except ValueError:
        raise InvalidMovement('UNKNOWN_KIND', kind=str(kind))


class Ledger(ProductService):
    """Append and scan the movement ledger."""

    def normalise(self, kind, quantity, unit_cost=ZERO):
        """
        Validate and sign a submitted movement.

        Returns:
            (MovementKind, signed quantity, unit_cost)

        Raises:
            InvalidMovement: unknown kind, non-numeric or non-finite amounts,
                non-positive inward quantity,
                zero outward quantity or negative unit cost
        """
        kind = parse_kind(kind)
        quantity = parse_amount(quantity)
        unit_cost = parse_amount(ZERO if unit_cost is None else unit_cost, field='unit_cost')

        if kind.is_inward and quantity <= 0:
            raise InvalidMovement('NON_POSITIVE_INWARD', kind=kind.value, quantity=quantity)
        if kind.is_outward and quantity == 0:
            raise InvalidMovement('ZERO_QUANTITY', kind=kind.value)
        if unit_cost < 0:
            raise InvalidMovement('NEGATIVE_UNIT_COST', unit_cost=unit_cost)

        return kind, kind.signed(quantity), unit_cost

    def check_batch(self, product, batch) -> None:
        """A movement may only reference a batch of its own product."""
        ct = ContentType.objects.get_for_model(product)
        if batch.content_type_id != ct.pk or batch.object_id != product.pk:
            raise InvalidMovement(
                'BATCH_PRODUCT_MISMATCH',
                batch_id=batch.pk,
                product=str(product),
            )

    def append(self, product, kind, quantity, unit_cost=ZERO, occurred_at=None,
               batch=None, location=None, reference=None, notes='', user=None,
               metadata=None) -> Movement:
        """
        Append one movement record.

        Positive quantities for outward kinds are stored negative.
        The record gets the next insertion sequence (its id).

        Raises:
            ProductNotFound: If the product cannot be resolved
            InvalidMovement: See normalise() and check_batch()
        """
        product = self.resolve(product)
        kind, quantity, unit_cost = self.normalise(kind, quantity, unit_cost)
        if batch is not None:
            self.check_batch(product, batch)

        movement = Movement(
            content_type=ContentType.objects.get_for_model(product),
            object_id=product.pk,
            batch=batch,
            kind=kind,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=q4(quantity * unit_cost),
            occurred_at=as_datetime(occurred_at),
            location=location or (batch.location if batch else ledgerman_settings.DEFAULT_LOCATION),
            notes=notes,
            user=user,
            metadata=metadata or {},
        )
        if reference is not None:
            movement.reference = reference
        movement.save()

        logger.info(
            "ledger.append",
            extra={
                "movement": movement.number,
                "product": str(product),
                "kind": kind.value,
                "qty": str(quantity),
                "unit_cost": str(unit_cost),
                "batch_id": batch.pk if batch else None,
            },
        )
        movement_appended.send(sender=Movement, movement=movement)
        return movement

    def records_up_to(self, product, as_of, since=None):
        """
        Active records of a product up to and including ``as_of``.

        A date includes the whole day; a datetime is an exact cut.
        ``since`` (a date, exclusive) drops records on or before that day.

        Returns a lazy QuerySet in (occurred_at, id) order; iterate it as many
        times as needed.
        """
        product = self.resolve(product)
        qs = Movement.objects.for_product(product).active().chronological()
        if isinstance(as_of, datetime):
            qs = qs.filter(occurred_at__lte=as_datetime(as_of))
        else:
            qs = qs.filter(occurred_at__date__lte=as_of)
        if since is not None:
            qs = qs.filter(occurred_at__date__gt=since)
        return qs

    def running_balance(self, product, as_of=None) -> Balance:
        """Signed stock and value sums up to ``as_of`` (default: now)."""
        stock = ZERO
        value = ZERO
        for movement in self.records_up_to(product, as_of or as_datetime(None)):
            stock += movement.quantity
            value += movement.total_cost
        return Balance(stock=stock, value=value)

    def current_stock(self, product) -> Decimal:
        """Current signed stock of a product (database aggregate)."""
        product = self.resolve(product)
        return Movement.objects.for_product(product).active().aggregate(
            t=Coalesce(Sum('quantity'), Decimal('0'))
        )['t']

    def movement_report(self, date_from: date, date_to: date, product=None,
                        location=None) -> MovementReport:
        """
        Movements between two dates (inclusive) with totals per kind.

        Raises:
            InvalidDateRange: If date_to is before date_from
        """
        if date_to < date_from:
            raise InvalidDateRange(date_from=str(date_from), date_to=str(date_to))

        qs = Movement.objects.active().filter(
            occurred_at__date__gte=date_from,
            occurred_at__date__lte=date_to,
        )
        if product is not None:
            qs = qs.for_product(self.resolve(product))
        if location:
            qs = qs.filter(location=location)

        report = MovementReport(date_from=date_from, date_to=date_to)
        report.movements = list(qs.chronological())
        totals = (
            qs.order_by()
            .values('kind')
            .annotate(
                n=Count('id'),
                qty=Coalesce(Sum('quantity'), Decimal('0')),
                val=Coalesce(Sum('total_cost'), Decimal('0')),
            )
        )
        for row in totals:
            report.by_kind[row['kind']] = KindTotals(count=row['n'], quantity=row['qty'], value=row['val'])
        return report

    def deactivate(self, movement, reason='') -> None:
        """
        Exclude a record from balances without deleting it.

        Only the flag (and the reason in metadata) changes; the record stays
        in history. Batches are not touched: use StockMovements.deactivate()
        for batch-linked records, otherwise reconcile() reports the gap.

        Raises:
            LedgerError('MOVEMENT_INACTIVE'): If the record is already inactive
        """
        metadata = dict(movement.metadata or {})
        if reason:
            metadata['deactivation_reason'] = reason
        updated = Movement.objects.filter(pk=movement.pk, is_active=True).update(
            is_active=False,
            metadata=metadata,
        )
        if not updated:
            raise LedgerError('MOVEMENT_INACTIVE', movement=movement.number)
        movement.is_active = False
        movement.metadata = metadata
        logger.warning(
            "ledger.deactivate",
            extra={"movement": movement.number, "movement_id": movement.pk, "reason": reason},
        )

    def has_reversal(self, movement) -> bool:
        return Movement.objects.filter(
            Q(metadata__reverses=movement.pk), is_active=True,
        ).exists()
