"""
Batch tracker: received lots, consumable layers and their quantities.

Usage:
    tracker = BatchTracker()
    plan = tracker.select_for_consumption(product, Decimal('15'), 'oldest_first')
    for selection in plan.selections:
        tracker.consume(selection.batch, selection.quantity)
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from django.contrib.contenttypes.models import ContentType
from django.db import transaction
from django.db.models import Count, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from ledgerman.conf import ledgerman_settings
from ledgerman.costing import ZERO, CostLayer, LayerBook, q4
from ledgerman.exceptions import (
    BatchNotFound,
    InsufficientBatchStock,
    InvalidDateRange,
    InvalidMovement,
    LedgerError,
)
from ledgerman.models.batch import Batch
from ledgerman.models.enums import BatchStatus, ConsumptionOrder, QualityStatus
from ledgerman.models.movement import Movement
from ledgerman.services.base import ProductService, as_datetime, parse_amount

logger = logging.getLogger('ledgerman')

MANUAL_TRANSITIONS = frozenset({
    BatchStatus.EXPIRED,
    BatchStatus.DAMAGED,
    BatchStatus.RETURNED,
})


@dataclass(frozen=True)
class LayerSelection:
    """Quantity to take from one batch."""

    batch: Batch
    quantity: Decimal


@dataclass(frozen=True)
class ConsumptionPlan:
    """Batches covering a requested quantity; shortfall is what none could cover."""

    required: Decimal
    selections: list[LayerSelection] = field(default_factory=list)
    shortfall: Decimal = ZERO

    @property
    def covered(self) -> Decimal:
        return self.required - self.shortfall


@dataclass(frozen=True)
class Reconciliation:
    """Batch-linked ledger quantity against batch remaining quantity."""

    ledger_quantity: Decimal
    batch_quantity: Decimal

    @property
    def difference(self) -> Decimal:
        return self.ledger_quantity - self.batch_quantity

    @property
    def is_consistent(self) -> bool:
        return self.difference == 0


@dataclass
class BatchStats:
    """Batch counts per status and expiry exposure."""

    by_status: dict[str, int] = field(default_factory=dict)
    remaining_by_status: dict[str, Decimal] = field(default_factory=dict)
    expired: int = 0
    expiring_soon: int = 0
    expiring_quantity: Decimal = ZERO

    @property
    def total(self) -> int:
        return sum(self.by_status.values())


def _batch_pk(batch):
    return getattr(batch, 'pk', batch)


def positive_quantity(quantity) -> Decimal:
    quantity = parse_amount(quantity)
    if quantity <= 0:
        raise InvalidMovement('INVALID_QUANTITY', quantity=quantity)
    return quantity


class BatchTracker(ProductService):
    """Batch registration, selection and quantity changes."""

    def register(self, product, quantity, unit_cost=ZERO, batch_number=None,
                 received_at=None, manufactured_at=None, expires_at=None,
                 location=None, supplier='', quality_status=QualityStatus.PENDING,
                 notes='') -> Batch:
        """
        Create a batch with remaining == initial quantity.

        Raises:
            InvalidMovement: non-positive quantity or negative unit cost
            InvalidDateRange: expires_at not after manufactured_at
            LedgerError('DUPLICATE_BATCH'): batch number already used for the product
        """
        product = self.resolve(product)
        quantity = positive_quantity(quantity)
        unit_cost = parse_amount(unit_cost or ZERO, field='unit_cost')
        if unit_cost < 0:
            raise InvalidMovement('NEGATIVE_UNIT_COST', unit_cost=unit_cost)
        if manufactured_at and expires_at and expires_at <= manufactured_at:
            raise InvalidDateRange(
                manufactured_at=str(manufactured_at),
                expires_at=str(expires_at),
            )

        received_at = as_datetime(received_at)
        if not batch_number:
            batch_number = f"LOT-{timezone.localtime(received_at):%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"

        ct = ContentType.objects.get_for_model(product)
        if Batch.objects.filter(content_type=ct, object_id=product.pk, batch_number=batch_number).exists():
            raise LedgerError('DUPLICATE_BATCH', batch_number=batch_number)

        batch = Batch.objects.create(
            content_type=ct,
            object_id=product.pk,
            batch_number=batch_number,
            initial_quantity=quantity,
            remaining_quantity=quantity,
            unit_cost=unit_cost,
            total_cost=q4(quantity * unit_cost),
            received_at=received_at,
            manufactured_at=manufactured_at,
            expires_at=expires_at,
            location=location or ledgerman_settings.DEFAULT_LOCATION,
            supplier=supplier,
            quality_status=quality_status,
            notes=notes,
        )
        logger.info(
            "batch.register",
            extra={
                "batch_id": batch.pk,
                "batch_number": batch_number,
                "product": str(product),
                "qty": str(quantity),
            },
        )
        return batch

    def get(self, batch_id) -> Batch:
        try:
            return Batch.objects.get(pk=batch_id)
        except (Batch.DoesNotExist, ValueError):
            raise BatchNotFound(batch_id=batch_id)

    def active_layers(self, product, today=None):
        """
        Consumable batches in received order (oldest first).

        Active status, remaining > 0 and not past expiry.
        """
        product = self.resolve(product)
        return Batch.objects.for_product(product).consumable(today).chronological()

    def select_for_consumption(self, product, required, order=ConsumptionOrder.OLDEST_FIRST,
                               today=None) -> ConsumptionPlan:
        """
        Pick batches to cover ``required`` without changing anything.

        oldest_first walks active layers from the front, newest_first from
        the back. Whatever the layers cannot cover is the plan's shortfall.
        """
        required = positive_quantity(required)
        try:
            order = ConsumptionOrder(order)
        except ValueError:
            raise LedgerError('INVALID_ORDER', order=str(order))

        book = LayerBook(
            CostLayer(quantity=b.remaining_quantity, unit_cost=b.unit_cost, ref=b)
            for b in self.active_layers(product, today)
        )
        consumption = book.plan(required, order)
        return ConsumptionPlan(
            required=required,
            selections=[LayerSelection(batch=t.layer.ref, quantity=t.quantity) for t in consumption.takes],
            shortfall=consumption.shortfall,
        )

    def consume(self, batch, quantity) -> Batch:
        """
        Take quantity out of a batch.

        Raises:
            InsufficientBatchStock: quantity > remaining (batch left unchanged)
            BatchNotFound: batch does not exist

        Concurrency:
            - Runs under transaction.atomic()
            - Uses select_for_update() on the batch row
        """
        quantity = positive_quantity(quantity)

        with transaction.atomic():
            try:
                locked = Batch.objects.select_for_update().get(pk=_batch_pk(batch))
            except Batch.DoesNotExist:
                raise BatchNotFound(batch_id=_batch_pk(batch))

            if quantity > locked.remaining_quantity:
                raise InsufficientBatchStock(
                    batch_id=locked.pk,
                    batch_number=locked.batch_number,
                    remaining=locked.remaining_quantity,
                    requested=quantity,
                )

            locked.remaining_quantity -= quantity
            if locked.remaining_quantity == 0:
                locked.status = BatchStatus.CONSUMED
            locked.save(update_fields=['remaining_quantity', 'status', 'updated_at'])

            logger.info(
                "batch.consume",
                extra={
                    "batch_id": locked.pk,
                    "qty": str(quantity),
                    "remaining": str(locked.remaining_quantity),
                    "status": locked.status,
                },
            )
            return locked

    def restore(self, batch, quantity) -> Batch:
        """
        Put quantity back into a batch (movement reversal only).

        A consumed batch becomes active again.
        """
        quantity = positive_quantity(quantity)

        with transaction.atomic():
            try:
                locked = Batch.objects.select_for_update().get(pk=_batch_pk(batch))
            except Batch.DoesNotExist:
                raise BatchNotFound(batch_id=_batch_pk(batch))

            if locked.remaining_quantity + quantity > locked.initial_quantity:
                raise InvalidMovement(
                    'INVALID_QUANTITY',
                    batch_id=locked.pk,
                    remaining=locked.remaining_quantity,
                    initial=locked.initial_quantity,
                    requested=quantity,
                )

            locked.remaining_quantity += quantity
            if locked.status == BatchStatus.CONSUMED:
                locked.status = BatchStatus.ACTIVE
            locked.save(update_fields=['remaining_quantity', 'status', 'updated_at'])
            logger.info(
                "batch.restore",
                extra={"batch_id": locked.pk, "qty": str(quantity)},
            )
            return locked

    def transition(self, batch, status) -> Batch:
        """
        Move an active batch to expired, damaged or returned.

        Raises:
            LedgerError('INVALID_STATUS'): unknown target, or batch not active
        """
        try:
            status = BatchStatus(status)
        except ValueError:
            raise LedgerError('INVALID_STATUS', requested=str(status))
        if status not in MANUAL_TRANSITIONS:
            raise LedgerError('INVALID_STATUS', requested=status.value)

        with transaction.atomic():
            try:
                locked = Batch.objects.select_for_update().get(pk=_batch_pk(batch))
            except Batch.DoesNotExist:
                raise BatchNotFound(batch_id=_batch_pk(batch))

            if locked.status != BatchStatus.ACTIVE:
                raise LedgerError('INVALID_STATUS', current=locked.status, requested=status.value)

            locked.status = status
            locked.save(update_fields=['status', 'updated_at'])
            logger.info(
                "batch.transition",
                extra={"batch_id": locked.pk, "status": status.value},
            )
            return locked

    def expire_overdue(self, today=None) -> int:
        """Mark active batches past their expiry date as expired. Returns count."""
        today = today or timezone.localdate()
        count = Batch.objects.overdue(today).update(
            status=BatchStatus.EXPIRED,
            updated_at=timezone.now(),
        )
        if count:
            logger.info("batch.expire", extra={"count": count, "today": str(today)})
        return count

    def expiring_within(self, days=None, product=None, today=None):
        """Active batches with stock expiring in [today, today + days]."""
        today = today or timezone.localdate()
        days = ledgerman_settings.EXPIRY_HORIZON_DAYS if days is None else days
        qs = Batch.objects.filter(status=BatchStatus.ACTIVE).with_stock()
        if product is not None:
            qs = qs.for_product(self.resolve(product))
        return qs.expiring_between(today, today + timedelta(days=days)).order_by('expires_at', 'id')

    def reconcile(self, product) -> Reconciliation:
        """
        Compare batch-linked ledger quantity with the batches' remaining total.

        Both only move together through the movement workflows, so any
        difference points at a direct write. Divergence is logged.
        """
        product = self.resolve(product)
        ledger_quantity = Movement.objects.for_product(product).active().filter(
            batch__isnull=False,
        ).aggregate(t=Coalesce(Sum('quantity'), Decimal('0')))['t']
        batch_quantity = Batch.objects.for_product(product).aggregate(
            t=Coalesce(Sum('remaining_quantity'), Decimal('0'))
        )['t']

        result = Reconciliation(ledger_quantity=ledger_quantity, batch_quantity=batch_quantity)
        if not result.is_consistent:
            logger.warning(
                "batch.reconcile.divergence",
                extra={
                    "product": str(product),
                    "ledger_qty": str(ledger_quantity),
                    "batch_qty": str(batch_quantity),
                },
            )
        return result

    def stats(self, product=None, today=None) -> BatchStats:
        """
        Batch counts and remaining quantities per status, plus expiry totals.

        ``expired`` counts active batches already past expiry (not yet
        persisted by expire_overdue); ``expiring_soon`` counts active batches
        with stock inside the expiry horizon.
        """
        today = today or timezone.localdate()
        qs = Batch.objects.all()
        if product is not None:
            qs = qs.for_product(self.resolve(product))

        stats = BatchStats()
        rows = qs.order_by().values('status').annotate(
            n=Count('id'),
            remaining=Coalesce(Sum('remaining_quantity'), Decimal('0')),
        )
        for row in rows:
            stats.by_status[row['status']] = row['n']
            stats.remaining_by_status[row['status']] = row['remaining']

        stats.expired = qs.overdue(today).count()
        expiring = self.expiring_within(product=product, today=today)
        stats.expiring_soon = expiring.count()
        stats.expiring_quantity = expiring.aggregate(
            t=Coalesce(Sum('remaining_quantity'), Decimal('0'))
        )['t']
        return stats
