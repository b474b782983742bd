"""
Stock movements: state-changing workflows (append, receive, issue, adjust, reverse, deactivate).

All methods use transaction.atomic() so the ledger record and the batch
quantity change commit or fail together.
"""

import logging

from django.db import transaction
from django.utils import timezone

from ledgerman.costing import ZERO
from ledgerman.exceptions import InsufficientBatchStock, InvalidMovement, LedgerError
from ledgerman.models.batch import Batch
from ledgerman.models.enums import ConsumptionOrder, MovementKind
from ledgerman.models.movement import Movement
from ledgerman.services.base import ProductService, parse_amount
from ledgerman.services.batches import BatchTracker, positive_quantity
from ledgerman.services.ledger import Ledger, parse_kind

logger = logging.getLogger('ledgerman')


class StockMovements(ProductService):
    """State-changing stock movement methods."""

    def __init__(self, products=None, ledger=None, batches=None):
        super().__init__(products)
        self.ledger = ledger or Ledger(products)
        self.batches = batches or BatchTracker(products)

    def append_movement(self, product, kind, quantity, unit_cost=ZERO, occurred_at=None,
                        batch=None, location=None, reference=None, notes='', user=None,
                        metadata=None):
        """
        Append a movement, decrementing its batch for outward kinds.

        An inward movement may reference a batch only as that batch's own
        receipt: no earlier movements, same quantity.

        Raises:
            InvalidMovement: See Ledger.normalise()
            InsufficientBatchStock: Outward quantity exceeds the batch's remaining
            BatchNotFound: Referenced batch does not exist

        Concurrency:
            - Runs under transaction.atomic()
            - Batch row locked by BatchTracker.consume()
        """
        product = self.resolve(product)
        kind, signed, unit_cost = self.ledger.normalise(kind, quantity, unit_cost)

        with transaction.atomic():
            if batch is not None:
                batch = self.batches.get(getattr(batch, 'pk', batch))
                self.ledger.check_batch(product, batch)
                if kind.is_inward:
                    if batch.movements.exists() or signed != batch.initial_quantity:
                        raise InvalidMovement(
                            'BATCH_ALREADY_RECEIVED',
                            batch_id=batch.pk,
                            initial=batch.initial_quantity,
                            quantity=signed,
                        )
                else:
                    batch = self.batches.consume(batch, abs(signed))

            return self.ledger.append(
                product, kind, signed,
                unit_cost=unit_cost,
                occurred_at=occurred_at,
                batch=batch,
                location=location,
                reference=reference,
                notes=notes,
                user=user,
                metadata=metadata,
            )

    def receive(self, product, quantity, unit_cost=ZERO, kind=MovementKind.PURCHASE_RECEIPT,
                batch_number=None, occurred_at=None, manufactured_at=None, expires_at=None,
                supplier='', location=None, reference=None, notes='', user=None,
                metadata=None):
        """
        Stock entry.

        Registers a batch and appends its receipt. Returns the movement
        (movement.batch is the new batch).

        Raises:
            InvalidMovement('WRONG_DIRECTION'): kind is not inward
        """
        kind = parse_kind(kind)
        if not kind.is_inward:
            raise InvalidMovement('WRONG_DIRECTION', kind=kind.value)

        with transaction.atomic():
            batch = self.batches.register(
                product, quantity,
                unit_cost=unit_cost,
                batch_number=batch_number,
                received_at=occurred_at,
                manufactured_at=manufactured_at,
                expires_at=expires_at,
                location=location,
                supplier=supplier,
            )
            movement = self.ledger.append(
                product, kind, batch.initial_quantity,
                unit_cost=batch.unit_cost,
                occurred_at=batch.received_at,
                batch=batch,
                location=batch.location,
                reference=reference,
                notes=notes,
                user=user,
                metadata=metadata,
            )
            logger.info(
                "stock.receive",
                extra={
                    "movement": movement.number,
                    "batch_id": batch.pk,
                    "qty": str(batch.initial_quantity),
                },
            )
            return movement

    def issue(self, product, quantity, kind=MovementKind.SALES_ISSUE,
              order=ConsumptionOrder.OLDEST_FIRST, allow_shortfall=False,
              occurred_at=None, location=None, reference=None, notes='', user=None,
              metadata=None):
        """
        Stock exit drawn from batches.

        Appends one movement per batch at that batch's unit cost.

        Raises:
            InvalidMovement('WRONG_DIRECTION'): kind is not outward
            InsufficientBatchStock: active batches do not cover quantity
                (unless allow_shortfall, in which case a batch-less record
                carries the uncovered part and stock goes negative)

        Concurrency:
            - Runs under transaction.atomic()
            - Each batch locked and re-checked by BatchTracker.consume()
        """
        kind = parse_kind(kind)
        if not kind.is_outward:
            raise InvalidMovement('WRONG_DIRECTION', kind=kind.value)
        product = self.resolve(product)
        quantity = positive_quantity(quantity)

        with transaction.atomic():
            plan = self.batches.select_for_consumption(product, quantity, order)
            if plan.shortfall and not allow_shortfall:
                raise InsufficientBatchStock(
                    product=str(product),
                    remaining=plan.covered,
                    requested=quantity,
                )

            movements = []
            for selection in plan.selections:
                batch = self.batches.consume(selection.batch, selection.quantity)
                movements.append(self.ledger.append(
                    product, kind, selection.quantity,
                    unit_cost=batch.unit_cost,
                    occurred_at=occurred_at,
                    batch=batch,
                    location=location,
                    reference=reference,
                    notes=notes,
                    user=user,
                    metadata=metadata,
                ))

            if plan.shortfall:
                movements.append(self.ledger.append(
                    product, kind, plan.shortfall,
                    occurred_at=occurred_at,
                    location=location,
                    reference=reference,
                    notes=notes,
                    user=user,
                    metadata={**(metadata or {}), 'shortfall': True},
                ))
                logger.warning(
                    "stock.issue.shortfall",
                    extra={
                        "product": str(product),
                        "requested": str(quantity),
                        "shortfall": str(plan.shortfall),
                    },
                )

            logger.info(
                "stock.issue",
                extra={
                    "product": str(product),
                    "qty": str(quantity),
                    "batches": [s.batch.pk for s in plan.selections],
                },
            )
            return movements

    def adjust(self, product, counted_quantity, reason, unit_cost=None,
               occurred_at=None, user=None):
        """
        Inventory count correction.

        Calculates delta automatically: counted_quantity - current stock.
        A surplus is received as a new batch; a deficit is issued oldest
        first and may push stock negative.

        Raises:
            LedgerError('REASON_REQUIRED'): If reason is empty
        """
        if not reason:
            raise LedgerError('REASON_REQUIRED')
        product = self.resolve(product)
        metadata = {'reason': reason}

        with transaction.atomic():
            delta = parse_amount(counted_quantity) - self.ledger.current_stock(product)
            if delta == 0:
                return []

            if delta > 0:
                if unit_cost is None:
                    last = Batch.objects.for_product(product).order_by('-received_at', '-id').first()
                    unit_cost = last.unit_cost if last else ZERO
                movements = [self.receive(
                    product, delta,
                    unit_cost=unit_cost,
                    kind=MovementKind.ADJUSTMENT_POSITIVE,
                    occurred_at=occurred_at,
                    notes=f"Ajuste: {reason}",
                    user=user,
                    metadata=metadata,
                )]
            else:
                movements = self.issue(
                    product, -delta,
                    kind=MovementKind.ADJUSTMENT_NEGATIVE,
                    allow_shortfall=True,
                    occurred_at=occurred_at,
                    notes=f"Ajuste: {reason}",
                    user=user,
                    metadata=metadata,
                )

            logger.info(
                "stock.adjust",
                extra={
                    "product": str(product),
                    "delta": str(delta),
                    "reason": reason,
                },
            )
            return movements

    def _lock_movement(self, movement) -> Movement:
        movement_id = getattr(movement, 'pk', movement)
        try:
            return Movement.objects.select_for_update().get(pk=movement_id)
        except Movement.DoesNotExist:
            raise LedgerError('MOVEMENT_NOT_FOUND', movement_id=movement_id)

    def reverse(self, movement, reason, user=None):
        """
        Offset a movement with an adjustment in the opposite direction.

        The batch effect is reversed too: a reversed receipt consumes its
        batch, a reversed issue restores it.

        Raises:
            LedgerError('REASON_REQUIRED'): If reason is empty
            LedgerError('MOVEMENT_INACTIVE'): If the movement was deactivated
            LedgerError('ALREADY_REVERSED'): If an active reversal exists
            InsufficientBatchStock: Receipt's batch was already drawn down
        """
        if not reason:
            raise LedgerError('REASON_REQUIRED')

        with transaction.atomic():
            movement = self._lock_movement(movement)
            if not movement.is_active:
                raise LedgerError('MOVEMENT_INACTIVE', movement=movement.number)
            if self.ledger.has_reversal(movement):
                raise LedgerError('ALREADY_REVERSED', movement=movement.number)

            quantity = abs(movement.quantity)
            batch = movement.batch
            if movement.is_inward:
                kind = MovementKind.ADJUSTMENT_NEGATIVE
                if batch is not None:
                    batch = self.batches.consume(batch, quantity)
            else:
                kind = MovementKind.ADJUSTMENT_POSITIVE
                if batch is not None:
                    batch = self.batches.restore(batch, quantity)

            reversal = self.ledger.append(
                movement.product, kind, quantity,
                unit_cost=movement.unit_cost,
                occurred_at=timezone.now(),
                batch=batch,
                location=movement.location,
                notes=f"Estorno: {reason}",
                user=user,
                metadata={'reverses': movement.pk, 'reason': reason},
            )
            logger.info(
                "stock.reverse",
                extra={
                    "movement": movement.number,
                    "reversal": reversal.number,
                    "reason": reason,
                },
            )
            return reversal

    def deactivate(self, movement, reason):
        """
        Withdraw a wrongly entered record, undoing its batch effect.

        A deactivated receipt takes its quantity back out of the batch; a
        deactivated issue puts it back. Ledger and batches stay reconciled.

        Raises:
            LedgerError('REASON_REQUIRED'): If reason is empty
            LedgerError('MOVEMENT_INACTIVE'): If already deactivated
            LedgerError('ALREADY_REVERSED'): If an active reversal offsets it
            InsufficientBatchStock: Receipt's batch was already drawn down
        """
        if not reason:
            raise LedgerError('REASON_REQUIRED')

        with transaction.atomic():
            movement = self._lock_movement(movement)
            if not movement.is_active:
                raise LedgerError('MOVEMENT_INACTIVE', movement=movement.number)
            if self.ledger.has_reversal(movement):
                raise LedgerError('ALREADY_REVERSED', movement=movement.number)

            if movement.batch_id is not None:
                quantity = abs(movement.quantity)
                if movement.is_inward:
                    self.batches.consume(movement.batch_id, quantity)
                else:
                    self.batches.restore(movement.batch_id, quantity)

            self.ledger.deactivate(movement, reason=reason)
            return movement
