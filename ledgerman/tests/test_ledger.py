"""
Tests for the movement ledger.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledgerman.exceptions import InvalidDateRange, InvalidMovement, LedgerError, ProductNotFound
from ledgerman.models import Movement, MovementKind
from ledgerman.signals import movement_appended


pytestmark = pytest.mark.django_db


class TestAppend:
    """Tests for Ledger.append() through the facade."""

    def test_sales_issue_positive_input_stored_negative(self, inventory, product, day):
        inventory.append_movement(product, 'purchase_receipt', Decimal('10'), Decimal('5'), occurred_at=day)
        movement = inventory.append_movement(product, 'sales_issue', Decimal('4'), occurred_at=day)

        movement.refresh_from_db()
        assert movement.quantity == Decimal('-4')
        assert movement.kind == MovementKind.SALES_ISSUE
        assert movement.is_outward

    def test_total_cost_follows_quantity_sign(self, inventory, product, day):
        movement = inventory.append_movement(product, 'adjustment_negative', Decimal('3'),
                                             Decimal('2.5'), occurred_at=day)
        assert movement.total_cost == Decimal('-7.5')

    def test_inward_non_positive_rejected(self, inventory, product):
        with pytest.raises(InvalidMovement) as exc:
            inventory.append_movement(product, 'purchase_receipt', Decimal('-5'), Decimal('1'))
        assert exc.value.code == 'NON_POSITIVE_INWARD'

    def test_outward_zero_rejected(self, inventory, product):
        with pytest.raises(InvalidMovement) as exc:
            inventory.append_movement(product, 'scrap', Decimal('0'))
        assert exc.value.code == 'ZERO_QUANTITY'

    def test_unknown_kind_rejected(self, inventory, product):
        with pytest.raises(InvalidMovement) as exc:
            inventory.append_movement(product, 'teleport', Decimal('1'))
        assert exc.value.code == 'UNKNOWN_KIND'

    def test_negative_unit_cost_rejected(self, inventory, product):
        with pytest.raises(InvalidMovement) as exc:
            inventory.append_movement(product, 'purchase_receipt', Decimal('1'), Decimal('-1'))
        assert exc.value.code == 'NEGATIVE_UNIT_COST'

    def test_invalid_movement_is_ledger_error(self, inventory, product):
        with pytest.raises(LedgerError):
            inventory.append_movement(product, 'purchase_receipt', Decimal('0'))
        assert Movement.objects.count() == 0

    @pytest.mark.parametrize('quantity', ['NaN', 'Infinity', '-Infinity', 'abc', None])
    def test_non_numeric_quantity_rejected(self, inventory, product, quantity):
        with pytest.raises(InvalidMovement) as exc:
            inventory.append_movement(product, 'purchase_receipt', quantity, Decimal('1'))
        assert exc.value.code == 'INVALID_QUANTITY'
        assert Movement.objects.count() == 0

    def test_non_finite_unit_cost_rejected(self, inventory, product):
        with pytest.raises(InvalidMovement) as exc:
            inventory.append_movement(product, 'purchase_receipt', Decimal('1'), Decimal('NaN'))
        assert exc.value.code == 'INVALID_QUANTITY'

    def test_amounts_quantized_to_stored_precision(self, inventory, product):
        movement = inventory.append_movement(product, 'purchase_receipt', Decimal('1.00005'),
                                             Decimal('2.00004'))

        assert movement.quantity == Decimal('1.0001')
        assert movement.unit_cost == Decimal('2.0000')
        stored = Movement.objects.get(pk=movement.pk)
        assert (stored.quantity, stored.unit_cost, stored.total_cost) == (
            movement.quantity, movement.unit_cost, movement.total_cost,
        )

    def test_below_precision_is_zero(self, inventory, product):
        with pytest.raises(InvalidMovement) as exc:
            inventory.append_movement(product, 'purchase_receipt', Decimal('0.00001'))
        assert exc.value.code == 'NON_POSITIVE_INWARD'

    def test_product_string_reference(self, inventory, product):
        movement = inventory.append_movement(f'shop.product:{product.pk}', 'purchase_receipt', Decimal('2'))
        assert movement.object_id == product.pk

    def test_unknown_product_reference(self, inventory):
        with pytest.raises(ProductNotFound):
            inventory.append_movement('shop.product:999999', 'purchase_receipt', Decimal('2'))

    def test_signal_sent(self, inventory, product):
        received = []

        def listener(sender, movement, **kwargs):
            received.append(movement)

        movement_appended.connect(listener)
        try:
            movement = inventory.append_movement(product, 'opening_stock', Decimal('7'), Decimal('1'))
        finally:
            movement_appended.disconnect(listener)

        assert received == [movement]


class TestImmutability:
    """Movements are append-only."""

    def test_cannot_update(self, inventory, product):
        movement = inventory.append_movement(product, 'purchase_receipt', Decimal('1'))
        movement.quantity = Decimal('2')
        with pytest.raises(ValueError):
            movement.save()

    def test_cannot_delete(self, inventory, product):
        movement = inventory.append_movement(product, 'purchase_receipt', Decimal('1'))
        with pytest.raises(ValueError):
            movement.delete()

    def test_deactivate_excludes_from_balances(self, inventory, product):
        inventory.append_movement(product, 'purchase_receipt', Decimal('10'))
        wrong = inventory.append_movement(product, 'purchase_receipt', Decimal('5'))

        inventory.ledger.deactivate(wrong)

        assert inventory.current_stock(product) == Decimal('10')
        assert Movement.objects.count() == 2

    def test_deactivate_twice_rejected(self, inventory, product):
        movement = inventory.append_movement(product, 'purchase_receipt', Decimal('5'))
        inventory.ledger.deactivate(movement, reason='Duplicado')

        with pytest.raises(LedgerError) as exc:
            inventory.ledger.deactivate(movement)
        assert exc.value.code == 'MOVEMENT_INACTIVE'
        movement.refresh_from_db()
        assert movement.metadata['deactivation_reason'] == 'Duplicado'

    def test_ledger_deactivate_leaves_batches_alone(self, inventory, product):
        """A bare ledger deactivation of a batch-linked record shows up in reconcile()."""
        inventory.receive(product, Decimal('10'), Decimal('5'))
        [issued] = inventory.issue(product, Decimal('4'))

        inventory.ledger.deactivate(issued)

        result = inventory.reconcile(product)
        assert inventory.current_stock(product) == Decimal('10')
        assert result.batch_quantity == Decimal('6')
        assert result.difference == Decimal('4')


class TestRecordsUpTo:
    """Tests for Ledger.records_up_to()."""

    def test_ordered_by_occurred_at_then_sequence(self, inventory, product, day):
        later = inventory.append_movement(product, 'purchase_receipt', Decimal('1'),
                                          occurred_at=day + timedelta(hours=1))
        first = inventory.append_movement(product, 'purchase_receipt', Decimal('2'), occurred_at=day)
        second = inventory.append_movement(product, 'purchase_receipt', Decimal('3'), occurred_at=day)

        records = list(inventory.records_up_to(product, day.date()))

        assert records == [first, second, later]
        assert first.sequence < second.sequence

    def test_date_includes_whole_day(self, inventory, product, day):
        inventory.append_movement(product, 'purchase_receipt', Decimal('1'), occurred_at=day)
        inventory.append_movement(product, 'purchase_receipt', Decimal('1'),
                                  occurred_at=day + timedelta(hours=10))
        inventory.append_movement(product, 'purchase_receipt', Decimal('1'),
                                  occurred_at=day + timedelta(days=1))

        assert inventory.records_up_to(product, day.date()).count() == 2
        assert inventory.records_up_to(product, day).count() == 1

    def test_since_is_exclusive(self, inventory, product, day):
        inventory.append_movement(product, 'purchase_receipt', Decimal('1'), occurred_at=day)
        inventory.append_movement(product, 'purchase_receipt', Decimal('1'),
                                  occurred_at=day + timedelta(days=1))

        qs = inventory.records_up_to(product, day.date() + timedelta(days=1), since=day.date())
        assert qs.count() == 1

    def test_restartable(self, inventory, product, day):
        inventory.append_movement(product, 'purchase_receipt', Decimal('1'), occurred_at=day)
        qs = inventory.records_up_to(product, day.date())

        assert len(list(qs)) == len(list(qs)) == 1


class TestBalances:

    def test_running_balance(self, inventory, reference_ledger, day):
        balance = inventory.running_balance(reference_ledger, day.date())

        assert balance.stock == Decimal('5')
        # the outward record was appended without a cost
        assert balance.value == Decimal('130')

    def test_current_stock_aggregate(self, inventory, reference_ledger):
        assert inventory.current_stock(reference_ledger) == Decimal('5')

    def test_current_stock_per_product(self, inventory, reference_ledger, other_product):
        assert inventory.current_stock(other_product) == Decimal('0')


class TestMovementReport:

    def test_totals_by_kind(self, inventory, reference_ledger, day):
        report = inventory.movement_report(day.date(), day.date())

        assert len(report.movements) == 3
        assert report.by_kind['purchase_receipt'].count == 2
        assert report.by_kind['purchase_receipt'].quantity == Decimal('20')
        assert report.inward_quantity == Decimal('20')
        assert report.outward_quantity == Decimal('15')

    def test_location_filter(self, inventory, product, day):
        inventory.append_movement(product, 'purchase_receipt', Decimal('1'), occurred_at=day, location='loja')
        inventory.append_movement(product, 'purchase_receipt', Decimal('1'), occurred_at=day)

        report = inventory.movement_report(day.date(), day.date(), location='loja')
        assert len(report.movements) == 1

    def test_reversed_range_rejected(self, inventory):
        with pytest.raises(InvalidDateRange):
            inventory.movement_report(date(2026, 3, 2), date(2026, 3, 1))
