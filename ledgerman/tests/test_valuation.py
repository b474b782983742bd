"""
Tests for the valuation engine.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.forms.models import model_to_dict

from ledgerman.exceptions import InvalidDateRange, LedgerError, NegativeStockEncountered
from ledgerman.models import StockValuation, ValuationMethod
from ledgerman.signals import negative_stock_encountered


pytestmark = pytest.mark.django_db


class TestReferenceScenario:
    """10 @ 5, 10 @ 8, outward 15."""

    def test_fifo(self, inventory, reference_ledger, day):
        snapshot = inventory.compute_valuation(reference_ledger, day.date(), 'fifo')

        assert snapshot.outward_value == Decimal('90')
        assert snapshot.closing_stock == Decimal('5')
        assert snapshot.closing_value == Decimal('40')
        assert snapshot.layers == [{'quantity': '5.0000', 'unit_cost': '8.0000', 'ref': snapshot.layers[0]['ref']}]

    def test_lifo(self, inventory, reference_ledger, day):
        snapshot = inventory.compute_valuation(reference_ledger, day.date(), 'lifo')

        assert snapshot.outward_value == Decimal('105')
        assert snapshot.closing_value == Decimal('25')
        assert [layer['unit_cost'] for layer in snapshot.layers] == ['5.0000']

    def test_weighted_average(self, inventory, reference_ledger, day):
        snapshot = inventory.compute_valuation(reference_ledger, day.date(), 'weighted_average')

        assert snapshot.outward_value == Decimal('97.5')
        assert snapshot.closing_stock == Decimal('5')
        assert snapshot.closing_value == Decimal('32.5')
        assert snapshot.average_cost == Decimal('6.5')
        assert len(snapshot.layers) == 1
        assert Decimal(snapshot.layers[0]['value']) == Decimal('32.5')

    def test_period_totals(self, inventory, reference_ledger, day):
        snapshot = inventory.compute_valuation(reference_ledger, day.date(), 'fifo')

        assert snapshot.period_start == day.date()
        assert snapshot.opening_stock == Decimal('0')
        assert snapshot.inward_quantity == Decimal('20')
        assert snapshot.inward_value == Decimal('130')
        assert snapshot.outward_quantity == Decimal('15')
        assert not snapshot.negative_stock_encountered

    @pytest.mark.parametrize('method', list(ValuationMethod))
    def test_stock_conservation(self, inventory, reference_ledger, day, method):
        snapshot = inventory.compute_valuation(reference_ledger, day.date(), method)

        assert snapshot.closing_stock == (
            snapshot.opening_stock + snapshot.inward_quantity - snapshot.outward_quantity
        )
        assert snapshot.closing_value == (
            snapshot.opening_value + snapshot.inward_value - snapshot.outward_value
        )


class TestOrdering:

    def test_same_timestamp_uses_insertion_order(self, inventory, product, day):
        """Equal occurred_at: the outward draws from the layer inserted first."""
        inventory.append_movement(product, 'purchase_receipt', Decimal('10'), Decimal('5'), occurred_at=day)
        inventory.append_movement(product, 'purchase_receipt', Decimal('10'), Decimal('8'), occurred_at=day)
        inventory.append_movement(product, 'sales_issue', Decimal('10'), occurred_at=day)

        fifo = inventory.compute_valuation(product, day.date(), 'fifo')
        lifo = inventory.compute_valuation(product, day.date(), 'lifo')

        assert fifo.outward_value == Decimal('50')
        assert lifo.outward_value == Decimal('80')

    def test_earlier_days_form_opening(self, inventory, product, day):
        inventory.append_movement(product, 'purchase_receipt', Decimal('10'), Decimal('5'), occurred_at=day)
        next_day = day + timedelta(days=1)
        inventory.append_movement(product, 'purchase_receipt', Decimal('10'), Decimal('8'), occurred_at=next_day)
        inventory.append_movement(product, 'sales_issue', Decimal('15'), occurred_at=next_day)

        snapshot = inventory.compute_valuation(product, next_day.date(), 'fifo')

        assert snapshot.opening_stock == Decimal('10')
        assert snapshot.opening_value == Decimal('50')
        assert snapshot.inward_quantity == Decimal('10')
        assert snapshot.closing_value == Decimal('40')

    def test_later_records_ignored(self, inventory, reference_ledger, day):
        inventory.append_movement(reference_ledger, 'purchase_receipt', Decimal('100'), Decimal('1'),
                                  occurred_at=day + timedelta(days=3))

        snapshot = inventory.compute_valuation(reference_ledger, day.date(), 'fifo')
        assert snapshot.closing_stock == Decimal('5')


class TestIdempotence:

    def test_recompute_is_identical_and_upserts(self, inventory, reference_ledger, day):
        first = inventory.compute_valuation(reference_ledger, day.date(), 'fifo')
        first.refresh_from_db()
        second = inventory.compute_valuation(reference_ledger, day.date(), 'fifo')
        second.refresh_from_db()

        assert StockValuation.objects.count() == 1
        assert model_to_dict(first) == model_to_dict(second)

    def test_one_row_per_method(self, inventory, reference_ledger, day):
        snapshots = inventory.compare_valuations(reference_ledger, day.date(), ['fifo', 'lifo'])

        assert [s.method for s in snapshots] == ['fifo', 'lifo']
        assert StockValuation.objects.count() == 2

    def test_compare_defaults_to_all_methods(self, inventory, reference_ledger, day):
        snapshots = inventory.compare_valuations(reference_ledger, day.date())
        assert sorted(s.method for s in snapshots) == sorted(ValuationMethod.values)


class TestOpening:

    def _ledger(self, inventory, product, day):
        inventory.append_movement(product, 'purchase_receipt', Decimal('10'), Decimal('5'), occurred_at=day)
        inventory.append_movement(product, 'purchase_receipt', Decimal('10'), Decimal('8'),
                                  occurred_at=day + timedelta(days=1))
        inventory.append_movement(product, 'sales_issue', Decimal('15'), occurred_at=day + timedelta(days=1))

    @pytest.mark.parametrize('method', list(ValuationMethod))
    def test_chained_matches_full_scan(self, inventory, product, day, method):
        self._ledger(inventory, product, day)
        opening = inventory.compute_valuation(product, day.date(), method)
        full = inventory.compute_valuation(product, day.date() + timedelta(days=1), method)
        full_values = (full.closing_stock, full.closing_value, full.average_cost)

        chained = inventory.compute_valuation(product, day.date() + timedelta(days=1), method,
                                              opening=opening)

        assert (chained.closing_stock, chained.closing_value, chained.average_cost) == full_values
        assert chained.opening_stock == Decimal('10')
        assert chained.period_start == day.date() + timedelta(days=1)

    def test_chained_average_keeps_full_precision(self, inventory, product, day):
        for cost in ('1', '1', '2'):
            inventory.append_movement(product, 'purchase_receipt', Decimal('1'), Decimal(cost), occurred_at=day)
        inventory.append_movement(product, 'sales_issue', Decimal('1'), occurred_at=day)
        inventory.append_movement(product, 'sales_issue', Decimal('1'), occurred_at=day + timedelta(days=1))
        next_day = day.date() + timedelta(days=1)

        opening = inventory.compute_valuation(product, day.date(), 'weighted_average')
        full = inventory.compute_valuation(product, next_day, 'weighted_average')
        full_value = full.closing_value
        chained = inventory.compute_valuation(product, next_day, 'weighted_average', opening=opening)

        assert opening.closing_value == Decimal('2.6667')
        assert full_value == Decimal('1.3333')
        assert chained.closing_value == full_value

    def test_chain_uses_previous_snapshot(self, inventory, product, day):
        self._ledger(inventory, product, day)
        inventory.compute_valuation(product, day.date(), 'fifo')

        snapshot = inventory.compute_valuation(product, day.date() + timedelta(days=1), 'fifo', chain=True)

        assert snapshot.opening_value == Decimal('50')
        assert snapshot.closing_value == Decimal('40')

    def test_opening_must_be_earlier(self, inventory, reference_ledger, day):
        opening = inventory.compute_valuation(reference_ledger, day.date(), 'fifo')

        with pytest.raises(InvalidDateRange):
            inventory.compute_valuation(reference_ledger, day.date(), 'fifo', opening=opening)

    def test_opening_method_mismatch(self, inventory, reference_ledger, day):
        opening = inventory.compute_valuation(reference_ledger, day.date(), 'fifo')

        with pytest.raises(LedgerError) as exc:
            inventory.compute_valuation(reference_ledger, day.date() + timedelta(days=1), 'lifo',
                                        opening=opening)
        assert exc.value.code == 'OPENING_MISMATCH'


class TestNegativeStock:

    def test_flagged_not_raised(self, inventory, product, day):
        inventory.append_movement(product, 'purchase_receipt', Decimal('5'), Decimal('2'), occurred_at=day)
        inventory.append_movement(product, 'sales_issue', Decimal('8'), occurred_at=day)

        snapshot = inventory.compute_valuation(product, day.date(), 'fifo')

        assert snapshot.negative_stock_encountered
        assert snapshot.unmatched_quantity == Decimal('3')
        assert snapshot.closing_stock == Decimal('-3')
        assert snapshot.closing_value == Decimal('0')
        assert snapshot.average_cost == Decimal('0')

    def test_strict_raises_after_persisting(self, inventory, product, day):
        inventory.append_movement(product, 'sales_issue', Decimal('1'), occurred_at=day)
        received = []

        def listener(sender, snapshot, **kwargs):
            received.append(snapshot)

        negative_stock_encountered.connect(listener)
        try:
            with pytest.raises(NegativeStockEncountered) as exc:
                inventory.compute_valuation(product, day.date(), 'weighted_average', strict=True)
        finally:
            negative_stock_encountered.disconnect(listener)

        assert exc.value.snapshot.pk is not None
        assert StockValuation.objects.filter(negative_stock_encountered=True).count() == 1
        assert received == [exc.value.snapshot]


class TestTraceAndReport:

    def test_trace_running_figures(self, inventory, reference_ledger, day):
        steps = list(inventory.valuation.trace(reference_ledger, day.date(), 'weighted_average'))

        assert [s.running_stock for s in steps] == [Decimal('10'), Decimal('20'), Decimal('5')]
        assert steps[1].average_cost == Decimal('6.5')
        assert steps[2].value == Decimal('-97.5')

    def test_report_covers_all_products(self, inventory, reference_ledger, other_product, day):
        report = inventory.valuation_report(day.date(), 'fifo')

        assert len(report.snapshots) == 2
        assert report.total_value == Decimal('40')

    def test_unknown_method(self, inventory, reference_ledger, day):
        with pytest.raises(LedgerError) as exc:
            inventory.compute_valuation(reference_ledger, day.date(), 'hifo')
        assert exc.value.code == 'INVALID_METHOD'


class TestRangeReport:

    def test_stored_snapshots_in_range(self, inventory, reference_ledger, other_product, day):
        first, second = day.date(), day.date() + timedelta(days=1)
        inventory.valuation_report(first, 'fifo')
        inventory.valuation_report(second, 'fifo')
        inventory.compute_valuation(reference_ledger, second, 'lifo')
        inventory.compute_valuation(reference_ledger, second + timedelta(days=1), 'fifo')

        report = inventory.valuation_range_report(first, second, 'fifo')

        assert len(report.snapshots) == 4
        assert [s.valuation_date for s in report.snapshots] == [second, second, first, first]
        assert report.total_by_date == {second: Decimal('40'), first: Decimal('40')}
        assert report.flagged == []

    def test_product_filter(self, inventory, reference_ledger, other_product, day):
        inventory.valuation_report(day.date(), 'fifo')

        report = inventory.valuation_range_report(day.date(), day.date(), 'fifo', product=other_product)

        [snapshot] = report.snapshots
        assert snapshot.object_id == other_product.pk

    def test_nothing_computed(self, inventory, reference_ledger, day):
        report = inventory.valuation_range_report(day.date(), day.date())

        assert report.snapshots == []
        assert StockValuation.objects.count() == 0

    def test_reversed_range(self, inventory, db, day):
        with pytest.raises(InvalidDateRange):
            inventory.valuation_range_report(day.date(), day.date() - timedelta(days=1))

    def test_unknown_method(self, inventory, db, day):
        with pytest.raises(LedgerError) as exc:
            inventory.valuation_range_report(day.date(), day.date(), 'hifo')
        assert exc.value.code == 'INVALID_METHOD'
