"""
Tests for cost layers (no database).
"""

from decimal import Decimal

import pytest

from ledgerman.costing import AverageCosting, LayerBook, LayeredCosting, costing_for, q4, to_decimal
from ledgerman.models.enums import ConsumptionOrder, ValuationMethod


def _book():
    book = LayerBook()
    book.receive(Decimal('10'), Decimal('5'), ref=1)
    book.receive(Decimal('10'), Decimal('8'), ref=2)
    return book


class TestLayerBook:
    """Tests for LayerBook."""

    def test_oldest_first_issue(self):
        """10 @ 5 + 10 @ 8, issue 15 oldest first = 10×5 + 5×8."""
        book = _book()
        result = book.issue(Decimal('15'), ConsumptionOrder.OLDEST_FIRST)

        assert result.value == Decimal('90')
        assert result.shortfall == Decimal('0')
        assert [(layer.quantity, layer.unit_cost) for layer in book] == [(Decimal('5'), Decimal('8'))]

    def test_newest_first_issue(self):
        """Same input newest first = 10×8 + 5×5, leaves 5 @ 5."""
        book = _book()
        result = book.issue(Decimal('15'), ConsumptionOrder.NEWEST_FIRST)

        assert result.value == Decimal('105')
        assert [(layer.quantity, layer.unit_cost) for layer in book] == [(Decimal('5'), Decimal('5'))]

    def test_plan_does_not_mutate(self):
        book = _book()
        plan = book.plan(Decimal('15'), ConsumptionOrder.OLDEST_FIRST)

        assert [t.quantity for t in plan.takes] == [Decimal('10'), Decimal('5')]
        assert book.quantity == Decimal('20')

    def test_shortfall_costs_nothing(self):
        """Running dry reports the remainder as shortfall at zero value."""
        book = _book()
        result = book.issue(Decimal('25'), ConsumptionOrder.OLDEST_FIRST)

        assert result.value == Decimal('130')
        assert result.shortfall == Decimal('5')
        assert result.covered == Decimal('20')
        assert len(book) == 0

    def test_state_roundtrip_keeps_order(self):
        book = _book()
        book.issue(Decimal('4'), ConsumptionOrder.OLDEST_FIRST)
        restored = LayerBook.from_state(book.state())

        assert restored.quantity == Decimal('16')
        assert restored.value == book.value
        assert [layer.ref for layer in restored] == [1, 2]


class TestAverageCosting:
    """Tests for AverageCosting."""

    def test_average_after_inwards_and_issue(self):
        """Average 6.5 after both inwards; issue 15 consumes 97.5."""
        pool = AverageCosting()
        pool.receive(Decimal('10'), Decimal('5'))
        pool.receive(Decimal('10'), Decimal('8'))
        assert pool.average_cost == Decimal('6.5')

        result = pool.issue(Decimal('15'))

        assert result.value == Decimal('97.5')
        assert pool.stock == Decimal('5')
        assert pool.value == Decimal('32.5')
        assert pool.average_cost == Decimal('6.5')

    def test_empty_pool_issue_is_shortfall(self):
        pool = AverageCosting()
        result = pool.issue(Decimal('3'))

        assert result.value == Decimal('0')
        assert result.shortfall == Decimal('3')
        assert pool.stock == Decimal('-3')
        assert pool.average_cost == Decimal('0')

    def test_partial_shortfall(self):
        pool = AverageCosting()
        pool.receive(Decimal('2'), Decimal('10'))
        result = pool.issue(Decimal('5'))

        assert result.shortfall == Decimal('3')
        assert pool.stock == Decimal('-3')


class TestCostingFor:
    """Tests for costing_for() factory."""

    @pytest.mark.parametrize('method, expected', [
        (ValuationMethod.FIFO, ConsumptionOrder.OLDEST_FIRST),
        (ValuationMethod.LIFO, ConsumptionOrder.NEWEST_FIRST),
    ])
    def test_layer_methods(self, method, expected):
        costing = costing_for(method)
        assert isinstance(costing, LayeredCosting)
        assert costing.order == expected

    def test_average_method_from_opening(self):
        costing = costing_for('weighted_average', Decimal('4'), Decimal('20'))
        assert isinstance(costing, AverageCosting)
        assert costing.average_cost == Decimal('5')

    def test_average_pool_wins_over_rounded_opening(self):
        pool = AverageCosting(Decimal('3'), Decimal('4'))
        pool.issue(Decimal('1'))

        costing = costing_for('weighted_average', Decimal('2'), q4(pool.value), layers=pool.state())

        assert costing.value == pool.value
        assert q4(costing.issue(Decimal('1')).value) == Decimal('1.3333')

    def test_average_without_pool_uses_opening(self):
        costing = costing_for('weighted_average', Decimal('2'), Decimal('3'), layers=[])
        assert costing.value == Decimal('3')

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            costing_for('hifo')


class TestHelpers:

    def test_q4_rounds_half_up(self):
        assert q4(Decimal('1.00005')) == Decimal('1.0001')

    def test_to_decimal_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal('0.1')
