"""
Cost layers: isolated, testable, reusable.

The same layer abstraction backs two questions:
- Valuation: "what did this outward movement cost?" (FIFO/LIFO/average)
- Batch selection: "which batches cover this quantity?" (oldest/newest first)

Both walk a chronological list of layers from one end, greedily taking
min(layer.quantity, still_needed). Keeping one implementation guarantees the
ledger-computed and batch-tracked consumption agree on order and math.

Examples:
    book = LayerBook()
    book.receive(Decimal('10'), Decimal('5'))
    book.receive(Decimal('10'), Decimal('8'))
    book.issue(Decimal('15'), ConsumptionOrder.OLDEST_FIRST).value   # 90
"""

from collections import deque
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ledgerman.models.enums import ConsumptionOrder, ValuationMethod

ZERO = Decimal('0')
FOUR_PLACES = Decimal('0.0001')


def q4(value: Decimal) -> Decimal:
    """Quantize to the 4 decimal places used by every stored quantity/value."""
    return Decimal(value).quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    """Accept int/str/float/Decimal; floats go through str to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass
class CostLayer:
    """A quantity still on hand at a given unit cost."""

    quantity: Decimal
    unit_cost: Decimal
    ref: Any = None

    @property
    def value(self) -> Decimal:
        return self.quantity * self.unit_cost


@dataclass(frozen=True)
class Take:
    """Quantity taken from one layer."""

    layer: CostLayer
    quantity: Decimal

    @property
    def value(self) -> Decimal:
        return self.quantity * self.layer.unit_cost


@dataclass
class Consumption:
    """Outcome of an issue against a costing strategy."""

    requested: Decimal
    takes: list[Take] = field(default_factory=list)
    value: Decimal = ZERO
    shortfall: Decimal = ZERO

    @property
    def covered(self) -> Decimal:
        return self.requested - self.shortfall


class LayerBook:
    """
    Chronological cost layers (oldest at the front).

    FIFO consumes from the front, LIFO from the back. Storage order never
    changes; the order is chosen per call.
    """

    def __init__(self, layers=()):
        self._layers: deque[CostLayer] = deque(layers)

    def __iter__(self):
        return iter(self._layers)

    def __len__(self) -> int:
        return len(self._layers)

    @property
    def quantity(self) -> Decimal:
        return sum((layer.quantity for layer in self._layers), ZERO)

    @property
    def value(self) -> Decimal:
        return sum((layer.value for layer in self._layers), ZERO)

    def receive(self, quantity: Decimal, unit_cost: Decimal, ref=None) -> CostLayer:
        layer = CostLayer(quantity=quantity, unit_cost=unit_cost, ref=ref)
        self._layers.append(layer)
        return layer

    def _ordered(self, order: ConsumptionOrder):
        if order == ConsumptionOrder.NEWEST_FIRST:
            return reversed(self._layers)
        return iter(self._layers)

    def plan(self, quantity: Decimal, order: ConsumptionOrder) -> Consumption:
        """Greedy walk without touching the layers."""
        result = Consumption(requested=quantity)
        needed = quantity
        for layer in self._ordered(order):
            if needed <= 0:
                break
            if layer.quantity <= 0:
                continue
            taken = min(layer.quantity, needed)
            take = Take(layer=layer, quantity=taken)
            result.takes.append(take)
            result.value += take.value
            needed -= taken
        result.shortfall = max(needed, ZERO)
        return result

    def issue(self, quantity: Decimal, order: ConsumptionOrder) -> Consumption:
        """
        Consume layers in the given order, popping exhausted ones.

        If the book runs dry the remainder is reported as shortfall and costs
        nothing; callers must surface it.
        """
        result = self.plan(quantity, order)
        for take in result.takes:
            take.layer.quantity -= take.quantity
        self._layers = deque(layer for layer in self._layers if layer.quantity > 0)
        return result

    def state(self) -> list[dict[str, str]]:
        """JSON-friendly remaining layers (for snapshots)."""
        return [
            {
                'quantity': str(q4(layer.quantity)),
                'unit_cost': str(q4(layer.unit_cost)),
                'ref': layer.ref if isinstance(layer.ref, (int, str)) or layer.ref is None else str(layer.ref),
            }
            for layer in self._layers
        ]

    @classmethod
    def from_state(cls, state) -> 'LayerBook':
        return cls(
            CostLayer(
                quantity=Decimal(item['quantity']),
                unit_cost=Decimal(item['unit_cost']),
                ref=item.get('ref'),
            )
            for item in state or []
        )


class LayeredCosting:
    """FIFO/LIFO strategy: a layer book plus a fixed consumption order."""

    def __init__(self, order: ConsumptionOrder, book: LayerBook | None = None):
        self.order = order
        self.book = book or LayerBook()

    @property
    def value(self) -> Decimal:
        return self.book.value

    def receive(self, quantity: Decimal, unit_cost: Decimal, ref=None) -> None:
        self.book.receive(quantity, unit_cost, ref=ref)

    def issue(self, quantity: Decimal) -> Consumption:
        return self.book.issue(quantity, self.order)

    def state(self) -> list[dict[str, str]]:
        return self.book.state()


class AverageCosting:
    """
    Weighted-average strategy: one running (stock, value) pool.

    Inward: value += qty * cost, stock += qty, average recomputed.
    Outward: value -= qty * average_at_that_point, stock -= qty, average recomputed.
    Average is 0 whenever stock <= 0, so issuing from an empty pool costs nothing
    and is reported as shortfall.
    """

    def __init__(self, stock: Decimal = ZERO, value: Decimal = ZERO):
        self.stock = stock
        self._value = value
        self.average_cost = self._average()

    def _average(self) -> Decimal:
        if self.stock <= 0:
            return ZERO
        return self._value / self.stock

    @property
    def value(self) -> Decimal:
        return self._value

    def receive(self, quantity: Decimal, unit_cost: Decimal, ref=None) -> None:
        self._value += quantity * unit_cost
        self.stock += quantity
        self.average_cost = self._average()

    def issue(self, quantity: Decimal) -> Consumption:
        covered = min(quantity, max(self.stock, ZERO))
        consumed = quantity * self.average_cost
        self._value -= consumed
        self.stock -= quantity
        self.average_cost = self._average()
        return Consumption(requested=quantity, value=consumed, shortfall=quantity - covered)

    def state(self) -> list[dict[str, str]]:
        """
        The pool as a single entry, value unrounded.

        Snapshots store closing_value at 4 places; chaining from the stored
        pool instead keeps a chained average identical to a full rescan.
        """
        return [{'quantity': str(self.stock), 'value': str(self._value)}]

    @classmethod
    def from_state(cls, state, stock: Decimal = ZERO, value: Decimal = ZERO) -> 'AverageCosting':
        """Rehydrate from state(); older snapshots without a pool use stock/value."""
        for item in state or []:
            if 'value' in item:
                return cls(stock=Decimal(item['quantity']), value=Decimal(item['value']))
        return cls(stock=stock, value=value)


def costing_for(method, opening_stock: Decimal = ZERO, opening_value: Decimal = ZERO,
                layers=None):
    """
    Build the costing strategy for a valuation method.

    Layer methods are rehydrated from ``layers`` (a snapshot's stored state);
    the average method from its stored pool, or the opening stock/value pair.
    """
    method = ValuationMethod(method)
    if method == ValuationMethod.WEIGHTED_AVERAGE:
        return AverageCosting.from_state(layers, stock=opening_stock, value=opening_value)
    return LayeredCosting(method.consumption_order, LayerBook.from_state(layers))
