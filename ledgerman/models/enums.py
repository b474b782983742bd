"""
Enums for Ledgerman models.

MovementKind is the single authority on movement direction: sign
normalisation, layer selection and reporting all ask it, never a local list.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class Direction(models.TextChoices):
    """Which way a movement pushes the stock balance."""
    INWARD = 'inward', _('Entrada')
    OUTWARD = 'outward', _('Saída')


class MovementKind(models.TextChoices):
    """
    Kind of stock movement.

    Every kind has a fixed direction (see DIRECTIONS). Inward kinds are stored
    with positive quantity, outward kinds with negative quantity.
    """
    PURCHASE_RECEIPT = 'purchase_receipt', _('Recebimento de compra')
    SALES_ISSUE = 'sales_issue', _('Saída por venda')
    PRODUCTION_CONSUMPTION = 'production_consumption', _('Consumo na produção')
    PRODUCTION_OUTPUT = 'production_output', _('Saída da produção')
    ADJUSTMENT_POSITIVE = 'adjustment_positive', _('Ajuste positivo')
    ADJUSTMENT_NEGATIVE = 'adjustment_negative', _('Ajuste negativo')
    TRANSFER_IN = 'transfer_in', _('Transferência recebida')
    TRANSFER_OUT = 'transfer_out', _('Transferência enviada')
    RETURN_IN = 'return_in', _('Devolução de cliente')
    RETURN_OUT = 'return_out', _('Devolução ao fornecedor')
    SCRAP = 'scrap', _('Descarte')
    OPENING_STOCK = 'opening_stock', _('Saldo inicial')

    @property
    def direction(self) -> 'Direction':
        return DIRECTIONS[self]

    @property
    def is_inward(self) -> bool:
        return DIRECTIONS[self] == Direction.INWARD

    @property
    def is_outward(self) -> bool:
        return DIRECTIONS[self] == Direction.OUTWARD

    def signed(self, quantity: Decimal) -> Decimal:
        """
        Apply this kind's sign to a submitted quantity.

        Outward kinds negate positive input silently. Validation of zero or
        wrong-signed inward input is the Ledger's job (it raises typed errors).
        """
        if self.is_outward:
            return -abs(quantity)
        return quantity


DIRECTIONS = {
    MovementKind.PURCHASE_RECEIPT: Direction.INWARD,
    MovementKind.PRODUCTION_OUTPUT: Direction.INWARD,
    MovementKind.ADJUSTMENT_POSITIVE: Direction.INWARD,
    MovementKind.TRANSFER_IN: Direction.INWARD,
    MovementKind.RETURN_IN: Direction.INWARD,
    MovementKind.OPENING_STOCK: Direction.INWARD,
    MovementKind.SALES_ISSUE: Direction.OUTWARD,
    MovementKind.PRODUCTION_CONSUMPTION: Direction.OUTWARD,
    MovementKind.ADJUSTMENT_NEGATIVE: Direction.OUTWARD,
    MovementKind.TRANSFER_OUT: Direction.OUTWARD,
    MovementKind.RETURN_OUT: Direction.OUTWARD,
    MovementKind.SCRAP: Direction.OUTWARD,
}

INWARD_KINDS = frozenset(k for k, d in DIRECTIONS.items() if d == Direction.INWARD)
OUTWARD_KINDS = frozenset(k for k, d in DIRECTIONS.items() if d == Direction.OUTWARD)


class BatchStatus(models.TextChoices):
    """Batch lifecycle status. consumed/expired are the automatic ones."""
    ACTIVE = 'active', _('Ativo')
    CONSUMED = 'consumed', _('Consumido')
    EXPIRED = 'expired', _('Vencido')
    DAMAGED = 'damaged', _('Avariado')
    RETURNED = 'returned', _('Devolvido')


class QualityStatus(models.TextChoices):
    PENDING = 'pending', _('Pendente')
    APPROVED = 'approved', _('Aprovado')
    REJECTED = 'rejected', _('Rejeitado')
    ON_HOLD = 'on_hold', _('Em espera')


class ConsumptionOrder(models.TextChoices):
    """Which end of the chronological layer list is consumed first."""
    OLDEST_FIRST = 'oldest_first', _('Mais antigo primeiro')
    NEWEST_FIRST = 'newest_first', _('Mais recente primeiro')


class ValuationMethod(models.TextChoices):
    FIFO = 'fifo', _('PEPS (FIFO)')
    LIFO = 'lifo', _('UEPS (LIFO)')
    WEIGHTED_AVERAGE = 'weighted_average', _('Custo médio ponderado')

    @property
    def consumption_order(self) -> 'ConsumptionOrder | None':
        """Layer order for layer-aware methods; None for the average method."""
        if self == ValuationMethod.FIFO:
            return ConsumptionOrder.OLDEST_FIRST
        if self == ValuationMethod.LIFO:
            return ConsumptionOrder.NEWEST_FIRST
        return None


class AlertType(models.TextChoices):
    LOW_STOCK = 'low_stock', _('Estoque baixo')
    OUT_OF_STOCK = 'out_of_stock', _('Sem estoque')
    REORDER_POINT = 'reorder_point', _('Ponto de reposição')
    OVERSTOCK = 'overstock', _('Excesso de estoque')
    EXPIRY_WARNING = 'expiry_warning', _('Vencimento próximo')
    NEGATIVE_STOCK = 'negative_stock', _('Estoque negativo')


class AlertLevel(models.TextChoices):
    INFO = 'info', _('Informativo')
    WARNING = 'warning', _('Atenção')
    CRITICAL = 'critical', _('Crítico')
