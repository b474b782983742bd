"""
Movement model: Immutable ledger of stock changes.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ledgerman.models.enums import DIRECTIONS, Direction, MovementKind


def _movement_number() -> str:
    return f"MOV-{uuid.uuid4().hex[:12].upper()}"


class MovementQuerySet(models.QuerySet):
    """Custom QuerySet for Movement with convenience filters."""

    def for_product(self, product):
        """Filter movements for a specific product."""
        ct = ContentType.objects.get_for_model(product)
        return self.filter(content_type=ct, object_id=product.pk)

    def active(self):
        """Movements that count towards balances (not flagged inactive)."""
        return self.filter(is_active=True)

    def chronological(self):
        """Total order: occurred_at, then insertion sequence."""
        return self.order_by('occurred_at', 'id')


class Movement(models.Model):
    """
    Immutable record of a stock change.

    Rules:
    - NEVER update() or delete()
    - Corrections are new Movements in the opposite direction
    - quantity sign follows kind: inward > 0, outward < 0
    - total_cost = quantity * unit_cost (same sign as quantity)

    Records sharing occurred_at are ordered by id (insertion sequence); that
    tie-break decides which cost layer a same-instant issue draws from.
    """

    number = models.CharField(
        max_length=50,
        unique=True,
        default=_movement_number,
        editable=False,
        verbose_name=_('Número'),
    )

    # Product reference (generic, any product model)
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('Tipo de Produto'),
    )
    object_id = models.PositiveIntegerField(verbose_name=_('ID do Produto'))
    product = GenericForeignKey('content_type', 'object_id')

    batch = models.ForeignKey(
        'ledgerman.Batch',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='movements',
        verbose_name=_('Lote'),
    )

    kind = models.CharField(
        max_length=30,
        choices=MovementKind.choices,
        db_index=True,
        verbose_name=_('Tipo'),
    )
    quantity = models.DecimalField(
        max_digits=15,
        decimal_places=4,
        verbose_name=_('Quantidade'),
        help_text=_('Positivo = entrada, Negativo = saída'),
    )
    unit_cost = models.DecimalField(
        max_digits=15,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Custo Unitário'),
    )
    total_cost = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Custo Total'),
    )

    occurred_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Ocorrido em'))
    location = models.CharField(max_length=100, default='main', verbose_name=_('Local'))

    # External reference (purchase order, invoice, production batch...)
    reference_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Tipo de Referência'),
    )
    reference_id = models.PositiveIntegerField(null=True, blank=True, verbose_name=_('ID da Referência'))
    reference = GenericForeignKey('reference_type', 'reference_id')

    notes = models.TextField(blank=True, default='', verbose_name=_('Observações'))
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadados'))
    is_active = models.BooleanField(
        default=True,
        verbose_name=_('Ativo'),
        help_text=_('Inativos ficam no histórico mas não entram nos saldos'),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        verbose_name=_('Usuário'),
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_('Criado em'))

    objects = MovementQuerySet.as_manager()

    class Meta:
        verbose_name = _('Movimento')
        verbose_name_plural = _('Movimentos')
        ordering = ['occurred_at', 'id']
        indexes = [
            models.Index(fields=['content_type', 'object_id', 'occurred_at'], name='ledgerman_mv_product_idx'),
            models.Index(fields=['kind'], name='ledgerman_mv_kind_idx'),
            models.Index(fields=['is_active'], name='ledgerman_mv_active_idx'),
        ]

    def save(self, *args, **kwargs):
        """Insert only. Existing movements are never rewritten."""
        if self.pk:
            raise ValueError(
                "Movimentos são imutáveis. "
                "Para corrigir, crie um novo movimento em sentido oposto."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Prevent deletion. Movements are immutable."""
        raise ValueError(
            "Movimentos são imutáveis. "
            "Para estornar, crie um novo movimento em sentido oposto."
        )

    @property
    def sequence(self) -> int:
        """Insertion sequence used as tie-break for equal occurred_at."""
        return self.pk

    @property
    def direction(self) -> Direction:
        return DIRECTIONS[MovementKind(self.kind)]

    @property
    def is_inward(self) -> bool:
        return self.direction == Direction.INWARD

    @property
    def is_outward(self) -> bool:
        return self.direction == Direction.OUTWARD

    @property
    def absolute_quantity(self) -> Decimal:
        return abs(self.quantity)

    def __str__(self) -> str:
        signal = '+' if self.quantity > 0 else ''
        return f"{self.number} {signal}{self.quantity} | {self.get_kind_display()}"
