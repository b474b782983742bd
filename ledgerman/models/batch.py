"""
Batch model: lot tracking with remaining quantity and expiry.

A Batch is one received lot of a product. It is the consumable quantity layer
behind FIFO/LIFO picking: oldest received first, or newest first.

Usage:
    from ledgerman import inventory

    movement = inventory.receive(
        product, Decimal('50'), unit_cost=Decimal('4.20'),
        batch_number="LOT-2026-0223-A",
        expires_at=date.today() + timedelta(days=90),
    )
    movement.batch.remaining_quantity   # 50
"""

from datetime import date
from decimal import Decimal

from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ledgerman.models.enums import BatchStatus, QualityStatus


class BatchQuerySet(models.QuerySet):
    """Custom QuerySet for Batch with convenience filters."""

    def for_product(self, product):
        """Filter batches for a specific product."""
        ct = ContentType.objects.get_for_model(product)
        return self.filter(content_type=ct, object_id=product.pk)

    def with_stock(self):
        return self.filter(remaining_quantity__gt=0)

    def consumable(self, today: date | None = None):
        """
        Active batches with remaining stock that have not passed expiry.

        A batch past its expiry date is expired even before expire_overdue()
        persists the transition.
        """
        today = today or timezone.localdate()
        return self.filter(status=BatchStatus.ACTIVE).with_stock().filter(
            Q(expires_at__isnull=True) | Q(expires_at__gte=today)
        )

    def chronological(self):
        """Oldest received first (FIFO order)."""
        return self.order_by('received_at', 'id')

    def expiring_between(self, start: date, end: date):
        """Batches expiring within [start, end]."""
        return self.filter(expires_at__gte=start, expires_at__lte=end)

    def overdue(self, today: date | None = None):
        """Active batches whose expiry date has passed."""
        today = today or timezone.localdate()
        return self.filter(status=BatchStatus.ACTIVE, expires_at__lt=today)


class Batch(models.Model):
    """
    Received lot of a product.

    Invariants:
    - 0 <= remaining_quantity <= initial_quantity (checked in the database)
    - batch_number is unique per product
    - expires_at > manufactured_at when both are set
    - remaining_quantity only changes through BatchTracker.consume/restore
    """

    batch_number = models.CharField(
        max_length=50,
        verbose_name=_('Número do Lote'),
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

    initial_quantity = models.DecimalField(
        max_digits=15,
        decimal_places=4,
        verbose_name=_('Quantidade Inicial'),
    )
    remaining_quantity = models.DecimalField(
        max_digits=15,
        decimal_places=4,
        verbose_name=_('Quantidade Restante'),
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

    # Dates
    received_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Recebido em'))
    manufactured_at = models.DateField(null=True, blank=True, verbose_name=_('Data de Fabricação'))
    expires_at = models.DateField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Data de Validade'),
        help_text=_('Último dia em que o lote pode ser usado'),
    )

    status = models.CharField(
        max_length=20,
        choices=BatchStatus.choices,
        default=BatchStatus.ACTIVE,
        db_index=True,
        verbose_name=_('Status'),
    )
    quality_status = models.CharField(
        max_length=20,
        choices=QualityStatus.choices,
        default=QualityStatus.PENDING,
        verbose_name=_('Status de Qualidade'),
    )

    location = models.CharField(max_length=100, default='main', verbose_name=_('Local'))
    supplier = models.CharField(max_length=200, blank=True, default='', verbose_name=_('Fornecedor'))
    notes = models.TextField(blank=True, default='', verbose_name=_('Observações'))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_('Criado em'))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_('Atualizado em'))

    objects = BatchQuerySet.as_manager()

    class Meta:
        verbose_name = _('Lote')
        verbose_name_plural = _('Lotes')
        ordering = ['received_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['content_type', 'object_id', 'batch_number'],
                name='unique_batch_number_per_product',
            ),
            models.CheckConstraint(
                condition=Q(remaining_quantity__gte=0),
                name='batch_remaining_gte_zero',
            ),
            models.CheckConstraint(
                condition=Q(remaining_quantity__lte=F('initial_quantity')),
                name='batch_remaining_lte_initial',
            ),
        ]
        indexes = [
            models.Index(fields=['content_type', 'object_id', 'status'], name='ledgerman_bt_product_idx'),
        ]

    def is_expired(self, today: date | None = None) -> bool:
        """Is this batch past its expiry date?"""
        if self.expires_at is None:
            return False
        return (today or timezone.localdate()) > self.expires_at

    def days_until_expiry(self, today: date | None = None) -> int | None:
        if self.expires_at is None:
            return None
        return (self.expires_at - (today or timezone.localdate())).days

    def age_days(self, today: date | None = None) -> int:
        today = today or timezone.localdate()
        return (today - timezone.localtime(self.received_at).date()).days

    @property
    def utilization_percentage(self) -> Decimal:
        """Share of the initial quantity already consumed, 0-100."""
        if not self.initial_quantity:
            return Decimal('0')
        used = self.initial_quantity - self.remaining_quantity
        return (used / self.initial_quantity * 100).quantize(Decimal('0.01'))

    def __str__(self) -> str:
        expiry = f" (val:{self.expires_at})" if self.expires_at else ""
        return f"Lote {self.batch_number}{expiry}"
