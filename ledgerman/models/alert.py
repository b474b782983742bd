"""
StockAlert model: derived notification about a stock or expiry condition.

Alerts are produced by AlertDeriver from the ledger balance, product
thresholds and batch expiry dates. At most one unresolved alert exists per
(product, type), or per (batch, type) for expiry alerts.

Usage:
    from ledgerman import inventory

    created = inventory.generate_alerts(product)
    StockAlert.objects.unresolved().order_by('-priority')
"""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from ledgerman.models.enums import AlertLevel, AlertType


class StockAlertQuerySet(models.QuerySet):

    def for_product(self, product):
        """Filter alerts for a specific product."""
        ct = ContentType.objects.get_for_model(product)
        return self.filter(content_type=ct, object_id=product.pk)

    def unresolved(self):
        return self.filter(is_resolved=False)

    def unacknowledged(self):
        return self.filter(is_resolved=False, is_acknowledged=False)


class StockAlert(models.Model):
    """
    Stock alert for a product (optionally for one of its batches).

    Alerts are never auto-resolved: a condition that clears leaves the alert
    open until someone resolves it.
    """

    # Product reference (generic, any product model)
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        related_name='+',
        verbose_name=_('Tipo de Produto'),
    )
    object_id = models.PositiveIntegerField(verbose_name=_('ID do Produto'))
    product = GenericForeignKey('content_type', 'object_id')

    # Set for expiry alerts only
    batch = models.ForeignKey(
        'ledgerman.Batch',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='alerts',
        verbose_name=_('Lote'),
    )

    alert_type = models.CharField(
        max_length=20,
        choices=AlertType.choices,
        verbose_name=_('Tipo'),
    )
    alert_level = models.CharField(
        max_length=20,
        choices=AlertLevel.choices,
        verbose_name=_('Nível'),
    )
    priority = models.PositiveSmallIntegerField(
        default=5,
        verbose_name=_('Prioridade'),
        help_text=_('1 (baixa) a 10 (alta)'),
    )

    # Context at the time of derivation
    current_stock = models.DecimalField(
        max_digits=15,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Estoque Atual'),
    )
    threshold_value = models.DecimalField(
        max_digits=15,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Limite'),
    )
    expiry_date = models.DateField(null=True, blank=True, verbose_name=_('Data de Validade'))
    days_to_expiry = models.IntegerField(null=True, blank=True, verbose_name=_('Dias para Vencer'))
    message = models.TextField(verbose_name=_('Mensagem'))

    # Lifecycle
    is_acknowledged = models.BooleanField(default=False, verbose_name=_('Reconhecido'))
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Reconhecido por'),
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Reconhecido em'))
    is_resolved = models.BooleanField(default=False, db_index=True, verbose_name=_('Resolvido'))
    resolved_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Resolvido em'))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_('Criado em'))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_('Atualizado em'))

    objects = StockAlertQuerySet.as_manager()

    class Meta:
        verbose_name = _('Alerta de Estoque')
        verbose_name_plural = _('Alertas de Estoque')
        ordering = ['-priority', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['content_type', 'object_id', 'alert_type'],
                condition=Q(is_resolved=False, batch__isnull=True),
                name='unique_open_alert_per_product_type',
            ),
            models.UniqueConstraint(
                fields=['batch', 'alert_type'],
                condition=Q(is_resolved=False, batch__isnull=False),
                name='unique_open_alert_per_batch_type',
            ),
        ]
        indexes = [
            models.Index(fields=['content_type', 'object_id'], name='ledgerman_al_product_idx'),
            models.Index(fields=['alert_type', 'alert_level'], name='ledgerman_al_type_idx'),
        ]

    def __str__(self) -> str:
        return f"[{self.alert_level}] {self.get_alert_type_display()}: {self.product}"
