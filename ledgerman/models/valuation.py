"""
StockValuation model: computed inventory value per product, date and method.

Snapshots are derived data: recomputing with the same ledger overwrites the
row with identical figures. No wall-clock fields are stored.
"""

from decimal import Decimal

from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.utils.translation import gettext_lazy as _

from ledgerman.models.enums import ValuationMethod


def _amount(verbose_name, max_digits=19):
    return models.DecimalField(
        max_digits=max_digits,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=verbose_name,
    )


class StockValuationQuerySet(models.QuerySet):

    def for_product(self, product):
        ct = ContentType.objects.get_for_model(product)
        return self.filter(content_type=ct, object_id=product.pk)

    def flagged(self):
        """Snapshots whose scan consumed past the available layers."""
        return self.filter(negative_stock_encountered=True)


class StockValuation(models.Model):
    """
    Valuation snapshot.

    closing_value == opening_value + inward_value - outward_value, where the
    outward value depends on the method.
    """

    # Product reference (generic, any product model)
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('Tipo de Produto'),
    )
    object_id = models.PositiveIntegerField(verbose_name=_('ID do Produto'))
    product = GenericForeignKey('content_type', 'object_id')

    valuation_date = models.DateField(db_index=True, verbose_name=_('Data da Valoração'))
    period_start = models.DateField(verbose_name=_('Início do Período'))
    method = models.CharField(
        max_length=20,
        choices=ValuationMethod.choices,
        verbose_name=_('Método'),
    )
    location = models.CharField(max_length=100, default='main', verbose_name=_('Local'))

    opening_stock = _amount(_('Estoque Inicial'), max_digits=15)
    opening_value = _amount(_('Valor Inicial'))
    inward_quantity = _amount(_('Quantidade de Entrada'), max_digits=15)
    inward_value = _amount(_('Valor de Entrada'))
    outward_quantity = _amount(_('Quantidade de Saída'), max_digits=15)
    outward_value = _amount(_('Valor de Saída'))
    closing_stock = _amount(_('Estoque Final'), max_digits=15)
    closing_value = _amount(_('Valor Final'))
    average_cost = _amount(_('Custo Médio'), max_digits=15)

    layers = models.JSONField(
        default=list,
        blank=True,
        verbose_name=_('Camadas de Custo'),
        help_text=_('Camadas restantes (PEPS/UEPS) ou saldo não arredondado do custo médio ao fim do período'),
    )

    negative_stock_encountered = models.BooleanField(
        default=False,
        verbose_name=_('Estoque Negativo'),
        help_text=_('Saídas excederam as camadas disponíveis durante o cálculo'),
    )
    unmatched_quantity = _amount(_('Quantidade sem Camada'), max_digits=15)

    objects = StockValuationQuerySet.as_manager()

    class Meta:
        verbose_name = _('Valoração de Estoque')
        verbose_name_plural = _('Valorações de Estoque')
        ordering = ['-valuation_date', 'method']
        constraints = [
            models.UniqueConstraint(
                fields=['content_type', 'object_id', 'valuation_date', 'method'],
                name='unique_valuation_per_product_date_method',
            ),
        ]
        indexes = [
            models.Index(fields=['valuation_date', 'method'], name='ledgerman_sv_date_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.product} {self.valuation_date} [{self.method}] = {self.closing_value}"
