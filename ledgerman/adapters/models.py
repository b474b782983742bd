"""
Ledgerman Model Adapter: products resolved straight from Django models.

Default ProductLookup. Reads product models listed in settings and takes
thresholds from same-named attributes on the product instance.

Settings:
    LEDGERMAN = {
        "PRODUCT_LOOKUP": "ledgerman.adapters.models.ModelProductLookup",
        "PRODUCT_MODELS": ["shop.Product"],
    }

Missing threshold attributes fall back to reorder_point=0, reorder_quantity=0,
minimum_stock_level=0 and no maximum.
"""

from __future__ import annotations

from decimal import Decimal

from django.apps import apps
from django.core.exceptions import ImproperlyConfigured

from ledgerman.conf import ledgerman_settings
from ledgerman.exceptions import ProductNotFound
from ledgerman.protocols.product import ProductThresholds


def _decimal_or(value, default):
    if value is None:
        return default
    return Decimal(str(value))


class ModelProductLookup:
    """
    ProductLookup backed by the Django app registry.

    Implements the ``ProductLookup`` protocol. References are either model
    instances (returned as-is) or "app_label.model:pk" strings.
    """

    def __init__(self, model_labels: list[str] | None = None):
        self._model_labels = model_labels

    @property
    def model_labels(self) -> list[str]:
        if self._model_labels is not None:
            return self._model_labels
        return list(ledgerman_settings.PRODUCT_MODELS)

    def _get_model(self, label: str):
        try:
            return apps.get_model(label)
        except (LookupError, ValueError) as e:
            raise ImproperlyConfigured(f"Unknown product model '{label}': {e}") from e

    def resolve(self, ref):
        if not isinstance(ref, str):
            if getattr(ref, 'pk', None) is None:
                raise ProductNotFound(ref=str(ref))
            return ref

        label, sep, pk = ref.rpartition(':')
        if not sep or not label:
            raise ProductNotFound(ref=ref)
        try:
            model = apps.get_model(label)
        except (LookupError, ValueError):
            raise ProductNotFound(ref=ref)
        try:
            return model._default_manager.get(pk=pk)
        except (model.DoesNotExist, ValueError):
            raise ProductNotFound(ref=ref)

    def iter_products(self):
        for label in self.model_labels:
            model = self._get_model(label)
            qs = model._default_manager.all()
            field_names = {f.name for f in model._meta.get_fields()}
            if 'is_active' in field_names:
                qs = qs.filter(is_active=True)
            yield from qs.order_by('pk')

    def thresholds(self, product) -> ProductThresholds:
        return ProductThresholds(
            reorder_point=_decimal_or(getattr(product, 'reorder_point', None), Decimal('0')),
            minimum_stock_level=_decimal_or(getattr(product, 'minimum_stock_level', None), Decimal('0')),
            maximum_stock_level=_decimal_or(getattr(product, 'maximum_stock_level', None), None),
            reorder_quantity=_decimal_or(getattr(product, 'reorder_quantity', None), Decimal('0')),
        )
