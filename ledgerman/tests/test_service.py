"""
Tests for the Inventory facade, product lookup and settings.
"""

from decimal import Decimal

import pytest
from django.core.exceptions import ImproperlyConfigured

import ledgerman
from ledgerman import inventory, Inventory, LedgerError
from ledgerman.adapters import get_product_lookup, reset_product_lookup
from ledgerman.adapters.models import ModelProductLookup
from ledgerman.conf import ledgerman_settings
from ledgerman.exceptions import ProductNotFound
from ledgerman.protocols import ProductLookup, ProductThresholds


class TestExports:

    def test_lazy_exports(self):
        assert isinstance(inventory, Inventory)
        assert issubclass(LedgerError, Exception)
        assert ledgerman.Movement._meta.label == 'ledgerman.Movement'

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            ledgerman.does_not_exist


@pytest.mark.django_db
class TestFacade:

    def test_services_share_lookup(self, product):
        custom = ModelProductLookup(['shop.Product'])
        facade = Inventory(products=custom)

        assert facade.ledger.products is custom
        assert facade.valuation.products is custom
        assert facade.alerts.products is custom

    def test_end_to_end(self, inventory, thresholds_product, day):
        inventory.receive(thresholds_product, Decimal('10'), Decimal('5'), occurred_at=day)
        inventory.receive(thresholds_product, Decimal('10'), Decimal('8'), occurred_at=day)
        inventory.issue(thresholds_product, Decimal('15'), occurred_at=day)

        snapshot = inventory.compute_valuation(thresholds_product, day.date(), 'fifo')
        [alert] = inventory.generate_alerts([thresholds_product])

        assert snapshot.closing_value == Decimal('40')
        assert alert.alert_type == 'reorder_point'
        assert inventory.reconcile(thresholds_product).is_consistent


class TestErrors:

    def test_default_message(self):
        error = LedgerError('UNKNOWN_KIND', kind='teleport')

        assert error.code == 'UNKNOWN_KIND'
        assert error.data == {'kind': 'teleport'}
        assert error.as_dict()['code'] == 'UNKNOWN_KIND'

    def test_custom_message(self):
        error = LedgerError('INVALID_ORDER', message='Ordem desconhecida')
        assert error.message == 'Ordem desconhecida'
        assert str(error) == '[INVALID_ORDER] Ordem desconhecida'


@pytest.mark.django_db
class TestModelProductLookup:

    def test_resolve_instance(self, product):
        assert ModelProductLookup().resolve(product) is product

    def test_resolve_string(self, product):
        assert ModelProductLookup().resolve(f'shop.product:{product.pk}') == product

    @pytest.mark.parametrize('ref', ['shop.product', 'nope.model:1', 'shop.product:abc'])
    def test_resolve_invalid(self, ref):
        with pytest.raises(ProductNotFound):
            ModelProductLookup().resolve(ref)

    def test_iter_products_skips_inactive(self, product, other_product):
        other_product.is_active = False
        other_product.save()

        assert list(ModelProductLookup().iter_products()) == [product]

    def test_thresholds(self, product, thresholds_product):
        lookup = ModelProductLookup()

        assert lookup.thresholds(product) == ProductThresholds(
            reorder_point=Decimal('0'),
            minimum_stock_level=Decimal('0'),
            maximum_stock_level=None,
        )
        assert lookup.thresholds(thresholds_product).maximum_stock_level == Decimal('100')

    def test_unknown_model_label(self, db):
        with pytest.raises(ImproperlyConfigured):
            list(ModelProductLookup(['shop.Nothing']).iter_products())

    def test_satisfies_protocol(self):
        assert isinstance(ModelProductLookup(), ProductLookup)


class TestGetProductLookup:

    def test_cached(self):
        assert get_product_lookup() is get_product_lookup()

    def test_empty_path(self, settings):
        settings.LEDGERMAN = {'PRODUCT_LOOKUP': ''}
        reset_product_lookup()

        with pytest.raises(ImproperlyConfigured):
            get_product_lookup()

    def test_bad_path(self, settings):
        settings.LEDGERMAN = {'PRODUCT_LOOKUP': 'ledgerman.adapters.models.Missing'}
        reset_product_lookup()

        with pytest.raises(ImproperlyConfigured):
            get_product_lookup()


class TestSettings:

    def test_defaults(self):
        assert ledgerman_settings.EXPIRY_HORIZON_DAYS == 30
        assert ledgerman_settings.DEFAULT_VALUATION_METHOD == 'fifo'

    def test_overrides_are_read_lazily(self, settings):
        settings.LEDGERMAN = {'EXPIRY_HORIZON_DAYS': 10, 'UNKNOWN_KEY': 1}

        assert ledgerman_settings.EXPIRY_HORIZON_DAYS == 10
        assert ledgerman_settings.PRODUCT_MODELS == []
