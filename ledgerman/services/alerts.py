"""
Stock alerts: derive stock-level and expiry alerts, manage their lifecycle
and suggest reorder quantities.

Usage:
    from ledgerman.services.alerts import AlertDeriver

    # Run periodically (cron, celery beat) or after stock changes
    created = AlertDeriver().generate()
    # Returns the newly created StockAlert rows only
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from django.contrib.contenttypes.models import ContentType
from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from ledgerman.conf import ledgerman_settings
from ledgerman.costing import ZERO
from ledgerman.exceptions import LedgerError
from ledgerman.models.alert import StockAlert
from ledgerman.models.enums import AlertLevel, AlertType
from ledgerman.services.base import ProductService
from ledgerman.services.batches import BatchTracker
from ledgerman.services.ledger import Ledger
from ledgerman.signals import alert_raised

logger = logging.getLogger('ledgerman')


@dataclass(frozen=True)
class StockCondition:
    """A stock-level rule that matched."""

    alert_type: AlertType
    alert_level: AlertLevel
    priority: int
    threshold: Decimal | None
    message: str


@dataclass(frozen=True)
class ReorderSuggestion:
    """A product at or below its reorder point and how much to buy."""

    product: Any
    current_stock: Decimal
    reorder_point: Decimal
    reorder_quantity: Decimal

    @property
    def shortage(self) -> Decimal:
        return max(self.reorder_point - self.current_stock, ZERO)

    @property
    def recommended_quantity(self) -> Decimal:
        """The usual lot size, or the shortage when that is larger."""
        return max(self.reorder_quantity, self.shortage)

    @property
    def stock_status(self) -> AlertType:
        return AlertType.OUT_OF_STOCK if self.current_stock <= 0 else AlertType.LOW_STOCK


@dataclass
class BulkAcknowledgement:
    requested: list
    acknowledged: list[StockAlert] = field(default_factory=list)

    @property
    def skipped(self) -> list:
        """Requested ids that were unknown, resolved or already acknowledged."""
        done = {alert.pk for alert in self.acknowledged}
        return [pk for pk in self.requested if pk not in done]


def classify_stock(current_stock: Decimal, thresholds) -> StockCondition | None:
    """
    First matching stock rule, or None.

    Order: negative, out of stock, reorder point, low stock, overstock.
    A product at or below its reorder point gets reorder_point even when it
    is also below the minimum level.
    """
    if current_stock < 0:
        return StockCondition(
            AlertType.NEGATIVE_STOCK, AlertLevel.CRITICAL, 9, Decimal('0'),
            f"Estoque negativo: {current_stock}",
        )
    if current_stock == 0:
        return StockCondition(
            AlertType.OUT_OF_STOCK, AlertLevel.CRITICAL, 10, Decimal('0'),
            "Produto sem estoque",
        )
    if current_stock <= thresholds.reorder_point:
        return StockCondition(
            AlertType.REORDER_POINT, AlertLevel.WARNING, 6, thresholds.reorder_point,
            f"Estoque {current_stock} atingiu o ponto de reposição {thresholds.reorder_point}",
        )
    if current_stock <= thresholds.minimum_stock_level:
        return StockCondition(
            AlertType.LOW_STOCK, AlertLevel.WARNING, 7, thresholds.minimum_stock_level,
            f"Estoque {current_stock} abaixo do mínimo {thresholds.minimum_stock_level}",
        )
    if thresholds.maximum_stock_level is not None and current_stock > thresholds.maximum_stock_level:
        return StockCondition(
            AlertType.OVERSTOCK, AlertLevel.INFO, 3, thresholds.maximum_stock_level,
            f"Estoque {current_stock} acima do máximo {thresholds.maximum_stock_level}",
        )
    return None


def expiry_level(days: int) -> tuple[AlertLevel, int]:
    """Level and priority for a batch expiring in ``days``."""
    if days <= ledgerman_settings.EXPIRY_CRITICAL_DAYS:
        return AlertLevel.CRITICAL, 8
    if days <= ledgerman_settings.EXPIRY_WARNING_DAYS:
        return AlertLevel.WARNING, 5
    return AlertLevel.INFO, 5


class AlertDeriver(ProductService):
    """Emit, acknowledge and resolve stock alerts."""

    def __init__(self, products=None, ledger=None, batches=None):
        super().__init__(products)
        self.ledger = ledger or Ledger(products)
        self.batches = batches or BatchTracker(products)

    def generate(self, products=None, today=None) -> list[StockAlert]:
        """
        Derive alerts for every product (default: all products known to the lookup).

        A key with an unresolved alert is left untouched, so repeated runs
        create nothing new. Conditions that cleared are not auto-resolved.

        Returns:
            Newly created alerts.
        """
        today = today or timezone.localdate()
        if products is None:
            products = self.products.iter_products()

        created = []
        for product in products:
            created.extend(self.generate_for(product, today=today))
        return created

    def generate_for(self, product, today=None) -> list[StockAlert]:
        """Derive the stock alert and the expiry alerts of one product."""
        product = self.resolve(product)
        today = today or timezone.localdate()
        ct = ContentType.objects.get_for_model(product)
        created = []

        current_stock = self.ledger.current_stock(product)
        condition = classify_stock(current_stock, self.products.thresholds(product))
        if condition is not None:
            alert = self._raise(
                ct, product,
                alert_type=condition.alert_type,
                alert_level=condition.alert_level,
                priority=condition.priority,
                current_stock=current_stock,
                threshold_value=condition.threshold,
                message=condition.message,
            )
            if alert:
                created.append(alert)

        horizon = ledgerman_settings.EXPIRY_HORIZON_DAYS
        for batch in self.batches.expiring_within(horizon, product=product, today=today):
            days = batch.days_until_expiry(today)
            level, priority = expiry_level(days)
            alert = self._raise(
                ct, product,
                batch=batch,
                alert_type=AlertType.EXPIRY_WARNING,
                alert_level=level,
                priority=priority,
                current_stock=batch.remaining_quantity,
                expiry_date=batch.expires_at,
                days_to_expiry=days,
                message=f"Lote {batch.batch_number} vence em {days} dia(s) ({batch.expires_at})",
            )
            if alert:
                created.append(alert)

        return created

    def _raise(self, ct, product, alert_type, batch=None, **fields) -> StockAlert | None:
        open_alerts = StockAlert.objects.unresolved().filter(alert_type=alert_type)
        if batch is not None:
            open_alerts = open_alerts.filter(batch=batch)
        else:
            open_alerts = open_alerts.filter(content_type=ct, object_id=product.pk, batch__isnull=True)
        if open_alerts.exists():
            return None

        alert = StockAlert.objects.create(
            content_type=ct,
            object_id=product.pk,
            batch=batch,
            alert_type=alert_type,
            **fields,
        )
        log = logger.warning if alert.alert_level == AlertLevel.CRITICAL else logger.info
        log(
            "alert.raised",
            extra={
                "alert_id": alert.pk,
                "product": str(product),
                "type": alert_type.value,
                "level": alert.alert_level,
                "batch_id": batch.pk if batch else None,
            },
        )
        alert_raised.send(sender=StockAlert, alert=alert)
        return alert

    def get(self, alert_id) -> StockAlert:
        try:
            return StockAlert.objects.get(pk=getattr(alert_id, 'pk', alert_id))
        except StockAlert.DoesNotExist:
            raise LedgerError('ALERT_NOT_FOUND', alert_id=getattr(alert_id, 'pk', alert_id))

    def acknowledge(self, alert, user=None) -> StockAlert:
        alert = self.get(alert)
        alert.is_acknowledged = True
        alert.acknowledged_by = user
        alert.acknowledged_at = timezone.now()
        alert.save(update_fields=['is_acknowledged', 'acknowledged_by', 'acknowledged_at', 'updated_at'])
        logger.info("alert.acknowledged", extra={"alert_id": alert.pk})
        return alert

    def resolve_alert(self, alert) -> StockAlert:
        alert = self.get(alert)
        if not alert.is_resolved:
            alert.is_resolved = True
            alert.resolved_at = timezone.now()
            alert.save(update_fields=['is_resolved', 'resolved_at', 'updated_at'])
            logger.info("alert.resolved", extra={"alert_id": alert.pk})
        return alert

    def resolve_for_product(self, product, alert_type=None) -> int:
        """Resolve every open alert of a product (optionally one type). Returns count."""
        product = self.resolve(product)
        qs = StockAlert.objects.for_product(product).unresolved()
        if alert_type:
            qs = qs.filter(alert_type=alert_type)
        with transaction.atomic():
            count = qs.update(is_resolved=True, resolved_at=timezone.now(), updated_at=timezone.now())
        logger.info("alert.resolved", extra={"product": str(product), "count": count})
        return count

    def active(self, alert_type=None, alert_level=None):
        """Unresolved alerts, highest priority first."""
        qs = StockAlert.objects.unresolved()
        if alert_type:
            qs = qs.filter(alert_type=alert_type)
        if alert_level:
            qs = qs.filter(alert_level=alert_level)
        return qs.order_by('-priority', '-created_at')

    def summary(self) -> dict:
        """Counts of unresolved alerts by type and by level."""
        open_alerts = StockAlert.objects.unresolved()
        by_type = {
            row['alert_type']: row['n']
            for row in open_alerts.order_by().values('alert_type').annotate(n=Count('id'))
        }
        by_level = {
            row['alert_level']: row['n']
            for row in open_alerts.order_by().values('alert_level').annotate(n=Count('id'))
        }
        return {
            'total': sum(by_type.values()),
            'unacknowledged': open_alerts.filter(is_acknowledged=False).count(),
            'by_type': by_type,
            'by_level': by_level,
        }

    def acknowledge_many(self, alerts, user=None) -> BulkAcknowledgement:
        """
        Acknowledge several open alerts at once.

        Unknown, resolved or already acknowledged ids are skipped and
        reported on the result rather than failing the whole call.

        Raises:
            LedgerError('ALERT_IDS_REQUIRED'): If no alert is given
        """
        requested = [getattr(alert, 'pk', alert) for alert in alerts or []]
        if not requested:
            raise LedgerError('ALERT_IDS_REQUIRED')

        result = BulkAcknowledgement(requested=requested)
        now = timezone.now()
        with transaction.atomic():
            open_alerts = StockAlert.objects.select_for_update().filter(
                pk__in=requested,
                is_resolved=False,
                is_acknowledged=False,
            ).order_by('pk')
            for alert in open_alerts:
                alert.is_acknowledged = True
                alert.acknowledged_by = user
                alert.acknowledged_at = now
                alert.save(update_fields=['is_acknowledged', 'acknowledged_by', 'acknowledged_at', 'updated_at'])
                result.acknowledged.append(alert)

        logger.info(
            "alert.acknowledged",
            extra={"count": len(result.acknowledged), "skipped": result.skipped},
        )
        return result

    def reorder_suggestions(self, products=None) -> list[ReorderSuggestion]:
        """
        Products at or below a positive reorder point, lowest stock first.

        The recommended quantity is the larger of the product's reorder
        quantity and its shortage to the reorder point.
        """
        if products is None:
            products = self.products.iter_products()

        suggestions = []
        for product in products:
            product = self.resolve(product)
            thresholds = self.products.thresholds(product)
            if thresholds.reorder_point <= 0:
                continue
            current_stock = self.ledger.current_stock(product)
            if current_stock > thresholds.reorder_point:
                continue
            suggestions.append(ReorderSuggestion(
                product=product,
                current_stock=current_stock,
                reorder_point=thresholds.reorder_point,
                reorder_quantity=thresholds.reorder_quantity,
            ))
        return sorted(suggestions, key=lambda s: s.current_stock)
