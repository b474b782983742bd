"""
Ledgerman Admin.

Provides read-only views for operators:
- Movement: read-only audit trail (occurred_at, kind, quantity, cost)
- Batch: read-only with "expire" action
- StockValuation: read-only snapshots
- StockAlert: read-only with "acknowledge" and "resolve" actions
"""

import logging

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from ledgerman.exceptions import LedgerError
from ledgerman.models import Batch, BatchStatus, Movement, StockAlert, StockValuation

logger = logging.getLogger(__name__)


class ReadOnlyAdmin(admin.ModelAdmin):
    """Rows only change through the inventory service."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description=_('Produto'))
    def product_display(self, obj):
        return str(obj.product) if obj.product else '?'


# =========================================================================
# MOVEMENT ADMIN (read-only audit trail)
# =========================================================================

@admin.register(Movement)
class MovementAdmin(ReadOnlyAdmin):
    """Movement admin: read-only. Immutable audit trail."""

    list_display = ['number', 'occurred_at', 'product_display', 'kind', 'quantity',
                    'unit_cost', 'total_cost', 'batch', 'location', 'is_active']
    list_filter = ['kind', 'location', 'is_active']
    search_fields = ['number', 'notes']
    readonly_fields = ['number', 'content_type', 'object_id', 'batch', 'kind', 'quantity',
                       'unit_cost', 'total_cost', 'occurred_at', 'location',
                       'reference_type', 'reference_id', 'notes', 'metadata',
                       'is_active', 'user', 'created_at']
    date_hierarchy = 'occurred_at'


# =========================================================================
# BATCH ADMIN
# =========================================================================

@admin.register(Batch)
class BatchAdmin(ReadOnlyAdmin):
    """Batch admin: lot traceability with expire action."""

    list_display = ['batch_number', 'product_display', 'remaining_quantity', 'initial_quantity',
                    'unit_cost', 'received_at', 'expires_at', 'status', 'quality_status']
    list_filter = ['status', 'quality_status', 'location']
    search_fields = ['batch_number', 'supplier']
    readonly_fields = ['created_at', 'updated_at']
    actions = ['expire_batches']

    @admin.action(description=_('Marcar lotes selecionados como vencidos'))
    def expire_batches(self, request, queryset):
        from ledgerman import inventory

        count = 0
        for batch in queryset.filter(status=BatchStatus.ACTIVE):
            try:
                inventory.batches.transition(batch, BatchStatus.EXPIRED)
                count += 1
            except LedgerError as exc:
                logger.warning("expire_batches: failed for batch %s: %s", batch.pk, exc)

        self.message_user(request, _('{count} lote(s) vencido(s).').format(count=count))


# =========================================================================
# VALUATION ADMIN (read-only)
# =========================================================================

@admin.register(StockValuation)
class StockValuationAdmin(ReadOnlyAdmin):
    """Valuation admin: read-only. Recompute via compute_valuations."""

    list_display = ['valuation_date', 'product_display', 'method', 'closing_stock',
                    'closing_value', 'average_cost', 'negative_stock_encountered']
    list_filter = ['method', 'negative_stock_encountered', 'valuation_date']
    date_hierarchy = 'valuation_date'


# =========================================================================
# STOCK ALERT ADMIN
# =========================================================================

@admin.register(StockAlert)
class StockAlertAdmin(ReadOnlyAdmin):
    """StockAlert admin: read-only with acknowledge/resolve actions."""

    list_display = ['__str__', 'alert_type', 'alert_level', 'priority', 'current_stock',
                    'batch', 'is_acknowledged', 'is_resolved', 'created_at']
    list_filter = ['alert_type', 'alert_level', 'is_acknowledged', 'is_resolved']
    search_fields = ['message']
    actions = ['acknowledge_alerts', 'resolve_alerts']

    @admin.action(description=_('Reconhecer alertas selecionados'))
    def acknowledge_alerts(self, request, queryset):
        from ledgerman import inventory

        count = 0
        for alert in queryset.filter(is_acknowledged=False):
            inventory.acknowledge_alert(alert, user=request.user)
            count += 1
        self.message_user(request, _('{count} alerta(s) reconhecido(s).').format(count=count))

    @admin.action(description=_('Resolver alertas selecionados'))
    def resolve_alerts(self, request, queryset):
        from ledgerman import inventory

        count = 0
        for alert in queryset.filter(is_resolved=False):
            inventory.resolve_alert(alert)
            count += 1
        self.message_user(request, _('{count} alerta(s) resolvido(s).').format(count=count))
