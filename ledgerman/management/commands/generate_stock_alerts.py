"""
Management command to derive stock and expiry alerts.

Usage:
    python manage.py generate_stock_alerts
    python manage.py generate_stock_alerts --dry-run
"""

from django.core.management.base import BaseCommand

from ledgerman import inventory
from ledgerman.services.alerts import classify_stock


class Command(BaseCommand):
    """Generate stock alerts command."""

    help = 'Gera alertas de estoque e de vencimento'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Mostra as condições encontradas sem criar alertas'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            lookup = inventory.ledger.products
            matched = 0
            for product in lookup.iter_products():
                condition = classify_stock(
                    inventory.current_stock(product),
                    lookup.thresholds(product),
                )
                if condition is not None:
                    matched += 1
                    self.stdout.write(f'{product}: {condition.alert_type.label}')
            self.stdout.write(f'{matched} produto(s) com alerta de estoque')
        else:
            created = inventory.generate_alerts()
            self.stdout.write(
                self.style.SUCCESS(f'{len(created)} alerta(s) criado(s)')
            )
