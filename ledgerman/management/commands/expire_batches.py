"""
Management command to expire batches past their expiry date.

Usage:
    python manage.py expire_batches
    python manage.py expire_batches --dry-run
"""

from django.core.management.base import BaseCommand

from ledgerman import inventory
from ledgerman.models import Batch


class Command(BaseCommand):
    """Expire overdue batches command."""

    help = 'Marca como vencidos os lotes com validade expirada'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Mostra o que seria vencido sem executar'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            overdue = Batch.objects.overdue().count()
            self.stdout.write(f'{overdue} lote(s) seria(m) vencido(s)')
        else:
            count = inventory.expire_batches()
            self.stdout.write(
                self.style.SUCCESS(f'{count} lote(s) vencido(s)')
            )
