"""
Management command to compute valuation snapshots for every product.

Usage:
    python manage.py compute_valuations
    python manage.py compute_valuations --date 2026-03-31 --method lifo
    python manage.py compute_valuations --all-methods
"""

from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from ledgerman import inventory
from ledgerman.exceptions import LedgerError
from ledgerman.models.enums import ValuationMethod


class Command(BaseCommand):
    """Compute valuations command."""

    help = 'Calcula a valoração de estoque de todos os produtos'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            help='Data da valoração (AAAA-MM-DD). Padrão: hoje'
        )
        parser.add_argument(
            '--method',
            choices=ValuationMethod.values,
            help='Método de valoração. Padrão: LEDGERMAN["DEFAULT_VALUATION_METHOD"]'
        )
        parser.add_argument(
            '--all-methods',
            action='store_true',
            help='Calcula PEPS, UEPS e custo médio'
        )

    def handle(self, *args, **options):
        try:
            as_of = date.fromisoformat(options['date']) if options['date'] else timezone.localdate()
        except ValueError as e:
            raise CommandError(f'Data inválida: {options["date"]}') from e

        methods = list(ValuationMethod) if options['all_methods'] else [options['method']]

        for method in methods:
            try:
                report = inventory.valuation_report(as_of, method)
            except LedgerError as e:
                raise CommandError(str(e)) from e

            self.stdout.write(
                self.style.SUCCESS(
                    f'{report.method.label}: {len(report.snapshots)} produto(s), '
                    f'valor total {report.total_value}'
                )
            )
            for snapshot in report.flagged:
                self.stdout.write(
                    self.style.WARNING(
                        f'  {snapshot.product}: saídas sem camada ({snapshot.unmatched_quantity})'
                    )
                )
