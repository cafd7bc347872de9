"""
Management command to export orders as CSV.
"""
from django.core.management.base import BaseCommand, CommandError

from storefront.domain.order import OrderStatus
from storefront.domain.roles import Principal, Role
from storefront.reports import export_orders_csv
from storefront.services import OrderService


class Command(BaseCommand):
    help = 'Export orders to CSV (back office report)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--status',
            choices=[status.value for status in OrderStatus],
            help='Only export orders with this status',
        )
        parser.add_argument(
            '--output',
            help='File to write (defaults to stdout)',
        )

    def handle(self, *args, **options):
        status = OrderStatus(options['status']) if options['status'] else None
        system = Principal(id=None, role=Role.ADMIN)
        orders = OrderService().list_orders(system, status=status)

        output = options['output']
        if output:
            try:
                with open(output, 'w', newline='', encoding='utf-8') as stream:
                    count = export_orders_csv(orders, stream)
            except OSError as e:
                raise CommandError(f'Cannot write {output}: {e}')
            self.stderr.write(self.style.SUCCESS(f'Exported {count} orders to {output}'))
        else:
            count = export_orders_csv(orders, self.stdout)
            self.stderr.write(self.style.SUCCESS(f'Exported {count} orders'))
