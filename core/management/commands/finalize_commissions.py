"""
Management command to finalize a month of commissions.

Should be run on the 1st of each month; defaults to the previous month.
"""

from django.core.management.base import BaseCommand, CommandError

from core.jobs import finalize_commissions


class Command(BaseCommand):
    help = 'Finalize monthly commission records'

    def add_arguments(self, parser):
        parser.add_argument('--year', type=int, help='Year to finalize.')
        parser.add_argument('--month', type=int, help='Month to finalize (1-12).')

    def handle(self, *args, **options):
        year, month = options['year'], options['month']
        if (year is None) != (month is None):
            raise CommandError('Provide both --year and --month, or neither.')
        if month is not None and not 1 <= month <= 12:
            raise CommandError(f"Invalid month: {month}")

        summary = finalize_commissions(year, month)
        self.stdout.write(self.style.SUCCESS(
            f"Done! {summary['month']}: {summary['finalized']} finalized "
            f"({summary['total_amount']:,.2f}), {summary['errors']} errors."
        ))
