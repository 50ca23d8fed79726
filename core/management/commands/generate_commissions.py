"""
Management command to generate daily commission records.

Should be run daily shortly after midnight; defaults to yesterday.
"""

from datetime import datetime

from django.core.management.base import BaseCommand

from core.jobs import generate_commissions


class Command(BaseCommand):
    help = 'Generate daily commission records for all agents and dealers'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=str,
            help='Day to generate for (YYYY-MM-DD). Defaults to yesterday.',
        )

    def handle(self, *args, **options):
        day = None
        if options['date']:
            try:
                day = datetime.strptime(options['date'], '%Y-%m-%d').date()
            except ValueError:
                self.stderr.write(self.style.ERROR(f"Invalid date format: {options['date']}"))
                return

        summary = generate_commissions(day)
        self.stdout.write(self.style.SUCCESS(
            f"Done! {summary['day']}: {summary['created']} created, "
            f"{summary['updated']} updated, {summary['skipped']} skipped, {summary['errors']} errors."
        ))
